"""
Rider Pydantic schemas.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional, List
from parcelflow.app.models.enums import RiderStatus, WorkStatus


class RiderApply(BaseModel):
    """Schema for a rider application."""
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    age: Optional[int] = Field(None, ge=16, le=100)
    nid: Optional[str] = Field(None, max_length=100)
    bike_info: Optional[str] = Field(None, max_length=255)
    rider_region: Optional[str] = Field(None, max_length=100)
    rider_district: Optional[str] = Field(None, max_length=100)


class RiderStatusUpdate(BaseModel):
    """Admin decision on an application."""
    status: RiderStatus


class RiderResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str]
    age: Optional[int]
    nid: Optional[str]
    bike_info: Optional[str]
    rider_region: Optional[str]
    rider_district: Optional[str]
    status: RiderStatus
    work_status: Optional[WorkStatus]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RiderListResponse(BaseModel):
    riders: List[RiderResponse]
    total: int
    page: int
    page_size: int


class DeliveriesPerDay(BaseModel):
    date: str
    delivered_count: int
