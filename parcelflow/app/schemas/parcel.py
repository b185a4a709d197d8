"""
Parcel Pydantic schemas.

Defines request and response models for parcel booking and delivery.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional, List
from parcelflow.app.models.parcel_enums import DeliveryStatus, PaymentStatus


class ParcelCreate(BaseModel):
    """Schema for booking a parcel."""
    parcel_type: Optional[str] = Field(None, max_length=50)
    parcel_name: str = Field(..., min_length=1, max_length=255)
    parcel_weight: Optional[float] = Field(None, gt=0)
    amount: float = Field(..., ge=0, description="Delivery charge")

    sender_name: Optional[str] = Field(None, max_length=255)
    sender_email: str = Field(..., min_length=3, max_length=255)
    sender_phone: Optional[str] = Field(None, max_length=50)
    sender_region: Optional[str] = Field(None, max_length=100)
    sender_district: Optional[str] = Field(None, max_length=100)
    sender_address: Optional[str] = Field(None, max_length=500)

    receiver_name: Optional[str] = Field(None, max_length=255)
    receiver_email: Optional[str] = Field(None, max_length=255)
    receiver_phone: Optional[str] = Field(None, max_length=50)
    receiver_region: Optional[str] = Field(None, max_length=100)
    receiver_district: Optional[str] = Field(None, max_length=100)
    receiver_address: Optional[str] = Field(None, max_length=500)


class RiderAssignment(BaseModel):
    """Schema for assigning a rider to a parcel."""
    rider_id: int
    rider_name: Optional[str] = None
    rider_email: Optional[str] = None


class DeliveryStatusUpdate(BaseModel):
    """Schema for a rider advancing a parcel."""
    delivery_status: DeliveryStatus
    tracking_id: Optional[str] = None


class ParcelResponse(BaseModel):
    """Schema for parcel response."""
    id: int
    tracking_id: str
    parcel_type: Optional[str]
    parcel_name: str
    parcel_weight: Optional[float]
    amount: float
    sender_name: Optional[str]
    sender_email: str
    sender_phone: Optional[str]
    sender_region: Optional[str]
    sender_district: Optional[str]
    sender_address: Optional[str]
    receiver_name: Optional[str]
    receiver_email: Optional[str]
    receiver_phone: Optional[str]
    receiver_region: Optional[str]
    receiver_district: Optional[str]
    receiver_address: Optional[str]
    delivery_status: DeliveryStatus
    payment_status: PaymentStatus
    rider_id: Optional[int]
    rider_name: Optional[str]
    rider_email: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AssignmentResponse(BaseModel):
    parcel: ParcelResponse
    rider_id: int
    rider_work_status: str


class DeliveryStatusCount(BaseModel):
    status: DeliveryStatus
    count: int


class AverageDeliveryDuration(BaseModel):
    average_minutes: Optional[int]
    delivered_count: int
