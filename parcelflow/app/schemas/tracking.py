"""
Tracking event schemas.
"""

from pydantic import BaseModel, ConfigDict
from datetime import datetime


class TrackingEventResponse(BaseModel):
    id: int
    tracking_id: str
    status: str
    details: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
