"""
Notification Schemas.
"""

from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional, Dict, Any
from parcelflow.app.models.enums import UserRole
from parcelflow.app.models.notification import NotificationType


class NotificationEvent(BaseModel):
    """Event handed to the notification emitter by producers."""
    type: NotificationType
    title: str
    message: str
    for_role: UserRole = UserRole.ADMIN
    related_id: Optional[str] = None
    tracking_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class NotificationResponse(BaseModel):
    id: int
    type: NotificationType
    title: str
    message: str
    for_role: UserRole
    related_id: Optional[str]
    tracking_id: Optional[str]
    metadata_payload: Optional[Dict[str, Any]]
    is_read: bool
    created_at: datetime
    read_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)
