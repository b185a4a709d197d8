"""
Notification database model.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, JSON, Enum
from parcelflow.app.db.session import Base
from parcelflow.app.models.enums import UserRole, enum_values
from parcelflow.app.core.timeutils import utcnow
import enum


class NotificationType(str, enum.Enum):
    NEW_ORDER = "new-order"
    PAYMENT_RECEIVED = "payment-received"
    RIDER_APPLICATION = "rider-application"


class Notification(Base):
    """
    In-app notification addressed to a role's inbox.
    Only ``is_read``/``read_at`` ever change.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Recipient
    for_role = Column(
        Enum(UserRole, name="notification_role", values_callable=enum_values),
        default=UserRole.ADMIN,
        nullable=False,
        index=True,
    )

    # Content
    type = Column(Enum(NotificationType, name="notification_type", values_callable=enum_values), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    related_id = Column(String(64), nullable=True)
    tracking_id = Column(String(64), nullable=True)
    metadata_payload = Column(JSON, nullable=True)

    # State
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, type='{self.type.value}', title='{self.title}')>"
