"""
Parcel database model.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum
from parcelflow.app.db.session import Base
from parcelflow.app.models.enums import enum_values
from parcelflow.app.models.parcel_enums import DeliveryStatus, PaymentStatus
from parcelflow.app.core.timeutils import utcnow


class Parcel(Base):
    """
    Parcel booked by a customer.

    Delivery and payment status are two separate axes. Both are written only
    by the parcel lifecycle engine and the payment reconciliation service.
    """
    __tablename__ = "parcels"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Parcel identification
    tracking_id = Column(String(64), unique=True, nullable=False, index=True)
    parcel_type = Column(String(50), nullable=True)
    parcel_name = Column(String(255), nullable=False)
    parcel_weight = Column(Float, nullable=True)
    amount = Column(Float, nullable=False)

    # Sender
    sender_name = Column(String(255), nullable=True)
    sender_email = Column(String(255), nullable=False, index=True)
    sender_phone = Column(String(50), nullable=True)
    sender_region = Column(String(100), nullable=True)
    sender_district = Column(String(100), nullable=True)
    sender_address = Column(String(500), nullable=True)

    # Receiver
    receiver_name = Column(String(255), nullable=True)
    receiver_email = Column(String(255), nullable=True)
    receiver_phone = Column(String(50), nullable=True)
    receiver_region = Column(String(100), nullable=True)
    receiver_district = Column(String(100), nullable=True)
    receiver_address = Column(String(500), nullable=True)

    # Status
    delivery_status = Column(
        Enum(DeliveryStatus, name="delivery_status", values_callable=enum_values),
        default=DeliveryStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_status = Column(
        Enum(PaymentStatus, name="payment_status", values_callable=enum_values),
        default=PaymentStatus.UNPAID,
        nullable=False,
        index=True,
    )

    # Assigned rider
    rider_id = Column(Integer, nullable=True, index=True)
    rider_name = Column(String(255), nullable=True)
    rider_email = Column(String(255), nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Parcel(id={self.id}, tracking='{self.tracking_id}', status='{self.delivery_status.value}')>"
