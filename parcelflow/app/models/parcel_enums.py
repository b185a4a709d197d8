"""
Parcel status enumerations.
"""

import enum


class DeliveryStatus(str, enum.Enum):
    """
    Parcel delivery status.

    Status flow:
        PENDING -> RIDER_ASSIGNED -> IN_TRANSIT -> DELIVERED
        RIDER_ASSIGNED -> DELIVERED
        RIDER_ASSIGNED -> PARCEL_PAID (rider declines, parcel goes back to the pool)
        PARCEL_PAID -> RIDER_ASSIGNED
        Payment confirmation moves any status to PARCEL_PAID.
    """
    PENDING = "pending"
    PARCEL_PAID = "parcel-paid"
    RIDER_ASSIGNED = "rider-assigned"
    IN_TRANSIT = "in-transit"
    DELIVERED = "delivered"


class PaymentStatus(str, enum.Enum):
    """Parcel payment status."""
    UNPAID = "unpaid"
    PAID = "paid"
