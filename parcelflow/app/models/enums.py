"""
User and rider enumerations.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        USER: Customer booking parcels (default role)
        RIDER: Courier, promoted once when the rider application is approved
        ADMIN: Operator, promoted out of band
    """
    USER = "user"
    RIDER = "rider"
    ADMIN = "admin"


class RiderStatus(str, enum.Enum):
    """Rider application status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WorkStatus(str, enum.Enum):
    """
    Rider work-state.

    Only changed as a side effect of parcel assignment, delivery completion
    and application approval.
    """
    AVAILABLE = "available"
    IN_DELIVERY = "in-delivery"


def enum_values(enum_cls):
    """Persist enum values (not member names) in the database."""
    return [member.value for member in enum_cls]
