"""
Rider database model.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum
from parcelflow.app.db.session import Base
from parcelflow.app.models.enums import RiderStatus, WorkStatus, enum_values
from parcelflow.app.core.timeutils import utcnow


class Rider(Base):
    """
    Rider application and courier work-state.

    ``work_status`` stays NULL until the application is approved and is only
    written by the rider work-state manager.
    """
    __tablename__ = "riders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Identity
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)
    age = Column(Integer, nullable=True)
    nid = Column(String(100), nullable=True)
    bike_info = Column(String(255), nullable=True)

    # Coverage area
    rider_region = Column(String(100), nullable=True)
    rider_district = Column(String(100), nullable=True, index=True)

    # Status
    status = Column(
        Enum(RiderStatus, name="rider_status", values_callable=enum_values),
        default=RiderStatus.PENDING,
        nullable=False,
        index=True,
    )
    work_status = Column(
        Enum(WorkStatus, name="work_status", values_callable=enum_values),
        nullable=True,
        index=True,
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Rider(id={self.id}, email='{self.email}', status='{self.status.value}')>"
