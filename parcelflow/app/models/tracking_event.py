"""
Tracking event database model.
"""

from sqlalchemy import Column, Integer, String, DateTime
from parcelflow.app.db.session import Base
from parcelflow.app.core.timeutils import utcnow


class TrackingEvent(Base):
    """
    Tracking event.

    Immutable, append-only record of a status a parcel went through.
    NO updates or deletions allowed.
    """
    __tablename__ = "tracking_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tracking_id = Column(String(64), nullable=False, index=True)
    status = Column(String(50), nullable=False, index=True)
    details = Column(String(255), nullable=False)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<TrackingEvent(id={self.id}, tracking='{self.tracking_id}', status='{self.status}')>"
