"""
Tracking Ledger.

Append-only log of parcel status events keyed by tracking id. Writes are
best effort: they run in their own session after the caller's primary
write has committed, and a failure is logged and swallowed so it can never
fail or roll back the parcel operation that produced it.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from parcelflow.app.models.tracking_event import TrackingEvent
from parcelflow.app.core.timeutils import utcnow

logger = logging.getLogger(__name__)


class TrackingStatus:
    """Statuses recorded by the platform itself (not parcel delivery statuses)."""
    PARCEL_CREATED = "parcel-created"
    RIDER_ASSIGNED = "rider-assigned"
    PARCEL_PAID = "parcel-paid"
    DELIVERED = "delivered"


def status_details(status: str) -> str:
    """Human-readable form of a status: ``rider-assigned`` -> ``rider assigned``."""
    return status.replace("-", " ")


class TrackingLedger:

    def __init__(self, session_factory: async_sessionmaker):
        self._sessions = session_factory

    async def record(self, tracking_id: str, status) -> Optional[TrackingEvent]:
        """
        Append a tracking event.

        Args:
            tracking_id: Parcel tracking id
            status: Status string or DeliveryStatus member

        Returns:
            The stored event, or None if the write failed
        """
        status_value = getattr(status, "value", status)
        try:
            async with self._sessions() as db:
                event = TrackingEvent(
                    tracking_id=tracking_id,
                    status=status_value,
                    details=status_details(status_value),
                    created_at=utcnow(),
                )
                db.add(event)
                await db.commit()
                return event
        except Exception:
            logger.exception(
                "Tracking event '%s' for %s was not recorded", status_value, tracking_id
            )
            return None

    async def list_by_tracking_id(self, tracking_id: str) -> List[TrackingEvent]:
        """All events for a tracking id, oldest first."""
        async with self._sessions() as db:
            result = await db.execute(
                select(TrackingEvent)
                .where(TrackingEvent.tracking_id == tracking_id)
                .order_by(TrackingEvent.created_at, TrackingEvent.id)
            )
            return list(result.scalars().all())
