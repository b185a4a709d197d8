"""
Parcel Lifecycle Engine (Domain Logic).

Owns the parcel's ``delivery_status`` state machine and orchestrates the
rider work-state and tracking ledger side effects of each transition.

Flow:
    (none)         --create-->  pending
    pending        --assign-->  rider-assigned
    parcel-paid    --assign-->  rider-assigned
    rider-assigned --rider-->   in-transit | delivered | parcel-paid (declined)
    in-transit     --rider-->   delivered
    *              --payment--> parcel-paid  (payment_status = paid)

Primary writes of one operation (parcel row plus rider row) are committed
together. Tracking events and notifications are written afterwards and are
best effort.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select, func, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.app.models.parcel import Parcel
from parcelflow.app.models.tracking_event import TrackingEvent
from parcelflow.app.models.parcel_enums import DeliveryStatus, PaymentStatus
from parcelflow.app.models.notification import NotificationType
from parcelflow.app.schemas.notification import NotificationEvent
from parcelflow.app.services.tracking_ledger import TrackingLedger, TrackingStatus
from parcelflow.app.services.rider_work_state import RiderWorkStateManager
from parcelflow.app.services.notification_service import NotificationService
from parcelflow.app.domain.parcels.tracking_id import generate_tracking_id
from parcelflow.app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from parcelflow.app.core.timeutils import utcnow, as_utc

logger = logging.getLogger(__name__)

MAX_TRACKING_ID_ATTEMPTS = 5

REQUIRED_FIELDS = ("sender_email", "parcel_name")

# Columns the engine owns; callers cannot set them on create
MANAGED_FIELDS = {
    "id", "tracking_id", "delivery_status", "payment_status",
    "rider_id", "rider_name", "rider_email", "created_at", "updated_at",
}

ASSIGNABLE_STATUSES = {DeliveryStatus.PENDING, DeliveryStatus.PARCEL_PAID}

RIDER_TRANSITIONS = {
    DeliveryStatus.RIDER_ASSIGNED: {
        DeliveryStatus.IN_TRANSIT,
        DeliveryStatus.DELIVERED,
        DeliveryStatus.PARCEL_PAID,
    },
    DeliveryStatus.IN_TRANSIT: {DeliveryStatus.DELIVERED},
}

# Statuses that end the rider's current job
RELEASING_STATUSES = {DeliveryStatus.DELIVERED, DeliveryStatus.PARCEL_PAID}


class ParcelLifecycleEngine:
    """
    Args:
        db: Request session used for the primary writes
        ledger: Tracking ledger (best effort)
        riders: Rider work-state manager bound to the same session as ``db``
        notifier: Notification emitter (best effort)
    """

    def __init__(
        self,
        db: AsyncSession,
        ledger: TrackingLedger,
        riders: RiderWorkStateManager,
        notifier: NotificationService,
        tracking_suffix_length: Optional[int] = None,
    ):
        self.db = db
        self.ledger = ledger
        self.riders = riders
        self.notifier = notifier
        self.tracking_suffix_length = tracking_suffix_length

    async def get(self, parcel_id: int) -> Parcel:
        parcel = await self.db.get(Parcel, parcel_id)
        if not parcel:
            raise NotFoundError("Parcel", parcel_id)
        return parcel

    async def create(self, parcel_data: Mapping[str, Any]) -> Parcel:
        """
        Book a parcel.

        Assigns a tracking id, persists the parcel as pending/unpaid, then
        records ``parcel-created`` and notifies admins of the new order.

        Raises:
            ValidationError: sender email, parcel name or amount missing
        """
        fields = self._validated_fields(parcel_data)

        for attempt in range(1, MAX_TRACKING_ID_ATTEMPTS + 1):
            now = utcnow()
            parcel = Parcel(
                **fields,
                tracking_id=generate_tracking_id(now, self.tracking_suffix_length),
                delivery_status=DeliveryStatus.PENDING,
                payment_status=PaymentStatus.UNPAID,
                created_at=now,
                updated_at=now,
            )
            self.db.add(parcel)
            try:
                await self.db.commit()
                break
            except IntegrityError:
                await self.db.rollback()
                logger.warning("Tracking id collision on attempt %d, retrying", attempt)
        else:
            raise ConflictError("Could not allocate a unique tracking id")

        logger.info("Parcel %s created by %s", parcel.tracking_id, parcel.sender_email)

        await self.ledger.record(parcel.tracking_id, TrackingStatus.PARCEL_CREATED)
        await self.notifier.emit(NotificationEvent(
            type=NotificationType.NEW_ORDER,
            title="New parcel booked",
            message=f"{parcel.sender_email} booked '{parcel.parcel_name}' ({parcel.tracking_id})",
            related_id=str(parcel.id),
            tracking_id=parcel.tracking_id,
            metadata={"amount": parcel.amount, "sender_email": parcel.sender_email},
        ))
        return parcel

    @staticmethod
    def _validated_fields(parcel_data: Mapping[str, Any]) -> Dict[str, Any]:
        missing = [
            name for name in REQUIRED_FIELDS
            if not str(parcel_data.get(name) or "").strip()
        ]
        if missing:
            raise ValidationError("Missing required parcel fields", details={"missing": missing})

        amount = parcel_data.get("amount")
        if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount < 0:
            raise ValidationError("Parcel amount must be a non-negative number", details={"amount": amount})

        allowed = {column.name for column in Parcel.__table__.columns} - MANAGED_FIELDS
        return {key: value for key, value in parcel_data.items() if key in allowed}

    async def assign_rider(
        self,
        parcel_id: int,
        rider_id: int,
        rider_info: Optional[Mapping[str, Any]] = None
    ) -> Parcel:
        """
        Assign a rider to a parcel awaiting pickup.

        The rider is claimed with a conditional update (only when available)
        and the parcel is stamped with the rider identity in the same
        transaction.

        Raises:
            NotFoundError: parcel or rider missing
            InvalidTransitionError: parcel already has an active assignment
            ConflictError: rider is not available
        """
        parcel = await self.get(parcel_id)
        if parcel.delivery_status not in ASSIGNABLE_STATUSES:
            raise InvalidTransitionError(parcel.delivery_status, DeliveryStatus.RIDER_ASSIGNED)

        await self.riders.assign(rider_id)
        rider = await self.riders.get(rider_id)
        rider_info = rider_info or {}

        parcel.delivery_status = DeliveryStatus.RIDER_ASSIGNED
        parcel.rider_id = rider.id
        parcel.rider_name = rider.name or rider_info.get("rider_name")
        parcel.rider_email = rider.email or rider_info.get("rider_email")
        parcel.updated_at = utcnow()

        await self.db.commit()
        logger.info("Rider %s assigned to parcel %s", rider.email, parcel.tracking_id)

        await self.ledger.record(parcel.tracking_id, TrackingStatus.RIDER_ASSIGNED)
        return parcel

    async def update_delivery_status(
        self,
        parcel_id: int,
        new_status: DeliveryStatus,
        rider_email: Optional[str] = None,
        tracking_id: Optional[str] = None
    ) -> Parcel:
        """
        Advance a parcel on behalf of its rider.

        ``delivered`` and ``parcel-paid`` (rider declined the job) release the
        rider on the parcel row. A declined parcel drops its rider stamp so it
        can be assigned again.

        Raises:
            NotFoundError: parcel missing
            InvalidTransitionError: move not allowed from the current status
            ForbiddenError: ``rider_email`` is not the rider on the parcel
        """
        new_status = DeliveryStatus(new_status)
        parcel = await self.get(parcel_id)

        allowed = RIDER_TRANSITIONS.get(parcel.delivery_status, set())
        if new_status not in allowed:
            raise InvalidTransitionError(parcel.delivery_status, new_status)

        # Work state only ever changes for the rider on the parcel row
        holder = parcel.rider_email
        if rider_email and (holder or "").lower() != rider_email.lower():
            raise ForbiddenError(
                "Only the rider assigned to this parcel can update it.",
                details={"tracking_id": parcel.tracking_id},
            )
        if tracking_id and tracking_id != parcel.tracking_id:
            logger.warning(
                "Status update for parcel %s names tracking id %s, keeping %s",
                parcel.id, tracking_id, parcel.tracking_id
            )

        if new_status in RELEASING_STATUSES and holder:
            await self.riders.release(holder)

        parcel.delivery_status = new_status
        if new_status == DeliveryStatus.PARCEL_PAID:
            self._clear_rider(parcel)
        parcel.updated_at = utcnow()

        await self.db.commit()
        logger.info("Parcel %s moved to %s", parcel.tracking_id, new_status.value)

        await self.ledger.record(parcel.tracking_id, new_status)
        return parcel

    @staticmethod
    def _clear_rider(parcel: Parcel) -> None:
        parcel.rider_id = None
        parcel.rider_name = None
        parcel.rider_email = None

    async def mark_paid(self, parcel_id: int, tracking_id: Optional[str] = None) -> Parcel:
        """
        Apply a confirmed payment to a parcel. Flushes only; the settlement
        commits it together with the payment record.

        Sets ``payment_status = paid`` and ``delivery_status = parcel-paid``
        in one write, from any delivery status. A parcel paid while a rider
        holds it goes back to the pool: the rider is released and the rider
        stamp cleared, as when the rider declines. The tracking id never
        changes; a mismatching id from the gateway is logged and ignored.
        """
        parcel = await self.get(parcel_id)
        if tracking_id and tracking_id != parcel.tracking_id:
            logger.warning(
                "Payment for parcel %s carries tracking id %s, keeping %s",
                parcel.id, tracking_id, parcel.tracking_id
            )
        if parcel.delivery_status in RIDER_TRANSITIONS:
            logger.warning(
                "Parcel %s paid while '%s'; releasing rider %s and resetting to parcel-paid",
                parcel.tracking_id, parcel.delivery_status.value, parcel.rider_email
            )
            if parcel.rider_email:
                await self.riders.release(parcel.rider_email)
            self._clear_rider(parcel)

        parcel.payment_status = PaymentStatus.PAID
        parcel.delivery_status = DeliveryStatus.PARCEL_PAID
        parcel.updated_at = utcnow()

        await self.db.flush()
        return parcel

    async def query_for_rider(
        self,
        rider_email: str,
        delivery_status_filter: Optional[str] = None
    ) -> List[Parcel]:
        """
        Parcels for a rider's dashboard.

        Any filter other than ``delivered`` (including none) returns the
        rider's active work, i.e. everything not yet delivered. ``delivered``
        returns only the delivered parcels.
        """
        query = select(Parcel).where(Parcel.rider_email == rider_email)
        if delivery_status_filter == DeliveryStatus.DELIVERED.value:
            query = query.where(Parcel.delivery_status == DeliveryStatus.DELIVERED)
        else:
            query = query.where(Parcel.delivery_status != DeliveryStatus.DELIVERED)
        query = query.order_by(desc(Parcel.created_at), desc(Parcel.id))

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_parcels(
        self,
        sender_email: Optional[str] = None,
        delivery_status: Optional[DeliveryStatus] = None
    ) -> List[Parcel]:
        """Parcels, newest first, optionally by sender and status."""
        query = select(Parcel)
        if sender_email:
            query = query.where(Parcel.sender_email == sender_email)
        if delivery_status:
            query = query.where(Parcel.delivery_status == delivery_status)
        query = query.order_by(desc(Parcel.created_at), desc(Parcel.id))

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def delete(self, parcel_id: int) -> None:
        """
        Delete a parcel that was never paid or picked up.

        Raises:
            ConflictError: parcel is paid or has a rider
        """
        parcel = await self.get(parcel_id)
        if parcel.payment_status == PaymentStatus.PAID or parcel.delivery_status != DeliveryStatus.PENDING:
            raise ConflictError(
                "Only unpaid, unassigned parcels can be deleted",
                details={
                    "delivery_status": parcel.delivery_status.value,
                    "payment_status": parcel.payment_status.value,
                }
            )
        await self.db.delete(parcel)
        await self.db.commit()

    async def delivery_stats(self) -> List[Dict[str, Any]]:
        """Parcel counts grouped by delivery status."""
        result = await self.db.execute(
            select(Parcel.delivery_status, func.count(Parcel.id))
            .group_by(Parcel.delivery_status)
        )
        return [{"status": status, "count": count} for status, count in result.all()]

    async def average_delivery_duration(self) -> Dict[str, Any]:
        """
        Average minutes from ``parcel-created`` to ``delivered``.

        Only delivered parcels with both events count; the first creation
        event and the last delivery event are used. The average is rounded
        to whole minutes and is None when no parcel qualifies.
        """
        result = await self.db.execute(
            select(Parcel.tracking_id, TrackingEvent.status, TrackingEvent.created_at)
            .join(TrackingEvent, TrackingEvent.tracking_id == Parcel.tracking_id)
            .where(
                Parcel.delivery_status == DeliveryStatus.DELIVERED,
                TrackingEvent.status.in_([TrackingStatus.PARCEL_CREATED, TrackingStatus.DELIVERED]),
            )
        )

        created: Dict[str, datetime] = {}
        delivered: Dict[str, datetime] = {}
        for tracking_id, status, created_at in result.all():
            timestamp = as_utc(created_at)
            if status == TrackingStatus.PARCEL_CREATED:
                if tracking_id not in created or timestamp < created[tracking_id]:
                    created[tracking_id] = timestamp
            elif tracking_id not in delivered or timestamp > delivered[tracking_id]:
                delivered[tracking_id] = timestamp

        durations = [
            (delivered[tracking_id] - created[tracking_id]).total_seconds() / 60
            for tracking_id in delivered
            if tracking_id in created
        ]
        if not durations:
            return {"average_minutes": None, "delivered_count": 0}

        return {
            "average_minutes": round(sum(durations) / len(durations)),
            "delivered_count": len(durations),
        }

    async def deliveries_per_day(self, rider_email: str) -> List[Dict[str, Any]]:
        """Delivered events per calendar day (UTC) for a rider's parcels."""
        result = await self.db.execute(
            select(TrackingEvent.created_at)
            .join(Parcel, Parcel.tracking_id == TrackingEvent.tracking_id)
            .where(
                Parcel.rider_email == rider_email,
                TrackingEvent.status == TrackingStatus.DELIVERED,
            )
        )

        counts: Dict[str, int] = defaultdict(int)
        for (created_at,) in result.all():
            counts[as_utc(created_at).date().isoformat()] += 1

        return [
            {"date": day, "delivered_count": counts[day]}
            for day in sorted(counts)
        ]
