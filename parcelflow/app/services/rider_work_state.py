"""
Rider Work-State Manager.

Owns a rider's approval status and availability. ``work_status`` is only
changed here, and only as a side effect of application approval, parcel
assignment and delivery completion.

Methods flush but never commit: the calling operation commits, so the rider
row and the parcel/user row it travels with land in one transaction.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.app.models.rider import Rider
from parcelflow.app.models.user import User
from parcelflow.app.models.enums import RiderStatus, WorkStatus, UserRole
from parcelflow.app.core.exceptions import ConflictError, NotFoundError
from parcelflow.app.core.timeutils import utcnow

logger = logging.getLogger(__name__)


class RiderWorkStateManager:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, rider_id: int) -> Rider:
        rider = await self.db.get(Rider, rider_id)
        if not rider:
            raise NotFoundError("Rider", rider_id)
        return rider

    async def get_by_email(self, email: str) -> Optional[Rider]:
        result = await self.db.execute(select(Rider).where(Rider.email == email))
        return result.scalar_one_or_none()

    async def apply(self, data: Dict[str, Any]) -> Rider:
        """
        Create a pending rider application.

        Raises:
            ConflictError: an application with this email already exists
        """
        if await self.get_by_email(data["email"]):
            raise ConflictError(
                "Rider application already exists",
                details={"email": data["email"]}
            )

        rider = Rider(
            **data,
            status=RiderStatus.PENDING,
            work_status=None,
            created_at=utcnow(),
        )
        self.db.add(rider)
        await self.db.flush()
        return rider

    async def assign(self, rider_id: int) -> None:
        """
        Claim an approved, available rider for a delivery.

        The claim is a single conditional UPDATE, so two parcels racing for
        the same rider cannot both win.

        Raises:
            NotFoundError: rider does not exist
            ConflictError: rider is not approved or already in delivery
        """
        stmt = (
            update(Rider)
            .where(
                Rider.id == rider_id,
                Rider.status == RiderStatus.APPROVED,
                Rider.work_status == WorkStatus.AVAILABLE,
            )
            .values(work_status=WorkStatus.IN_DELIVERY)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.db.execute(stmt)
        if result.rowcount:
            return

        rider = await self.get(rider_id)
        raise ConflictError(
            "Rider is not available for assignment",
            details={
                "rider_id": rider_id,
                "status": rider.status.value,
                "work_status": rider.work_status.value if rider.work_status else None,
            }
        )

    async def release(self, rider_email: str) -> bool:
        """Make the rider available again. Returns False if no rider matched."""
        stmt = (
            update(Rider)
            .where(Rider.email == rider_email)
            .values(work_status=WorkStatus.AVAILABLE)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.db.execute(stmt)
        if not result.rowcount:
            logger.warning("No rider with email %s to release", rider_email)
        return result.rowcount > 0

    async def approve(self, rider_email: str) -> Rider:
        """
        Approve a rider application and promote the linked user.

        Sets status=approved on the rider, work_status=available on a first
        approval (a rider out on a delivery stays in-delivery), and
        role=rider on the user with the same email. An admin keeps the admin
        role.
        """
        rider = await self.get_by_email(rider_email)
        if not rider:
            raise NotFoundError("Rider", rider_email)

        rider.status = RiderStatus.APPROVED
        if rider.work_status is None:
            rider.work_status = WorkStatus.AVAILABLE

        result = await self.db.execute(select(User).where(User.email == rider_email))
        user = result.scalar_one_or_none()
        if user is None:
            logger.warning("Approved rider %s has no user account to promote", rider_email)
        elif user.role == UserRole.USER:
            user.role = UserRole.RIDER

        await self.db.flush()
        return rider

    async def set_status(self, rider_id: int, status: RiderStatus) -> Rider:
        """Admin decision on an application."""
        rider = await self.get(rider_id)
        if status == RiderStatus.APPROVED:
            return await self.approve(rider.email)

        rider.status = status
        await self.db.flush()
        return rider
