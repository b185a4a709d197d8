"""
Rider API Endpoints.

Public rider applications, admin review of applications, and the rider's
own delivery history.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Path, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.app.core.dependencies import (
    get_lifecycle_engine, get_notifier, get_rider_manager,
)
from parcelflow.app.core.exceptions import ConflictError
from parcelflow.app.core.guards import require_admin, require_rider
from parcelflow.app.core.identity import CallerContext
from parcelflow.app.db.session import get_db
from parcelflow.app.domain.parcels.lifecycle import ParcelLifecycleEngine
from parcelflow.app.models.enums import RiderStatus, WorkStatus
from parcelflow.app.models.notification import NotificationType
from parcelflow.app.models.rider import Rider
from parcelflow.app.schemas.notification import NotificationEvent
from parcelflow.app.schemas.rider import (
    DeliveriesPerDay, RiderApply, RiderListResponse, RiderResponse, RiderStatusUpdate,
)
from parcelflow.app.services.notification_service import NotificationService
from parcelflow.app.services.rider_work_state import RiderWorkStateManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/riders", tags=["Riders"])


@router.post("", response_model=RiderResponse, status_code=status.HTTP_201_CREATED)
async def apply_as_rider(
    application: RiderApply,
    riders: RiderWorkStateManager = Depends(get_rider_manager),
    notifier: NotificationService = Depends(get_notifier),
    db: AsyncSession = Depends(get_db)
):
    """
    Submit a rider application. It starts as pending until an admin decides.

    Returns 409 if an application with this email already exists.
    """
    rider = await riders.apply(application.model_dump())
    await db.commit()
    logger.info("Rider application received from %s", rider.email)

    await notifier.emit(NotificationEvent(
        type=NotificationType.RIDER_APPLICATION,
        title="New rider application",
        message=f"{rider.name} ({rider.email}) applied to ride in {rider.rider_district or 'an unknown district'}",
        related_id=str(rider.id),
        metadata={"email": rider.email, "district": rider.rider_district},
    ))
    return RiderResponse.model_validate(rider)


@router.get("", response_model=RiderListResponse)
async def list_riders(
    rider_status: Optional[RiderStatus] = Query(None, alias="status"),
    work_status: Optional[WorkStatus] = Query(None),
    district: Optional[str] = Query(None, description="Rider district"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    admin: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    List rider applications (admin-only).

    Filter by approval status, work status and district, e.g. approved and
    available riders in the parcel's district when assigning.
    """
    conditions = []
    if rider_status:
        conditions.append(Rider.status == rider_status)
    if work_status:
        conditions.append(Rider.work_status == work_status)
    if district:
        conditions.append(Rider.rider_district == district)

    total = (await db.execute(select(func.count(Rider.id)).where(*conditions))).scalar() or 0

    offset = (page - 1) * page_size
    result = await db.execute(
        select(Rider)
        .where(*conditions)
        .order_by(Rider.created_at.desc(), Rider.id.desc())
        .offset(offset)
        .limit(page_size)
    )

    return RiderListResponse(
        riders=[RiderResponse.model_validate(rider) for rider in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/delivery-per-day", response_model=List[DeliveriesPerDay])
async def deliveries_per_day(
    rider: CallerContext = Depends(require_rider),
    engine: ParcelLifecycleEngine = Depends(get_lifecycle_engine)
):
    """Delivered parcels per day for the calling rider."""
    return await engine.deliveries_per_day(rider.email)


@router.patch("/{rider_id}", response_model=RiderResponse)
async def update_rider_status(
    update: RiderStatusUpdate,
    rider_id: int = Path(..., description="Rider ID"),
    admin: CallerContext = Depends(require_admin),
    riders: RiderWorkStateManager = Depends(get_rider_manager),
    db: AsyncSession = Depends(get_db)
):
    """
    Decide on a rider application (admin-only).

    Approval makes the rider available and promotes the matching user to
    the rider role in the same transaction.
    """
    rider = await riders.set_status(rider_id, update.status)
    await db.commit()
    await db.refresh(rider)

    logger.info("Admin %s set rider %s to %s", admin.email, rider.email, rider.status.value)
    return RiderResponse.model_validate(rider)


@router.delete("/{rider_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rider(
    rider_id: int = Path(..., description="Rider ID"),
    admin: CallerContext = Depends(require_admin),
    riders: RiderWorkStateManager = Depends(get_rider_manager),
    db: AsyncSession = Depends(get_db)
):
    """Remove a rider application (admin-only). Riders out on a delivery cannot be removed."""
    rider = await riders.get(rider_id)
    if rider.work_status == WorkStatus.IN_DELIVERY:
        raise ConflictError(
            "Rider is in delivery and cannot be removed",
            details={"rider_id": rider_id}
        )

    await db.delete(rider)
    await db.commit()
    logger.info("Admin %s removed rider %s", admin.email, rider.email)
