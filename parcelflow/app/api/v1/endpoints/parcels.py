"""
Parcel API Endpoints.

Booking and listing for senders, assignment and stats for admins, and
status updates for riders. Every lifecycle call goes through the parcel
lifecycle engine.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Path, status

from parcelflow.app.core.dependencies import get_caller, get_lifecycle_engine
from parcelflow.app.core.exceptions import ForbiddenError
from parcelflow.app.core.guards import (
    Capability, authorize, enforce, owner_scope, require_admin, require_rider,
)
from parcelflow.app.core.identity import CallerContext
from parcelflow.app.domain.parcels.lifecycle import ParcelLifecycleEngine
from parcelflow.app.models.parcel_enums import DeliveryStatus
from parcelflow.app.schemas.parcel import (
    AssignmentResponse, DeliveryStatusCount, DeliveryStatusUpdate,
    ParcelCreate, ParcelResponse, RiderAssignment,
)

router = APIRouter(prefix="/parcels", tags=["Parcels"])


@router.get("", response_model=List[ParcelResponse])
async def list_parcels(
    email: Optional[str] = Query(None, description="Sender email"),
    delivery_status: Optional[DeliveryStatus] = Query(None),
    caller: CallerContext = Depends(get_caller),
    engine: ParcelLifecycleEngine = Depends(get_lifecycle_engine)
):
    """
    List parcels, newest first.

    Senders only see their own parcels; admins see all of them unless they
    filter by sender.
    """
    sender_email = owner_scope(caller, email)
    parcels = await engine.list_parcels(sender_email, delivery_status)
    return [ParcelResponse.model_validate(parcel) for parcel in parcels]


@router.post("", response_model=ParcelResponse, status_code=status.HTTP_201_CREATED)
async def create_parcel(
    parcel_data: ParcelCreate,
    caller: CallerContext = Depends(get_caller),
    engine: ParcelLifecycleEngine = Depends(get_lifecycle_engine)
):
    """Book a parcel. Senders can only book under their own email."""
    enforce(Capability.OWNER, caller, parcel_data.sender_email, "parcel")
    parcel = await engine.create(parcel_data.model_dump())
    return ParcelResponse.model_validate(parcel)


@router.get("/rider", response_model=List[ParcelResponse])
async def list_rider_parcels(
    delivery_status: Optional[str] = Query(
        None, description="'delivered' for completed jobs; anything else lists active jobs"
    ),
    rider: CallerContext = Depends(require_rider),
    engine: ParcelLifecycleEngine = Depends(get_lifecycle_engine)
):
    """Parcels assigned to the calling rider."""
    parcels = await engine.query_for_rider(rider.email, delivery_status)
    return [ParcelResponse.model_validate(parcel) for parcel in parcels]


@router.get("/delivery-stats", response_model=List[DeliveryStatusCount])
async def delivery_stats(
    admin: CallerContext = Depends(require_admin),
    engine: ParcelLifecycleEngine = Depends(get_lifecycle_engine)
):
    """Parcel counts per delivery status (admin-only)."""
    return await engine.delivery_stats()


@router.get("/{parcel_id}", response_model=ParcelResponse)
async def get_parcel(
    parcel_id: int = Path(..., description="Parcel ID"),
    caller: CallerContext = Depends(get_caller),
    engine: ParcelLifecycleEngine = Depends(get_lifecycle_engine)
):
    """Parcel details for its sender, its assigned rider, or an admin."""
    parcel = await engine.get(parcel_id)

    if not authorize(Capability.OWNER, caller, parcel.sender_email):
        is_assigned_rider = (
            authorize(Capability.RIDER, caller)
            and parcel.rider_email
            and parcel.rider_email.lower() == caller.email.lower()
        )
        if not is_assigned_rider:
            raise ForbiddenError("Access denied to this parcel.")

    return ParcelResponse.model_validate(parcel)


@router.patch("/{parcel_id}/assign", response_model=AssignmentResponse)
async def assign_rider(
    assignment: RiderAssignment,
    parcel_id: int = Path(..., description="Parcel ID"),
    admin: CallerContext = Depends(require_admin),
    engine: ParcelLifecycleEngine = Depends(get_lifecycle_engine)
):
    """
    Assign an available rider to a parcel (admin-only).

    Returns 409 if the parcel already has an active assignment or the rider
    is not approved and available.
    """
    parcel = await engine.assign_rider(
        parcel_id,
        assignment.rider_id,
        assignment.model_dump(include={"rider_name", "rider_email"}),
    )
    rider = await engine.riders.get(assignment.rider_id)

    return AssignmentResponse(
        parcel=ParcelResponse.model_validate(parcel),
        rider_id=rider.id,
        rider_work_status=rider.work_status.value,
    )


@router.patch("/{parcel_id}/delivery-status", response_model=ParcelResponse)
async def update_delivery_status(
    update: DeliveryStatusUpdate,
    parcel_id: int = Path(..., description="Parcel ID"),
    rider: CallerContext = Depends(require_rider),
    engine: ParcelLifecycleEngine = Depends(get_lifecycle_engine)
):
    """
    Advance a parcel's delivery (rider-only).

    A rider can only move parcels assigned to them.
    """
    parcel = await engine.get(parcel_id)
    if parcel.rider_email and parcel.rider_email.lower() != rider.email.lower():
        raise ForbiddenError("This parcel is assigned to another rider.")

    parcel = await engine.update_delivery_status(
        parcel_id,
        update.delivery_status,
        rider_email=rider.email,
        tracking_id=update.tracking_id,
    )
    return ParcelResponse.model_validate(parcel)


@router.delete("/{parcel_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_parcel(
    parcel_id: int = Path(..., description="Parcel ID"),
    caller: CallerContext = Depends(get_caller),
    engine: ParcelLifecycleEngine = Depends(get_lifecycle_engine)
):
    """Delete an unpaid, unassigned parcel. Senders can only delete their own."""
    parcel = await engine.get(parcel_id)
    enforce(Capability.OWNER, caller, parcel.sender_email, "parcel")
    await engine.delete(parcel_id)
