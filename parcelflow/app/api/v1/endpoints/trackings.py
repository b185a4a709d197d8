"""
Public tracking lookup.
"""

from typing import List

from fastapi import APIRouter, Depends, Path

from parcelflow.app.core.dependencies import get_tracking_ledger
from parcelflow.app.schemas.tracking import TrackingEventResponse
from parcelflow.app.services.tracking_ledger import TrackingLedger

router = APIRouter(prefix="/trackings", tags=["Tracking"])


@router.get("/{tracking_id}", response_model=List[TrackingEventResponse])
async def get_tracking_history(
    tracking_id: str = Path(..., description="Parcel tracking id"),
    ledger: TrackingLedger = Depends(get_tracking_ledger)
):
    """Status history for a tracking id, oldest first. Unknown ids give an empty list."""
    events = await ledger.list_by_tracking_id(tracking_id)
    return [TrackingEventResponse.model_validate(event) for event in events]
