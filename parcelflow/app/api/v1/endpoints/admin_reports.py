"""
Admin report endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from parcelflow.app.core.dependencies import get_lifecycle_engine, get_report_service
from parcelflow.app.core.guards import require_admin
from parcelflow.app.core.identity import CallerContext
from parcelflow.app.domain.parcels.lifecycle import ParcelLifecycleEngine
from parcelflow.app.schemas.analytics import (
    DashboardStats, MonthlyComparison, RevenueStats, TopRider,
)
from parcelflow.app.schemas.parcel import AverageDeliveryDuration
from parcelflow.app.services.analytics import ReportService

router = APIRouter(prefix="/admin", tags=["Admin - Reports"])


@router.get("/dashboard-stats", response_model=DashboardStats)
async def get_dashboard_stats(
    admin: CallerContext = Depends(require_admin),
    reports: ReportService = Depends(get_report_service)
):
    return await reports.dashboard_stats()


@router.get("/revenue-stats", response_model=RevenueStats)
async def get_revenue_stats(
    days: int = Query(30, ge=1, le=366, description="Number of days, today included"),
    admin: CallerContext = Depends(require_admin),
    reports: ReportService = Depends(get_report_service)
):
    return await reports.revenue_stats(days)


@router.get("/top-riders", response_model=List[TopRider])
async def get_top_riders(
    limit: int = Query(5, ge=1, le=50),
    admin: CallerContext = Depends(require_admin),
    reports: ReportService = Depends(get_report_service)
):
    """Riders with the most delivered parcels."""
    return await reports.top_riders(limit)


@router.get("/monthly-comparison", response_model=MonthlyComparison)
async def get_monthly_comparison(
    admin: CallerContext = Depends(require_admin),
    reports: ReportService = Depends(get_report_service)
):
    return await reports.monthly_comparison()


@router.get("/average-delivery-duration", response_model=AverageDeliveryDuration)
async def get_average_delivery_duration(
    admin: CallerContext = Depends(require_admin),
    engine: ParcelLifecycleEngine = Depends(get_lifecycle_engine)
):
    """
    Average minutes from booking to delivery over delivered parcels.

    ``average_minutes`` is null when no parcel has both events recorded.
    """
    return await engine.average_delivery_duration()
