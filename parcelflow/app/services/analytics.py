"""
Report Service for the admin dashboard.

Read-only aggregation over users, riders, parcels, payments and tracking
events. Figures are as of read time and may be served from the report
cache for a few seconds.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.app.core.timeutils import as_utc, utcnow
from parcelflow.app.domain.parcels.lifecycle import ParcelLifecycleEngine
from parcelflow.app.models.parcel import Parcel
from parcelflow.app.models.parcel_enums import DeliveryStatus, PaymentStatus
from parcelflow.app.models.payment import Payment
from parcelflow.app.models.rider import Rider
from parcelflow.app.models.tracking_event import TrackingEvent
from parcelflow.app.models.user import User
from parcelflow.app.schemas.analytics import (
    DashboardStats, DailyRevenue, RevenueStats,
    TopRider, MonthMetrics, MonthlyComparison,
)
from parcelflow.app.services.report_cache import ReportCache
from parcelflow.app.services.tracking_ledger import TrackingStatus


def _month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _previous_month_start(month_start: datetime) -> datetime:
    return _month_start(month_start - timedelta(days=1))


def _change_pct(current: float, previous: float) -> Optional[float]:
    """Percentage change, None when there is nothing to compare against."""
    if not previous:
        return None
    return round((current - previous) / previous * 100, 1)


class ReportService:

    def __init__(self, db: AsyncSession, engine: ParcelLifecycleEngine, cache: ReportCache):
        self.db = db
        self.engine = engine
        self.cache = cache

    async def _count(self, model) -> int:
        return (await self.db.execute(select(func.count(model.id)))).scalar() or 0

    async def _grouped(self, column) -> Dict[str, int]:
        result = await self.db.execute(select(column, func.count()).group_by(column))
        return {
            (key.value if hasattr(key, "value") else str(key)): count
            for key, count in result.all()
            if key is not None
        }

    async def dashboard_stats(self) -> DashboardStats:
        """Headline counts for the admin dashboard."""

        async def compute():
            revenue = (await self.db.execute(select(func.sum(Payment.amount)))).scalar() or 0.0
            paid = (await self.db.execute(
                select(func.count(Parcel.id)).where(Parcel.payment_status == PaymentStatus.PAID)
            )).scalar() or 0
            average = await self.engine.average_delivery_duration()

            return DashboardStats(
                total_users=await self._count(User),
                total_riders=await self._count(Rider),
                riders_by_status=await self._grouped(Rider.status),
                total_parcels=await self._count(Parcel),
                parcels_by_status=await self._grouped(Parcel.delivery_status),
                paid_parcels=paid,
                total_revenue=float(revenue),
                average_delivery_minutes=average["average_minutes"],
            ).model_dump(mode="json")

        return DashboardStats.model_validate(await self.cache.get_or_compute("dashboard", compute))

    async def revenue_stats(self, days: int = 30) -> RevenueStats:
        """
        Revenue per calendar day (UTC) over the last ``days`` days, today
        included. Days without payments are reported as zero.
        """

        async def compute():
            today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
            since = today - timedelta(days=days - 1)

            result = await self.db.execute(
                select(Payment.paid_at, Payment.amount).where(Payment.paid_at >= since)
            )
            buckets: Dict[str, Tuple[float, int]] = defaultdict(lambda: (0.0, 0))
            for paid_at, amount in result.all():
                day = as_utc(paid_at).date().isoformat()
                total, count = buckets[day]
                buckets[day] = (total + amount, count + 1)

            daily = []
            for offset in range(days):
                day = (since + timedelta(days=offset)).date().isoformat()
                total, count = buckets.get(day, (0.0, 0))
                daily.append(DailyRevenue(date=day, revenue=round(total, 2), payments=count))

            return RevenueStats(
                days=days,
                total_revenue=round(sum(item.revenue for item in daily), 2),
                total_payments=sum(item.payments for item in daily),
                daily=daily,
            ).model_dump(mode="json")

        data = await self.cache.get_or_compute(f"revenue:{days}", compute)
        return RevenueStats.model_validate(data)

    async def top_riders(self, limit: int = 5):
        """Riders ranked by delivered parcels, then by delivered amount."""

        async def compute():
            delivered_count = func.count(Parcel.id).label("delivered_count")
            delivered_amount = func.coalesce(func.sum(Parcel.amount), 0).label("delivered_amount")
            result = await self.db.execute(
                select(
                    Parcel.rider_email,
                    func.max(Parcel.rider_name).label("rider_name"),
                    delivered_count,
                    delivered_amount,
                )
                .where(
                    Parcel.delivery_status == DeliveryStatus.DELIVERED,
                    Parcel.rider_email.isnot(None),
                )
                .group_by(Parcel.rider_email)
                .order_by(desc(delivered_count), desc(delivered_amount), Parcel.rider_email)
                .limit(limit)
            )
            return [
                TopRider(
                    rider_email=row.rider_email,
                    rider_name=row.rider_name,
                    delivered_count=row.delivered_count,
                    delivered_amount=float(row.delivered_amount),
                ).model_dump(mode="json")
                for row in result
            ]

        data = await self.cache.get_or_compute(f"top-riders:{limit}", compute)
        return [TopRider.model_validate(item) for item in data]

    async def _month_metrics(self, start: datetime, end: datetime) -> MonthMetrics:
        created = (await self.db.execute(
            select(func.count(Parcel.id)).where(Parcel.created_at >= start, Parcel.created_at < end)
        )).scalar() or 0
        delivered = (await self.db.execute(
            select(func.count(func.distinct(TrackingEvent.tracking_id))).where(
                TrackingEvent.status == TrackingStatus.DELIVERED,
                TrackingEvent.created_at >= start,
                TrackingEvent.created_at < end,
            )
        )).scalar() or 0
        revenue = (await self.db.execute(
            select(func.sum(Payment.amount)).where(Payment.paid_at >= start, Payment.paid_at < end)
        )).scalar() or 0.0

        return MonthMetrics(
            month=start.strftime("%Y-%m"),
            parcels_created=created,
            parcels_delivered=delivered,
            revenue=round(float(revenue), 2),
        )

    async def monthly_comparison(self) -> MonthlyComparison:
        """This calendar month so far against the whole previous month."""

        async def compute():
            now = utcnow()
            current_start = _month_start(now)
            previous_start = _previous_month_start(current_start)

            current = await self._month_metrics(current_start, now + timedelta(seconds=1))
            previous = await self._month_metrics(previous_start, current_start)

            return MonthlyComparison(
                current=current,
                previous=previous,
                parcels_change_pct=_change_pct(current.parcels_created, previous.parcels_created),
                deliveries_change_pct=_change_pct(current.parcels_delivered, previous.parcels_delivered),
                revenue_change_pct=_change_pct(current.revenue, previous.revenue),
            ).model_dump(mode="json")

        data = await self.cache.get_or_compute("monthly-comparison", compute)
        return MonthlyComparison.model_validate(data)
