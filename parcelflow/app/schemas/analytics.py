"""
Admin report schemas.
"""

from pydantic import BaseModel
from typing import List, Optional, Dict


class DashboardStats(BaseModel):
    """Headline numbers for the admin dashboard."""
    total_users: int
    total_riders: int
    riders_by_status: Dict[str, int]
    total_parcels: int
    parcels_by_status: Dict[str, int]
    paid_parcels: int
    total_revenue: float
    average_delivery_minutes: Optional[int]


class DailyRevenue(BaseModel):
    date: str
    revenue: float
    payments: int


class RevenueStats(BaseModel):
    days: int
    total_revenue: float
    total_payments: int
    daily: List[DailyRevenue]


class TopRider(BaseModel):
    rider_email: str
    rider_name: Optional[str]
    delivered_count: int
    delivered_amount: float


class MonthMetrics(BaseModel):
    month: str
    parcels_created: int
    parcels_delivered: int
    revenue: float


class MonthlyComparison(BaseModel):
    current: MonthMetrics
    previous: MonthMetrics
    parcels_change_pct: Optional[float]
    deliveries_change_pct: Optional[float]
    revenue_change_pct: Optional[float]
