"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from parcelflow.app.api.v1.endpoints import (
    users, riders, parcels, payments,
    trackings, notifications, admin_reports
)

router = APIRouter()

router.include_router(users.router)
router.include_router(riders.router)
router.include_router(parcels.router)

# Checkout, settlement confirmation and history
router.include_router(payments.router)

# Public tracking lookup
router.include_router(trackings.router)

# Admin inbox and reports
router.include_router(notifications.router)
router.include_router(admin_reports.router)
