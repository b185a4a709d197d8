"""
Authentication and service dependencies for FastAPI.

``get_caller`` turns a Bearer ID token into a ``CallerContext``; the role
always comes from the users table, never from the token. The remaining
providers build the domain services for one request, all sharing that
request's database session.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from parcelflow.app.core.exceptions import AuthError
from parcelflow.app.core.identity import CallerContext, FirebaseTokenVerifier, get_token_verifier
from parcelflow.app.core.redis_client import get_redis
from parcelflow.app.db.session import get_db, get_session_factory
from parcelflow.app.domain.parcels.lifecycle import ParcelLifecycleEngine
from parcelflow.app.domain.payments.gateway import PaymentGateway, get_payment_gateway
from parcelflow.app.domain.payments.reconciliation import PaymentReconciliationService
from parcelflow.app.models.enums import UserRole
from parcelflow.app.models.user import User
from parcelflow.app.services.analytics import ReportService
from parcelflow.app.services.notification_service import NotificationService
from parcelflow.app.services.report_cache import ReportCache
from parcelflow.app.services.rider_work_state import RiderWorkStateManager
from parcelflow.app.services.tracking_ledger import TrackingLedger

# HTTP Bearer security scheme; missing credentials are reported as AuthError
security = HTTPBearer(auto_error=False)


async def get_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verifier: FirebaseTokenVerifier = Depends(get_token_verifier),
    db: AsyncSession = Depends(get_db),
) -> CallerContext:
    """
    Resolve the authenticated caller.

    Raises:
        AuthError: 401 if the token is missing or does not verify
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("unauthorized access")

    claims = await verifier.verify(credentials.credentials)
    email = claims["email"]

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    # Signed in but not registered yet: treated as a plain user
    return CallerContext(
        email=email,
        role=user.role if user else UserRole.USER,
        user_id=user.id if user else None,
        claims=claims,
    )


def get_tracking_ledger(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> TrackingLedger:
    return TrackingLedger(session_factory)


def get_notifier(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> NotificationService:
    return NotificationService(session_factory)


def get_rider_manager(db: AsyncSession = Depends(get_db)) -> RiderWorkStateManager:
    return RiderWorkStateManager(db)


def get_lifecycle_engine(
    db: AsyncSession = Depends(get_db),
    ledger: TrackingLedger = Depends(get_tracking_ledger),
    riders: RiderWorkStateManager = Depends(get_rider_manager),
    notifier: NotificationService = Depends(get_notifier),
) -> ParcelLifecycleEngine:
    return ParcelLifecycleEngine(db, ledger, riders, notifier)


def get_reconciliation_service(
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    engine: ParcelLifecycleEngine = Depends(get_lifecycle_engine),
    ledger: TrackingLedger = Depends(get_tracking_ledger),
    notifier: NotificationService = Depends(get_notifier),
) -> PaymentReconciliationService:
    return PaymentReconciliationService(db, gateway, engine, ledger, notifier)


async def get_report_cache(redis=Depends(get_redis)) -> ReportCache:
    return ReportCache(redis)


def get_report_service(
    db: AsyncSession = Depends(get_db),
    engine: ParcelLifecycleEngine = Depends(get_lifecycle_engine),
    cache: ReportCache = Depends(get_report_cache),
) -> ReportService:
    return ReportService(db, engine, cache)
