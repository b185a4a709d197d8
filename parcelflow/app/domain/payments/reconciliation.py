"""
Payment Reconciliation Service (Domain Logic).

Turns a gateway checkout session into a local payment record and drives
the parcel's "paid" transition.

Settlement confirmation may be called any number of times for the same
session (browser redirects, retries). Exactly one Payment row exists per
gateway transaction id:

1. Look up an existing payment by the session's payment intent; if found,
   return it without writing.
2. Otherwise insert it in the same transaction as the parcel update. The
   unique index on ``payments.transaction_id`` turns a concurrent duplicate
   into an IntegrityError, which resolves to the row that won.
"""

import logging
from typing import List, Optional

from sqlalchemy import select, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.app.core.config import settings
from parcelflow.app.core.exceptions import ConflictError, ExternalServiceError, ValidationError
from parcelflow.app.core.timeutils import utcnow
from parcelflow.app.domain.parcels.lifecycle import ParcelLifecycleEngine
from parcelflow.app.domain.payments.gateway import CheckoutSession, PaymentGateway, GATEWAY_NAME
from parcelflow.app.models.notification import NotificationType
from parcelflow.app.models.parcel_enums import PaymentStatus
from parcelflow.app.models.payment import Payment
from parcelflow.app.schemas.notification import NotificationEvent
from parcelflow.app.schemas.payment import SettlementResponse
from parcelflow.app.services.notification_service import NotificationService
from parcelflow.app.services.tracking_ledger import TrackingLedger, TrackingStatus

logger = logging.getLogger(__name__)

GATEWAY_PAID = "paid"


class PaymentReconciliationService:

    def __init__(
        self,
        db: AsyncSession,
        gateway: PaymentGateway,
        engine: ParcelLifecycleEngine,
        ledger: TrackingLedger,
        notifier: NotificationService,
        currency: Optional[str] = None,
        site_domain: Optional[str] = None,
    ):
        self.db = db
        self.gateway = gateway
        self.engine = engine
        self.ledger = ledger
        self.notifier = notifier
        self.currency = currency or settings.payment_currency
        self.site_domain = (site_domain or settings.site_domain).rstrip("/")

    async def open_checkout(self, parcel_id: int) -> CheckoutSession:
        """
        Open a gateway checkout session for a parcel's delivery charge.

        Raises:
            NotFoundError: parcel missing
            ConflictError: parcel already paid
        """
        parcel = await self.engine.get(parcel_id)
        if parcel.payment_status == PaymentStatus.PAID:
            raise ConflictError("Parcel is already paid", details={"tracking_id": parcel.tracking_id})

        session = await self.gateway.create_checkout_session(
            amount_minor=int(round(parcel.amount * 100)),
            currency=self.currency,
            product_name=parcel.parcel_name,
            customer_email=parcel.sender_email,
            metadata={
                "parcel_id": str(parcel.id),
                "parcel_name": parcel.parcel_name,
                "tracking_id": parcel.tracking_id,
            },
            success_url=(
                f"{self.site_domain}/dashboard/payment-success"
                "?success=true&session_id={CHECKOUT_SESSION_ID}"
            ),
            cancel_url=f"{self.site_domain}/dashboard/my-parcels",
            idempotency_key=f"checkout-{parcel.tracking_id}",
        )
        logger.info("Checkout session %s opened for parcel %s", session.id, parcel.tracking_id)
        return session

    async def _find_payment(self, transaction_id: str) -> Optional[Payment]:
        result = await self.db.execute(
            select(Payment).where(Payment.transaction_id == transaction_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _already_recorded(payment: Payment) -> SettlementResponse:
        return SettlementResponse(
            success=True,
            already_recorded=True,
            transaction_id=payment.transaction_id,
            tracking_id=payment.tracking_id,
            amount=payment.amount,
            paid_at=payment.paid_at,
        )

    async def confirm_settlement(self, session_id: str) -> SettlementResponse:
        """
        Reconcile a checkout session into a payment record.

        Returns ``success=False`` without side effects when the gateway does
        not report the session as paid.

        Raises:
            ExternalServiceError: gateway unreachable, or a paid session without a payment intent
            ValidationError: session metadata does not reference a parcel
            NotFoundError: referenced parcel missing
        """
        session = await self.gateway.retrieve_checkout_session(session_id)
        transaction_id = session.payment_intent

        if transaction_id:
            existing = await self._find_payment(transaction_id)
            if existing:
                logger.info("Payment %s already recorded, nothing to do", transaction_id)
                return self._already_recorded(existing)

        if session.payment_status != GATEWAY_PAID:
            logger.info("Session %s is '%s', not settling", session_id, session.payment_status)
            return SettlementResponse(success=False)

        if not transaction_id:
            raise ExternalServiceError(GATEWAY_NAME, "paid session has no payment intent")

        try:
            parcel_id = int(session.metadata.get("parcel_id", ""))
        except ValueError:
            raise ValidationError(
                "Checkout session does not reference a parcel",
                details={"session_id": session_id}
            )

        parcel = await self.engine.mark_paid(parcel_id, session.metadata.get("tracking_id"))

        payment = Payment(
            transaction_id=transaction_id,
            amount=session.amount_total / 100,
            currency=session.currency,
            payment_status=session.payment_status,
            customer_email=session.customer_email,
            parcel_id=parcel.id,
            parcel_name=session.metadata.get("parcel_name") or parcel.parcel_name,
            tracking_id=parcel.tracking_id,
            paid_at=utcnow(),
        )
        self.db.add(payment)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self._find_payment(transaction_id)
            if existing is None:
                raise
            logger.info("Payment %s recorded by a concurrent confirmation", transaction_id)
            return self._already_recorded(existing)

        logger.info("Payment %s recorded for parcel %s", transaction_id, payment.tracking_id)

        await self.ledger.record(payment.tracking_id, TrackingStatus.PARCEL_PAID)
        await self.notifier.emit(NotificationEvent(
            type=NotificationType.PAYMENT_RECEIVED,
            title="Payment received",
            message=(
                f"{payment.customer_email or 'A customer'} paid {payment.amount:g} "
                f"{payment.currency.upper()} for {payment.tracking_id}"
            ),
            related_id=str(payment.parcel_id),
            tracking_id=payment.tracking_id,
            metadata={"transaction_id": transaction_id, "amount": payment.amount},
        ))

        return SettlementResponse(
            success=True,
            transaction_id=transaction_id,
            tracking_id=payment.tracking_id,
            amount=payment.amount,
            paid_at=payment.paid_at,
        )

    async def payment_history(self, customer_email: Optional[str] = None) -> List[Payment]:
        """Payments, newest first, optionally for one customer."""
        query = select(Payment)
        if customer_email:
            query = query.where(Payment.customer_email == customer_email)
        query = query.order_by(desc(Payment.paid_at), desc(Payment.id))

        result = await self.db.execute(query)
        return list(result.scalars().all())
