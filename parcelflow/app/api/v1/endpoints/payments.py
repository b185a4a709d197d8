"""
Payment API Endpoints.

Checkout opening, settlement confirmation on the gateway's success redirect,
and payment history.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from parcelflow.app.core.dependencies import get_caller, get_reconciliation_service
from parcelflow.app.core.guards import Capability, enforce, owner_scope
from parcelflow.app.core.identity import CallerContext
from parcelflow.app.domain.payments.reconciliation import PaymentReconciliationService
from parcelflow.app.schemas.payment import (
    CheckoutRequest, CheckoutResponse, PaymentResponse, SettlementResponse,
)

router = APIRouter(tags=["Payments"])


@router.post("/create-checkout-session", response_model=CheckoutResponse)
async def create_checkout_session(
    request: CheckoutRequest,
    caller: CallerContext = Depends(get_caller),
    payments: PaymentReconciliationService = Depends(get_reconciliation_service)
):
    """Open a checkout session for the caller's parcel and return its URL."""
    parcel = await payments.engine.get(request.parcel_id)
    enforce(Capability.OWNER, caller, parcel.sender_email, "parcel")

    session = await payments.open_checkout(parcel.id)
    return CheckoutResponse(session_id=session.id, url=session.url)


@router.patch("/payment-success", response_model=SettlementResponse)
async def confirm_payment(
    session_id: str = Query(..., min_length=1, description="Gateway checkout session id"),
    payments: PaymentReconciliationService = Depends(get_reconciliation_service)
):
    """
    Confirm a checkout session after the gateway redirect.

    Safe to call repeatedly: a session is recorded as a payment at most once,
    and later calls return the recorded payment with ``already_recorded``.
    """
    return await payments.confirm_settlement(session_id)


@router.get("/payment-history", response_model=List[PaymentResponse])
async def payment_history(
    email: Optional[str] = Query(None, description="Customer email"),
    caller: CallerContext = Depends(get_caller),
    payments: PaymentReconciliationService = Depends(get_reconciliation_service)
):
    """Payments newest first. Customers only see their own."""
    customer_email = owner_scope(caller, email)
    history = await payments.payment_history(customer_email)
    return [PaymentResponse.model_validate(payment) for payment in history]
