"""
Payment Pydantic schemas.
"""

from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class CheckoutRequest(BaseModel):
    parcel_id: int


class CheckoutResponse(BaseModel):
    session_id: str
    url: Optional[str]


class SettlementResponse(BaseModel):
    """
    Result of confirming a checkout session.

    ``already_recorded`` is True when the payment had been confirmed before
    and nothing was written this time.
    """
    success: bool
    already_recorded: bool = False
    transaction_id: Optional[str] = None
    tracking_id: Optional[str] = None
    amount: Optional[float] = None
    paid_at: Optional[datetime] = None


class PaymentResponse(BaseModel):
    id: int
    transaction_id: str
    amount: float
    currency: str
    payment_status: str
    customer_email: Optional[str]
    parcel_id: int
    parcel_name: Optional[str]
    tracking_id: str
    paid_at: datetime

    model_config = ConfigDict(from_attributes=True)
