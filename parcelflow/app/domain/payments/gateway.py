"""
Payment gateway adapter.

The platform takes parcel payments through Stripe Checkout. Only the fields
this service reads and writes are modelled; everything else about the
checkout page is the gateway's business.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable
from urllib.parse import urlencode

import httpx

from parcelflow.app.core.config import settings
from parcelflow.app.core.exceptions import ExternalServiceError
from parcelflow.app.core.reliability import CircuitBreaker, CircuitOpenError

logger = logging.getLogger(__name__)

GATEWAY_NAME = "payment-gateway"


def is_gateway_fault(exc: BaseException) -> bool:
    """Transport errors and 5xx responses count against the breaker; 4xx do not."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, httpx.HTTPError)


# Shared by every gateway client in the process
gateway_breaker = CircuitBreaker(
    failure_threshold=5, reset_timeout=30, name=GATEWAY_NAME, counts_as_failure=is_gateway_fault
)


@dataclass
class CheckoutSession:
    """The subset of a gateway checkout session the platform uses."""
    id: str
    url: Optional[str] = None
    payment_intent: Optional[str] = None
    payment_status: str = "unpaid"
    amount_total: int = 0
    currency: str = ""
    customer_email: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CheckoutSession":
        payment_intent = payload.get("payment_intent")
        if isinstance(payment_intent, dict):
            payment_intent = payment_intent.get("id")
        return cls(
            id=payload["id"],
            url=payload.get("url"),
            payment_intent=payment_intent,
            payment_status=payload.get("payment_status") or "unpaid",
            amount_total=payload.get("amount_total") or 0,
            currency=payload.get("currency") or "",
            customer_email=payload.get("customer_email")
            or (payload.get("customer_details") or {}).get("email"),
            metadata=dict(payload.get("metadata") or {}),
        )


@runtime_checkable
class PaymentGateway(Protocol):
    """What the reconciliation service needs from a payment gateway."""

    async def create_checkout_session(
        self,
        *,
        amount_minor: int,
        currency: str,
        product_name: str,
        customer_email: Optional[str],
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
        idempotency_key: Optional[str] = None,
    ) -> CheckoutSession: ...

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession: ...


def encode_form(data: Dict[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """
    Flatten nested dicts/lists into Stripe's bracketed form encoding.

    ``{"metadata": {"a": 1}}`` -> ``[("metadata[a]", "1")]``
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            pairs.extend(encode_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, dict):
                    pairs.extend(encode_form(item, item_name))
                else:
                    pairs.append((item_name, str(item)))
        else:
            pairs.append((name, str(value)))
    return pairs


class StripeGateway:
    """
    Stripe Checkout over its REST API.

    Every call has a timeout and goes through a circuit breaker so a hung or
    failing gateway cannot pile up requests.
    """

    def __init__(
        self,
        secret_key: str,
        api_base: str = "https://api.stripe.com/v1",
        timeout: float = 10.0,
        breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.breaker = breaker or gateway_breaker
        self.transport = transport

    @classmethod
    def from_settings(cls) -> "StripeGateway":
        return cls(
            secret_key=settings.stripe_secret_key,
            api_base=settings.stripe_api_base,
            timeout=settings.gateway_timeout_seconds,
        )

    async def _send(
        self,
        method: str,
        path: str,
        form: Optional[List[Tuple[str, str]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        async with httpx.AsyncClient(
            base_url=self.api_base,
            auth=(self.secret_key, ""),
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            if form is not None:
                headers = {**(headers or {}), "Content-Type": "application/x-www-form-urlencoded"}
            response = await client.request(
                method, path, content=urlencode(form) if form is not None else None, headers=headers
            )
            response.raise_for_status()
            return response.json()

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        if not self.secret_key:
            raise ExternalServiceError(GATEWAY_NAME, "secret key is not configured")
        try:
            return await self.breaker.call(self._send, method, path, **kwargs)
        except CircuitOpenError as exc:
            raise ExternalServiceError(GATEWAY_NAME, "temporarily unavailable") from exc
        except httpx.HTTPStatusError as exc:
            logger.error("Gateway %s %s returned %s", method, path, exc.response.status_code)
            raise ExternalServiceError(
                GATEWAY_NAME, f"request failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Gateway %s %s failed: %s", method, path, exc)
            raise ExternalServiceError(GATEWAY_NAME, "request failed") from exc

    async def create_checkout_session(
        self,
        *,
        amount_minor: int,
        currency: str,
        product_name: str,
        customer_email: Optional[str],
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
        idempotency_key: Optional[str] = None,
    ) -> CheckoutSession:
        form = encode_form({
            "mode": "payment",
            "line_items": [{
                "price_data": {
                    "currency": currency,
                    "unit_amount": amount_minor,
                    "product_data": {"name": product_name},
                },
                "quantity": 1,
            }],
            "metadata": metadata,
            "customer_email": customer_email,
            "success_url": success_url,
            "cancel_url": cancel_url,
        })
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        payload = await self._request("POST", "/checkout/sessions", form=form, headers=headers)
        return CheckoutSession.from_payload(payload)

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        payload = await self._request("GET", f"/checkout/sessions/{session_id}")
        return CheckoutSession.from_payload(payload)


_gateway: Optional[StripeGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency returning the process-wide gateway client."""
    global _gateway
    if _gateway is None:
        _gateway = StripeGateway.from_settings()
    return _gateway
