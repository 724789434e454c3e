"""
Payment gateway with provider abstraction.

Stripe is the only provider; it is called over its REST API with httpx.
The gateway is a FastAPI dependency so tests can swap in a fake.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import httpx
import structlog

from habitquest.config import get_settings
from habitquest.errors import GatewayError, InvalidInputError, NotConfiguredError, WebhookSignatureError

logger = structlog.get_logger()


@dataclass(frozen=True)
class PaymentIntent:
    """Provider-neutral view of a payment intent."""

    id: str
    amount: int  # minor units
    currency: str
    status: str
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_stripe(cls, data: dict[str, Any]) -> PaymentIntent:
        return cls(
            id=data["id"],
            amount=int(data["amount"]),
            currency=data["currency"],
            status=data["status"],
            client_secret=data.get("client_secret"),
            metadata=dict(data.get("metadata") or {}),
        )


def to_minor_units(amount: Decimal) -> int:
    """Decimal currency amount -> integer cents."""
    return int((amount * 100).quantize(Decimal("1")))


def idempotency_key(user_id: int, penalty_ids: list[int]) -> str:
    """Stable key for one user paying one set of penalties."""
    raw = f"penalties:{user_id}:{','.join(str(i) for i in sorted(penalty_ids))}"
    return f"hq-{hashlib.sha256(raw.encode()).hexdigest()[:32]}"


class BasePaymentGateway(ABC):
    """Abstract base class for payment providers."""

    @abstractmethod
    async def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> PaymentIntent:
        """Create a payment intent for ``amount`` minor units."""
        ...

    @abstractmethod
    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        """Fetch the current state of a payment intent."""
        ...


class StripeGateway(BasePaymentGateway):
    """Stripe PaymentIntents over the REST API. No retries are attempted here."""

    def __init__(
        self,
        secret_key: str,
        api_base: str = "https://api.stripe.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        data: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.api_base,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    path,
                    data=data,
                    headers={"Authorization": f"Bearer {self.secret_key}", **(headers or {})},
                )
        except httpx.HTTPError as exc:
            logger.warning("stripe_request_failed", path=path, error=str(exc))
            raise GatewayError(f"Payment provider unreachable: {exc}") from exc

        if response.status_code >= 400:
            try:
                message = response.json().get("error", {}).get("message", response.text)
            except ValueError:
                message = response.text
            logger.warning("stripe_error", path=path, status=response.status_code, message=message)
            raise GatewayError(f"Payment provider error: {message}")

        return response.json()

    async def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> PaymentIntent:
        form = {
            "amount": str(amount),
            "currency": currency,
            "automatic_payment_methods[enabled]": "true",
        }
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = value
        data = await self._request(
            "POST",
            "/v1/payment_intents",
            data=form,
            headers={"Idempotency-Key": idempotency_key},
        )
        intent = PaymentIntent.from_stripe(data)
        logger.info("payment_intent_created", intent_id=intent.id, amount=amount, currency=currency)
        return intent

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        data = await self._request("GET", f"/v1/payment_intents/{intent_id}")
        return PaymentIntent.from_stripe(data)


def get_payment_gateway() -> BasePaymentGateway:
    """FastAPI dependency; raises NotConfiguredError when no Stripe key is set."""
    settings = get_settings()
    if not settings.payments_enabled:
        raise NotConfiguredError
    return StripeGateway(
        secret_key=settings.stripe_secret_key,
        api_base=settings.stripe_api_base,
        timeout=settings.payment_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    """HMAC-SHA256 of ``"{timestamp}.{payload}"``, as Stripe signs webhooks."""
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def verify_webhook_signature(
    payload: bytes,
    signature_header: str | None,
    secret: str,
    tolerance: int = 300,
    now: int | None = None,
) -> dict[str, Any]:
    """Check a Stripe-Signature header and return the decoded event.

    The header looks like ``t=1700000000,v1=<hex>[,v1=<hex>...]``.
    """
    if not signature_header:
        raise WebhookSignatureError("Missing signature header")

    timestamp: int | None = None
    signatures: list[str] = []
    for item in signature_header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise WebhookSignatureError("Malformed signature timestamp") from None
        elif key == "v1":
            signatures.append(value)

    if timestamp is None or not signatures:
        raise WebhookSignatureError("Malformed signature header")

    current = int(time.time()) if now is None else now
    if abs(current - timestamp) > tolerance:
        raise WebhookSignatureError("Signature timestamp outside tolerance")

    expected = compute_signature(payload, secret, timestamp)
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise WebhookSignatureError

    try:
        event = json.loads(payload)
    except ValueError:
        raise InvalidInputError("Webhook payload is not valid JSON") from None
    if not isinstance(event, dict):
        raise InvalidInputError("Webhook payload must be a JSON object")
    return event
