"""Payment endpoints: penalty checkout through Stripe."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from habitquest.auth.dependencies import get_current_user
from habitquest.config import get_settings
from habitquest.database import get_session
from habitquest.db.models import UserProfile
from habitquest.errors import NotConfiguredError
from habitquest.ledger.schemas import PenaltyResponse
from habitquest.payments.gateway import BasePaymentGateway, get_payment_gateway, verify_webhook_signature
from habitquest.payments.schemas import (
    PaymentConfirmRequest,
    PaymentConfirmResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
    PaymentStatusResponse,
    WebhookResponse,
)
from habitquest.payments.service import (
    confirm_penalty_payment,
    create_penalty_payment,
    handle_webhook_event,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/payments", tags=["Payments"])


@router.get("/status", response_model=PaymentStatusResponse)
async def payment_status() -> PaymentStatusResponse:
    """Whether payment processing is configured."""
    settings = get_settings()
    return PaymentStatusResponse(enabled=settings.payments_enabled, currency=settings.payment_currency)


@router.post("/intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    body: PaymentIntentRequest,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    gateway: BasePaymentGateway = Depends(get_payment_gateway),
) -> PaymentIntentResponse:
    """Open a payment intent covering the selected unpaid penalties."""
    settings = get_settings()
    payment = await create_penalty_payment(
        db, gateway, user.id, body.penalty_ids, settings.payment_currency
    )
    return PaymentIntentResponse(
        payment_intent_id=payment.intent.id,
        client_secret=payment.intent.client_secret,
        amount=payment.total,
        currency=payment.intent.currency,
        penalty_ids=payment.penalty_ids,
    )


@router.post("/confirm", response_model=PaymentConfirmResponse)
async def confirm_payment(
    body: PaymentConfirmRequest,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    gateway: BasePaymentGateway = Depends(get_payment_gateway),
) -> PaymentConfirmResponse:
    """Mark penalties paid once the provider reports the intent succeeded."""
    penalties = await confirm_penalty_payment(db, gateway, user.id, body.payment_intent_id)
    logger.info("payment_confirmed", intent_id=body.payment_intent_id, penalties=len(penalties))
    return PaymentConfirmResponse(penalties=[PenaltyResponse.model_validate(p) for p in penalties])


@router.post("/webhook", response_model=WebhookResponse)
async def payment_webhook(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> WebhookResponse:
    """Stripe webhook endpoint (signature-verified, no bearer token)."""
    settings = get_settings()
    if not settings.payments_enabled or not settings.stripe_webhook_secret:
        raise NotConfiguredError

    payload = await request.body()
    event = verify_webhook_signature(
        payload,
        request.headers.get("Stripe-Signature"),
        settings.stripe_webhook_secret,
        tolerance=settings.stripe_webhook_tolerance_seconds,
    )
    settled = await handle_webhook_event(db, event)
    logger.info("webhook_processed", event_type=event.get("type"), settled=settled)
    return WebhookResponse(settled=settled)
