"""Penalty payments: intent creation, confirmation and webhook settlement.

The charge is always computed from the caller's own unpaid penalties; a
client never supplies the amount. Nothing in the ledger changes until the
provider reports the intent as succeeded.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from habitquest.errors import InvalidInputError, PaymentNotCompletedError
from habitquest.ledger.service import get_unpaid_penalties, mark_penalties_paid
from habitquest.payments.gateway import idempotency_key, to_minor_units

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from habitquest.db.models import Penalty
    from habitquest.payments.gateway import BasePaymentGateway, PaymentIntent

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
SUCCEEDED_EVENT = "payment_intent.succeeded"


@dataclass
class PenaltyPayment:
    intent: PaymentIntent
    penalty_ids: list[int]
    total: Decimal


def _penalty_ids_from_metadata(metadata: dict[str, Any]) -> list[int]:
    try:
        ids = json.loads(metadata.get("penalty_ids", "[]"))
        return [int(i) for i in ids]
    except (TypeError, ValueError) as exc:
        raise InvalidInputError("Payment intent carries malformed penalty ids") from exc


async def create_penalty_payment(
    db: AsyncSession,
    gateway: BasePaymentGateway,
    user_id: int,
    penalty_ids: list[int],
    currency: str,
) -> PenaltyPayment:
    """Open a payment intent for the sum of the selected unpaid penalties."""
    penalties = await get_unpaid_penalties(db, user_id, penalty_ids)
    ids = sorted(p.id for p in penalties)
    total = sum((p.amount for p in penalties), Decimal("0.00"))
    amount = to_minor_units(total)
    if amount <= 0:
        raise InvalidInputError("Nothing to pay for the selected penalties")

    intent = await gateway.create_intent(
        amount=amount,
        currency=currency,
        metadata={"user_id": str(user_id), "penalty_ids": json.dumps(ids)},
        idempotency_key=idempotency_key(user_id, ids),
    )
    logger.info("Payment intent %s opened for user %s (%s %s)", intent.id, user_id, total, currency)
    return PenaltyPayment(intent=intent, penalty_ids=ids, total=total)


async def confirm_penalty_payment(
    db: AsyncSession,
    gateway: BasePaymentGateway,
    user_id: int,
    intent_id: str,
) -> list[Penalty]:
    """Settle the penalties referenced by a succeeded intent of this user."""
    intent = await gateway.retrieve_intent(intent_id)
    if intent.metadata.get("user_id") != str(user_id):
        raise InvalidInputError("Payment intent does not belong to this user")
    if intent.status != SUCCEEDED:
        raise PaymentNotCompletedError(f"Payment has not succeeded (status: {intent.status})")

    penalty_ids = _penalty_ids_from_metadata(intent.metadata)
    return await mark_penalties_paid(db, user_id, penalty_ids, intent.id)


async def handle_webhook_event(db: AsyncSession, event: dict[str, Any]) -> int:
    """Apply a verified provider event. Returns the number of penalties touched.

    Only payment_intent.succeeded is acted on; other events are acknowledged.
    """
    event_type = event.get("type")
    if event_type != SUCCEEDED_EVENT:
        logger.debug("Ignoring webhook event %s", event_type)
        return 0

    intent = (event.get("data") or {}).get("object") or {}
    metadata = intent.get("metadata") or {}
    try:
        user_id = int(metadata["user_id"])
    except (KeyError, TypeError, ValueError):
        logger.warning("Webhook intent %s has no usable user_id", intent.get("id"))
        return 0

    # Acknowledge malformed metadata; a 4xx would only make the provider retry it
    try:
        penalty_ids = _penalty_ids_from_metadata(metadata)
    except InvalidInputError:
        logger.warning("Webhook intent %s has malformed penalty_ids", intent.get("id"))
        return 0
    penalties = await mark_penalties_paid(db, user_id, penalty_ids, intent.get("id", ""))
    logger.info("Webhook settled intent %s for user %s", intent.get("id"), user_id)
    return len(penalties)
