"""Request/response schemas for payment endpoints."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from habitquest.ledger.schemas import PenaltyResponse


class PaymentStatusResponse(BaseModel):
    enabled: bool
    currency: str


class PaymentIntentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    penalty_ids: list[int] = Field(min_length=1, max_length=100)


class PaymentIntentResponse(BaseModel):
    payment_intent_id: str
    client_secret: str | None = None
    amount: Decimal
    currency: str
    penalty_ids: list[int]


class PaymentConfirmRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    payment_intent_id: str = Field(min_length=1, max_length=128)


class PaymentConfirmResponse(BaseModel):
    penalties: list[PenaltyResponse]


class WebhookResponse(BaseModel):
    received: bool = True
    settled: int = 0
