"""Domain exceptions.

Every error carries the HTTP status and machine-readable code it is rendered
with by the global handler in habitquest.middleware.error_handler.
"""

from __future__ import annotations


class HabitQuestError(Exception):
    """Base exception for all domain errors."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class InvalidInputError(HabitQuestError):
    """Invalid input"""

    code = "invalid_input"


# --- Not found ---


class NotFoundError(HabitQuestError):
    """Resource not found"""

    status_code = 404
    code = "not_found"


class ProfileNotFoundError(NotFoundError):
    """Profile not found"""


class HabitNotFoundError(NotFoundError):
    """Habit not found"""


class PenaltyNotFoundError(NotFoundError):
    """Penalty not found"""


class RewardNotFoundError(NotFoundError):
    """Reward not found"""


class SkillNotFoundError(NotFoundError):
    """Skill not found"""


# --- Domain conflicts ---


class ConflictError(HabitQuestError):
    status_code = 409
    code = "conflict"


class AlreadyCompletedError(ConflictError):
    """Habit already completed for this date"""

    code = "already_completed"


class HabitNotMissedError(ConflictError):
    """Habit was completed on that date"""

    code = "habit_not_missed"


class DayPenalizedError(ConflictError):
    """A penalty was already assessed for this date"""

    code = "day_penalized"


class InsufficientLevelError(ConflictError):
    """Level too low to unlock this skill"""

    code = "insufficient_level"


class InsufficientCurrencyError(ConflictError):
    """Not enough currency to unlock this skill"""

    code = "insufficient_currency"


# --- Payments ---


class NotConfiguredError(HabitQuestError):
    """Payment processing is not configured"""

    status_code = 501
    code = "not_configured"


class PaymentNotCompletedError(ConflictError):
    """Payment has not succeeded yet"""

    code = "payment_not_completed"


class GatewayError(HabitQuestError):
    """Payment gateway error"""

    status_code = 502
    code = "gateway_error"


class WebhookSignatureError(InvalidInputError):
    """Invalid webhook signature"""

    code = "invalid_signature"
