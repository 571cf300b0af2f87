"""Payout lifecycle rules - legal transitions and scheduling preconditions"""

from datetime import date
from typing import Iterable, Set, Tuple
from commission_gateway.domain.models import PayoutStatus
from commission_gateway.domain.exceptions import InvalidDate, InvalidState, ValidationError

# Legal transitions: (from_status, to_status). Anything else is rejected.
PAYOUT_TRANSITIONS: Set[Tuple[PayoutStatus, PayoutStatus]] = {
    (PayoutStatus.READY, PayoutStatus.SCHEDULED),
    (PayoutStatus.READY, PayoutStatus.FAILED),
    (PayoutStatus.SCHEDULED, PayoutStatus.PAID),
    (PayoutStatus.SCHEDULED, PayoutStatus.FAILED),
}

TERMINAL_STATUSES = frozenset({PayoutStatus.PAID, PayoutStatus.FAILED})


def ensure_transition(current: str, target: PayoutStatus) -> None:
    """
    Reject any payout transition not in the legal set.

    Raises:
        InvalidState: If current -> target is not allowed
    """
    try:
        current_status = PayoutStatus(current)
    except ValueError as e:
        raise InvalidState(f"Unknown payout status '{current}'") from e

    if (current_status, target) not in PAYOUT_TRANSITIONS:
        allowed = sorted(t.value for (s, t) in PAYOUT_TRANSITIONS if s == current_status)
        raise InvalidState(
            f"Cannot move payout from '{current_status.value}' to '{target.value}'. "
            f"Allowed: {', '.join(allowed) or 'none'}"
        )


def parse_scheduled_date(value: str, today: date) -> date:
    """
    Parse a YYYY-MM-DD scheduled date and reject dates before today.

    `today` must already be expressed in the business time zone; callers never
    pass a client-local date.

    Raises:
        InvalidDate: On malformed input or a date in the past
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidDate("scheduled_date is required (YYYY-MM-DD)")

    try:
        scheduled = date.fromisoformat(value.strip())
    except ValueError as e:
        raise InvalidDate(f"scheduled_date must be YYYY-MM-DD, got '{value}'") from e

    if scheduled < today:
        raise InvalidDate(f"scheduled_date {scheduled.isoformat()} is before {today.isoformat()}")
    return scheduled


def validate_payment_method(method: str, allowed: Iterable[str]) -> str:
    allowed = list(allowed)
    if method not in allowed:
        raise ValidationError(f"Invalid payment method. Must be one of: {', '.join(allowed)}")
    return method
