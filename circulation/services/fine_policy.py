"""Fine and status rules for loans.

Everything here is pure: no session, no clock. Callers pass the dates they
care about, and datetimes are reduced to their calendar date first.
"""
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from circulation.errors import InvalidTransition
from circulation.models.loan import LoanStatus
from circulation.utils.timezone import as_local_date

CURRENCY_SCALE = Decimal("0.01")
ZERO = Decimal("0.00")


def days_late(due_date: date, as_of) -> int:
    """Whole days between the due date and ``as_of``, never negative."""
    return max(0, (as_of_date(as_of) - due_date).days)


def as_of_date(value) -> date:
    return as_local_date(value)


def is_overdue(due_date: date, as_of, returned: bool = False) -> bool:
    return not returned and as_of_date(as_of) > due_date


def compute_fine(due_date: date, as_of, daily_rate, grace_days: int = 0) -> Decimal:
    """Fine owed on ``as_of`` for a loan due on ``due_date``.

    The fine is always recomputed from the two dates, which makes repeated
    evaluation for the same day return the same amount.
    """
    chargeable_days = max(0, days_late(due_date, as_of) - max(0, grace_days))
    amount = Decimal(chargeable_days) * Decimal(str(daily_rate))
    return amount.quantize(CURRENCY_SCALE, rounding=ROUND_HALF_UP)


def next_status(current: LoanStatus, is_overdue_now: bool, is_returned: bool, returned_late: bool) -> LoanStatus:
    if current.is_terminal:
        raise InvalidTransition()

    if is_returned:
        return LoanStatus.RETURNED_LATE if returned_late else LoanStatus.RETURNED

    if is_overdue_now:
        return LoanStatus.OVERDUE

    return current


def loan_duration_days(loan_date: date, end) -> int:
    """Length of a loan in whole days."""
    return max(0, (as_of_date(end) - loan_date).days)
