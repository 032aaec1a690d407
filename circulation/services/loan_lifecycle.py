import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Session

from circulation.errors import (
    AmountMismatch,
    InvalidTransition,
    LoanNotRenewable,
    NoFineDue,
    NotFound,
    RenewalLimitExceeded,
    StaleLoanState,
)
from circulation.models.loan import Loan, LoanStatus
from circulation.repositories.borrower_repo import Borrower
from circulation.repositories.loan_repo import LoanRepo
from circulation.services import fine_policy
from circulation.services.inventory import InventoryLedger
from circulation.services.policy import CirculationPolicy
from circulation.utils.timezone import Clock, SystemClock

logger = logging.getLogger(__name__)


class LoanLifecycle:
    """State machine for a single loan.

    ACTIVE -> OVERDUE -> RETURNED_LATE, or ACTIVE -> RETURNED. Both returned
    states are final. All methods work inside the caller's session and leave
    commit/rollback to it, so a transition and its inventory change land
    together or not at all.
    """

    def __init__(self, db: Session, policy: Optional[CirculationPolicy] = None, clock: Optional[Clock] = None):
        self.db = db
        self.policy = policy or CirculationPolicy.from_settings()
        self.clock = clock or SystemClock()
        self.loans = LoanRepo(db)
        self.ledger = InventoryLedger(db)

    def get(self, loan_id: int) -> Loan:
        loan = self.loans.reload(loan_id)
        if loan is None:
            raise NotFound("loan", loan_id)
        return loan

    def _get_open(self, loan_id: int, action: str) -> Loan:
        loan = self.get(loan_id)
        if loan.status.is_terminal:
            logger.warning(f"Rejected {action} on closed loan {loan_id} (status={loan.status.value})")
            raise InvalidTransition()
        return loan

    def _write(self, observed: Loan, action: str, **values) -> Loan:
        read_status = observed.status
        if self.loans.compare_and_set(observed, **values):
            return self.get(observed.loan_id)

        current = self.loans.reload(observed.loan_id)
        if current is None:
            raise NotFound("loan", observed.loan_id)
        logger.warning(
            f"Lost race on {action} for loan {observed.loan_id}: "
            f"read status={read_status.value}, now {current.status.value}"
        )
        if current.status.is_terminal:
            raise InvalidTransition()
        raise StaleLoanState()

    def issue(self, borrower: Borrower, book_id: int, notes: Optional[str] = None) -> Loan:
        """Hand out one copy of ``book_id``. Borrower rules are checked by the caller."""
        self.ledger.reserve_copy(book_id)

        loan_date = self.clock.today()
        loan = Loan(
            user_id=borrower.id,
            book_id=book_id,
            loan_date=loan_date,
            due_date=loan_date + timedelta(days=self.policy.loan_period_days),
            status=LoanStatus.ACTIVE,
            renewals=0,
            fine_amount=fine_policy.ZERO,
            fine_paid=False,
            notes=notes,
        )
        self.loans.save(loan)
        logger.info(f"Loan {loan.loan_id} issued: book={book_id} borrower={borrower.id} due={loan.due_date}")
        return self.get(loan.loan_id)

    def renew(self, loan_id: int) -> Loan:
        loan = self._get_open(loan_id, "renew")
        today = self.clock.today()

        if loan.status == LoanStatus.OVERDUE or fine_policy.is_overdue(loan.due_date, today):
            raise LoanNotRenewable()
        if loan.renewals >= self.policy.max_renewals:
            raise RenewalLimitExceeded()

        new_due = loan.due_date + timedelta(days=self.policy.loan_period_days)
        renewed = self._write(loan, "renew", renewals=loan.renewals + 1, due_date=new_due)
        logger.info(f"Loan {loan_id} renewed ({renewed.renewals}/{self.policy.max_renewals}), due {new_due}")
        return renewed

    def sweep(self, loan_id: int, as_of=None) -> Loan:
        """Mark the loan overdue as of ``as_of`` and refresh its fine.

        Running it again for the same day changes nothing.
        """
        loan = self._get_open(loan_id, "sweep")
        as_of = fine_policy.as_of_date(as_of or self.clock.today())

        overdue_now = fine_policy.is_overdue(loan.due_date, as_of)
        if not overdue_now:
            return loan

        status = fine_policy.next_status(loan.status, overdue_now, False, False)
        fine = max(Decimal(loan.fine_amount), self._fine(loan, as_of))
        if status == loan.status and fine == loan.fine_amount:
            return loan

        swept = self._write(
            loan,
            "sweep",
            status=status,
            fine_amount=fine,
            fine_paid=bool(loan.fine_paid) and fine == loan.fine_amount,
        )
        logger.info(f"Loan {loan_id} is {status.value} as of {as_of}, fine {fine}")
        return swept

    def return_copy(self, loan_id: int, returned_at: Optional[datetime] = None) -> Loan:
        loan = self._get_open(loan_id, "return")
        returned_at = returned_at or self.clock.now()
        as_of = fine_policy.as_of_date(returned_at)

        late = loan.status == LoanStatus.OVERDUE or fine_policy.is_overdue(loan.due_date, as_of)
        status = fine_policy.next_status(loan.status, late, True, late)
        if late:
            # Settled as of the return date, even below what an earlier sweep charged
            fine = self._fine(loan, as_of)
            fine_paid = bool(loan.fine_paid) and fine <= loan.fine_amount
        else:
            fine = fine_policy.ZERO
            fine_paid = False

        closed = self._write(
            loan,
            "return",
            status=status,
            returned_at=returned_at,
            fine_amount=fine,
            fine_paid=fine_paid,
        )
        self.ledger.release_copy(loan.book_id)
        logger.info(f"Loan {loan_id} closed as {status.value} on {as_of}, fine {fine}")
        return closed

    def settle_fine(self, loan_id: int, amount) -> Loan:
        loan = self.get(loan_id)
        if not loan.has_unpaid_fine:
            raise NoFineDue()

        amount = Decimal(str(amount))
        if amount < loan.fine_amount:
            raise AmountMismatch()

        paid = self._write(loan, "fine payment", fine_paid=True)
        logger.info(f"Fine of {loan.fine_amount} on loan {loan_id} paid")
        return paid

    def _fine(self, loan: Loan, as_of) -> Decimal:
        return fine_policy.compute_fine(
            loan.due_date,
            as_of,
            self.policy.daily_fine_rate,
            self.policy.fine_grace_days,
        )
