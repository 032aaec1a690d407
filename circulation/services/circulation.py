import logging
from datetime import datetime
from typing import List, Optional

from circulation.database import SessionLocal, session_scope
from circulation.errors import BorrowerIneligible, NotFound
from circulation.models.book import Book
from circulation.models.loan import Loan
from circulation.repositories.borrower_repo import Borrower, BorrowerRepo
from circulation.repositories.loan_repo import LoanRepo
from circulation.services.eligibility import check_eligibility
from circulation.services.inventory import InventoryLedger
from circulation.services.loan_lifecycle import LoanLifecycle
from circulation.services.policy import CirculationPolicy
from circulation.utils.timezone import Clock, SystemClock

logger = logging.getLogger(__name__)


class CirculationService:
    """Entry point for borrow, renew, return and fine payment.

    Each call is one transaction. Errors propagate to the caller unchanged
    and nothing is retried here: a retried borrow could slip past the loan
    cap, so only the caller can decide to try again.
    """

    def __init__(self, session_factory=SessionLocal, policy: Optional[CirculationPolicy] = None, clock: Optional[Clock] = None):
        self.session_factory = session_factory
        self.policy = policy or CirculationPolicy.from_settings()
        self.clock = clock or SystemClock()

    def _lifecycle(self, db) -> LoanLifecycle:
        return LoanLifecycle(db, self.policy, self.clock)

    def borrow(self, borrower_id: int, book_id: int, notes: Optional[str] = None) -> Loan:
        with session_scope(self.session_factory) as db:
            borrowers = BorrowerRepo(db)
            borrower = borrowers.get_borrower(borrower_id, lock=True)
            if borrower is None:
                raise NotFound("borrower", borrower_id)

            already_borrowed = LoanRepo(db).has_outstanding_for_book(borrower_id, book_id)
            try:
                check_eligibility(borrower, self.policy, already_borrowed)
            except BorrowerIneligible as exc:
                logger.info(f"Borrow refused: borrower={borrower_id} book={book_id} reason={exc.reason}")
                raise

            return self._lifecycle(db).issue(borrower, book_id, notes=notes)

    def renew(self, loan_id: int) -> Loan:
        with session_scope(self.session_factory) as db:
            return self._lifecycle(db).renew(loan_id)

    def return_loan(self, loan_id: int, return_date: Optional[datetime] = None) -> Loan:
        with session_scope(self.session_factory) as db:
            return self._lifecycle(db).return_copy(loan_id, return_date)

    def pay_fine(self, loan_id: int, amount) -> Loan:
        with session_scope(self.session_factory) as db:
            return self._lifecycle(db).settle_fine(loan_id, amount)

    def get_loan(self, loan_id: int) -> Loan:
        with session_scope(self.session_factory) as db:
            return self._lifecycle(db).get(loan_id)

    def get_borrower(self, borrower_id: int) -> Borrower:
        with session_scope(self.session_factory) as db:
            borrower = BorrowerRepo(db).get_borrower(borrower_id)
            if borrower is None:
                raise NotFound("borrower", borrower_id)
            return borrower

    def list_borrower_loans(self, borrower_id: int, outstanding_only: bool = False) -> List[Loan]:
        with session_scope(self.session_factory) as db:
            if BorrowerRepo(db).find_by_id(borrower_id) is None:
                raise NotFound("borrower", borrower_id)
            return LoanRepo(db).list_by_user(borrower_id, outstanding_only=outstanding_only)

    def adjust_inventory(self, book_id: int, delta: int) -> Book:
        """Record acquired (delta > 0) or withdrawn (delta < 0) copies.

        Raises ConsistencyViolation, and commits nothing, when the counters
        no longer match the outstanding loans.
        """
        with session_scope(self.session_factory) as db:
            ledger = InventoryLedger(db)
            ledger.adjust_total(book_id, delta)
            return ledger.check_invariant(book_id)
