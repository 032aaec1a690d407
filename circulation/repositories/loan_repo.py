from datetime import date
from typing import List, Optional
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session
from circulation.models.loan import Loan, OUTSTANDING_STATUSES


class LoanRepo:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, loan_id: int) -> Optional[Loan]:
        return self.db.get(Loan, loan_id)

    def reload(self, loan_id: int) -> Optional[Loan]:
        """Fetch the row again, discarding whatever this session cached."""
        return self.db.get(Loan, loan_id, populate_existing=True)

    def save(self, loan: Loan) -> Loan:
        self.db.add(loan)
        self.db.flush()
        return loan

    def compare_and_set(self, observed: Loan, **values) -> bool:
        """Write ``values`` only if the row still holds the state in ``observed``.

        Returns False when another transaction changed the loan first.
        """
        result = self.db.execute(
            update(Loan)
            .where(
                Loan.loan_id == observed.loan_id,
                Loan.status == observed.status,
                Loan.renewals == observed.renewals,
                Loan.due_date == observed.due_date,
                Loan.fine_amount == observed.fine_amount,
                Loan.fine_paid.is_(bool(observed.fine_paid)),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_by_user(self, user_id: int, outstanding_only: bool = False) -> List[Loan]:
        query = select(Loan).where(Loan.user_id == user_id)
        if outstanding_only:
            query = query.where(Loan.status.in_(OUTSTANDING_STATUSES))
        return list(self.db.execute(query.order_by(Loan.loan_date.desc(), Loan.loan_id.desc())).scalars())

    def has_outstanding_for_book(self, user_id: int, book_id: int) -> bool:
        return self.db.execute(
            select(Loan.loan_id).where(
                Loan.user_id == user_id,
                Loan.book_id == book_id,
                Loan.status.in_(OUTSTANDING_STATUSES),
            ).limit(1)
        ).first() is not None

    def count_outstanding_for_book(self, book_id: int) -> int:
        return self.db.execute(
            select(func.count(Loan.loan_id)).where(
                Loan.book_id == book_id,
                Loan.status.in_(OUTSTANDING_STATUSES),
            )
        ).scalar_one()

    def overdue_ids(self, as_of: date) -> List[int]:
        """Ids of unreturned loans whose due date is before ``as_of``."""
        return list(self.db.execute(
            select(Loan.loan_id)
            .where(
                Loan.status.in_(OUTSTANDING_STATUSES),
                Loan.due_date < as_of,
            )
            .order_by(Loan.due_date, Loan.loan_id)
        ).scalars())
