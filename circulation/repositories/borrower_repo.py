from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session
from circulation.models.loan import Loan, OUTSTANDING_STATUSES
from circulation.models.user import User


@dataclass(frozen=True)
class Borrower:
    """Read-only view of a member, as circulation rules need it."""
    id: int
    active: bool
    role: str
    outstanding_loan_count: int = 0
    unpaid_fines: Decimal = Decimal("0.00")


class BorrowerRepo:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, user_id: int) -> Optional[User]:
        return self.db.execute(select(User).where(User.user_id == user_id)).scalar_one_or_none()

    def lock(self, user_id: int) -> bool:
        """Write-lock the member row until the transaction ends.

        A plain UPDATE holds a row lock on PostgreSQL and the database write
        lock on SQLite, where ``SELECT ... FOR UPDATE`` does nothing. Returns
        False when the member does not exist.
        """
        result = self.db.execute(
            update(User)
            .where(User.user_id == user_id)
            .values(updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def count_outstanding(self, user_id: int) -> int:
        return self.db.execute(
            select(func.count(Loan.loan_id)).where(
                Loan.user_id == user_id,
                Loan.status.in_(OUTSTANDING_STATUSES),
            )
        ).scalar_one()

    def unpaid_fines(self, user_id: int) -> Decimal:
        total = self.db.execute(
            select(func.coalesce(func.sum(Loan.fine_amount), 0)).where(
                Loan.user_id == user_id,
                Loan.fine_paid.is_(False),
                Loan.fine_amount > 0,
            )
        ).scalar_one()
        return Decimal(str(total)).quantize(Decimal("0.01"))

    def get_borrower(self, user_id: int, lock: bool = False) -> Optional[Borrower]:
        if lock and not self.lock(user_id):
            return None
        user = self.find_by_id(user_id)
        if user is None:
            return None
        return Borrower(
            id=user.user_id,
            active=bool(user.active),
            role=user.user_role,
            outstanding_loan_count=self.count_outstanding(user_id),
            unpaid_fines=self.unpaid_fines(user_id),
        )
