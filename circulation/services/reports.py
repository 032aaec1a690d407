"""Read-only circulation reports.

Nothing in here is used by the loan lifecycle; these queries exist for
staff dashboards and exports.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from circulation.models.book import Book
from circulation.models.loan import Loan, LoanStatus, OUTSTANDING_STATUSES, TERMINAL_STATUSES
from circulation.services import fine_policy


@dataclass(frozen=True)
class InventoryRow:
    book_id: int
    title: str
    total: int
    available: int
    outstanding: int

    @property
    def consistent(self) -> bool:
        return 0 <= self.available <= self.total and self.total - self.available == self.outstanding


class CirculationReports:
    def __init__(self, db: Session):
        self.db = db

    def count_by_status(self) -> Dict[LoanStatus, int]:
        rows = self.db.execute(
            select(Loan.status, func.count(Loan.loan_id)).group_by(Loan.status)
        ).all()
        counts = {status: 0 for status in LoanStatus}
        for status, count in rows:
            counts[LoanStatus(status)] = count
        return counts

    def total_unpaid_fines(self) -> Decimal:
        total = self.db.execute(
            select(func.coalesce(func.sum(Loan.fine_amount), 0)).where(
                Loan.fine_paid.is_(False),
                Loan.fine_amount > 0,
            )
        ).scalar_one()
        return Decimal(str(total)).quantize(fine_policy.CURRENCY_SCALE)

    def most_borrowed_books(self, limit: int = 10) -> List[Tuple[Book, int]]:
        rows = self.db.execute(
            select(Book, func.count(Loan.loan_id).label("loans"))
            .join(Loan, Loan.book_id == Book.book_id)
            .group_by(Book.book_id)
            .order_by(func.count(Loan.loan_id).desc(), Book.title)
            .limit(limit)
        ).all()
        return [(book, loans) for book, loans in rows]

    def loans_due_within(self, days: int, as_of: date) -> List[Loan]:
        if days < 1:
            raise ValueError("days must be at least 1")
        return list(self.db.execute(
            select(Loan)
            .where(
                Loan.status.in_(OUTSTANDING_STATUSES),
                Loan.due_date >= as_of,
                Loan.due_date <= as_of + timedelta(days=days),
            )
            .order_by(Loan.due_date.asc())
        ).scalars())

    def loans_between(self, start: date, end: date) -> List[Loan]:
        if start > end:
            raise ValueError("start date must not be after end date")
        return list(self.db.execute(
            select(Loan)
            .where(Loan.loan_date >= start, Loan.loan_date <= end)
            .order_by(Loan.loan_date.asc(), Loan.loan_id.asc())
        ).scalars())

    def average_loan_duration_days(self) -> Optional[float]:
        # Whole-day deltas per returned loan
        loans = self.db.execute(
            select(Loan.loan_date, Loan.returned_at).where(Loan.status.in_(TERMINAL_STATUSES))
        ).all()
        if not loans:
            return None
        durations = [fine_policy.loan_duration_days(loan_date, returned_at) for loan_date, returned_at in loans]
        return sum(durations) / len(durations)

    def inventory(self, book_id: Optional[int] = None) -> List[InventoryRow]:
        outstanding = (
            select(Loan.book_id, func.count(Loan.loan_id).label("outstanding"))
            .where(Loan.status.in_(OUTSTANDING_STATUSES))
            .group_by(Loan.book_id)
            .subquery()
        )
        query = (
            select(Book, func.coalesce(outstanding.c.outstanding, 0))
            .outerjoin(outstanding, outstanding.c.book_id == Book.book_id)
            .order_by(Book.title)
        )
        if book_id is not None:
            query = query.where(Book.book_id == book_id)
        rows = self.db.execute(query).all()
        return [
            InventoryRow(
                book_id=book.book_id,
                title=book.title,
                total=book.total_copies,
                available=book.available_copies,
                outstanding=count,
            )
            for book, count in rows
        ]

    def inventory_for(self, book_id: int) -> Optional[InventoryRow]:
        rows = self.inventory(book_id)
        return rows[0] if rows else None
