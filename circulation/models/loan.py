import enum
from sqlalchemy import Column, Date, DateTime, Integer, Numeric, Boolean, Text, ForeignKey, CheckConstraint, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from circulation.database import Base


class LoanStatus(str, enum.Enum):
    ACTIVE = "active"
    OVERDUE = "overdue"
    RETURNED = "returned"
    RETURNED_LATE = "returned_late"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


OUTSTANDING_STATUSES = (LoanStatus.ACTIVE, LoanStatus.OVERDUE)
TERMINAL_STATUSES = (LoanStatus.RETURNED, LoanStatus.RETURNED_LATE)


class Loan(Base):
    __tablename__ = "loan"

    loan_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.user_id", ondelete="RESTRICT"), nullable=False, index=True)
    book_id = Column(Integer, ForeignKey("book.book_id", ondelete="RESTRICT"), nullable=False, index=True)
    loan_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    returned_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(
        Enum(
            LoanStatus,
            name="chk_loan_status",
            native_enum=False,
            create_constraint=True,
            length=20,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=LoanStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    renewals = Column(Integer, default=0, nullable=False)
    fine_amount = Column(Numeric(10, 2), default=0, nullable=False)
    fine_paid = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="loans")
    book = relationship("Book", back_populates="loans")

    __table_args__ = (
        CheckConstraint("renewals >= 0", name="chk_loan_renewals"),
        CheckConstraint("fine_amount >= 0", name="chk_loan_fine_amount"),
    )

    @property
    def has_unpaid_fine(self) -> bool:
        return self.fine_amount is not None and self.fine_amount > 0 and not self.fine_paid

    def to_dict(self):
        return {
            "id": str(self.loan_id),
            "userId": str(self.user_id),
            "bookId": str(self.book_id),
            "loanDate": self.loan_date.isoformat() if self.loan_date else None,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "returnedAt": self.returned_at.isoformat() if self.returned_at else None,
            "status": self.status.value if self.status else None,
            "renewals": self.renewals,
            "fineAmount": str(self.fine_amount),
            "finePaid": self.fine_paid,
            "notes": self.notes,
        }
