from sqlalchemy import Column, String, DateTime, Integer, Boolean, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from circulation.database import Base

class Book(Base):
    """A title and its fungible copy counters.

    ``available_copies`` is only ever written by the inventory ledger; copies
    are tracked by count, not individually.
    """
    __tablename__ = "book"

    book_id = Column(Integer, primary_key=True, autoincrement=True)
    isbn = Column(String(20), unique=True, nullable=True)
    title = Column(String(255), nullable=False)
    author = Column(String(255), nullable=False)
    total_copies = Column(Integer, default=0, nullable=False)
    available_copies = Column(Integer, default=0, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    loan_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    loans = relationship("Loan", back_populates="book")

    __table_args__ = (
        CheckConstraint("total_copies >= 0", name="chk_book_total_copies"),
        CheckConstraint(
            "available_copies >= 0 AND available_copies <= total_copies",
            name="chk_book_available_copies",
        ),
    )

    @property
    def copies_on_loan(self) -> int:
        return self.total_copies - self.available_copies

    def to_dict(self):
        return {
            "id": str(self.book_id),
            "isbn": self.isbn,
            "title": self.title,
            "author": self.author,
            "totalCopies": self.total_copies,
            "availableCopies": self.available_copies,
            "active": self.active,
            "loanCount": self.loan_count,
        }
