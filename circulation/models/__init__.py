from .user import User
from .book import Book
from .loan import Loan, LoanStatus, OUTSTANDING_STATUSES, TERMINAL_STATUSES

__all__ = [
    "User",
    "Book",
    "Loan",
    "LoanStatus",
    "OUTSTANDING_STATUSES",
    "TERMINAL_STATUSES",
]
