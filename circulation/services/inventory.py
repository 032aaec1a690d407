import logging
from sqlalchemy.orm import Session
from circulation.errors import BookNotLoanable, ConsistencyViolation, NotFound, OutOfStock
from circulation.models.book import Book
from circulation.repositories.book_repo import BookRepo
from circulation.repositories.loan_repo import LoanRepo

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Per-book copy counters.

    Every change is a single conditional UPDATE, so two sessions racing for
    the last copy cannot both win: the database applies one statement after
    the other and the second one matches no row.
    """

    def __init__(self, db: Session):
        self.db = db
        self.books = BookRepo(db)
        self.loans = LoanRepo(db)

    def _load(self, book_id: int) -> Book:
        book = self.books.find_by_id(book_id)
        if book is None:
            raise NotFound("book", book_id)
        return self.books.refresh(book)

    def reserve_copy(self, book_id: int) -> None:
        if self.books.decrement_available(book_id) == 1:
            logger.debug(f"Reserved a copy of book {book_id}")
            return

        # Nothing changed; find out why so the caller gets the right error
        book = self._load(book_id)
        if not book.active:
            raise BookNotLoanable()
        raise OutOfStock()

    def release_copy(self, book_id: int) -> None:
        if self.books.increment_available(book_id) == 1:
            logger.debug(f"Released a copy of book {book_id}")
            return

        book = self._load(book_id)
        logger.error(
            f"Refusing to release a copy of book {book_id}: "
            f"available={book.available_copies} total={book.total_copies}"
        )
        raise ConsistencyViolation(
            "available copies would exceed total copies",
            book_id=book_id,
            available=book.available_copies,
            total=book.total_copies,
        )

    def adjust_total(self, book_id: int, delta: int) -> Book:
        """Acquire (delta > 0) or withdraw (delta < 0) copies of a title."""
        if delta == 0:
            return self._load(book_id)

        if self.books.adjust_copies(book_id, delta) == 1:
            logger.info(f"Book {book_id} copies adjusted by {delta}")
            return self._load(book_id)

        book = self._load(book_id)
        logger.error(
            f"Cannot adjust book {book_id} by {delta}: "
            f"available={book.available_copies} total={book.total_copies}"
        )
        raise ConsistencyViolation(
            "withdrawal would remove copies that are on loan",
            book_id=book_id,
            delta=delta,
            available=book.available_copies,
            total=book.total_copies,
        )

    def check_invariant(self, book_id: int) -> Book:
        """Verify that copies off the shelf match the outstanding loans."""
        book = self._load(book_id)
        outstanding = self.loans.count_outstanding_for_book(book_id)
        if not 0 <= book.available_copies <= book.total_copies or book.copies_on_loan != outstanding:
            logger.error(
                f"Inventory mismatch for book {book_id}: total={book.total_copies} "
                f"available={book.available_copies} outstanding={outstanding}"
            )
            raise ConsistencyViolation(
                "copy counters do not match outstanding loans",
                book_id=book_id,
                available=book.available_copies,
                total=book.total_copies,
                outstanding=outstanding,
            )
        return book
