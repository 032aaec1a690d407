from typing import Optional
from sqlalchemy import update
from sqlalchemy.orm import Session
from circulation.models.book import Book


class BookRepo:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, book_id: int) -> Optional[Book]:
        return self.db.get(Book, book_id)

    def refresh(self, book: Book) -> Book:
        self.db.refresh(book)
        return book

    def decrement_available(self, book_id: int) -> int:
        """Take one copy if any is left. Returns the number of rows changed."""
        result = self.db.execute(
            update(Book)
            .where(
                Book.book_id == book_id,
                Book.active.is_(True),
                Book.available_copies > 0,
            )
            .values(
                available_copies=Book.available_copies - 1,
                loan_count=Book.loan_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def increment_available(self, book_id: int) -> int:
        """Put one copy back unless every owned copy is already on the shelf."""
        result = self.db.execute(
            update(Book)
            .where(
                Book.book_id == book_id,
                Book.available_copies < Book.total_copies,
            )
            .values(available_copies=Book.available_copies + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def adjust_copies(self, book_id: int, delta: int) -> int:
        """Add or withdraw owned copies; withdrawn copies must be on the shelf."""
        result = self.db.execute(
            update(Book)
            .where(
                Book.book_id == book_id,
                Book.total_copies + delta >= 0,
                Book.available_copies + delta >= 0,
            )
            .values(
                total_copies=Book.total_copies + delta,
                available_copies=Book.available_copies + delta,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
