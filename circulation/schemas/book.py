from pydantic import BaseModel, Field
from typing import Optional

class BookBase(BaseModel):
    isbn: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=255)
    author: str = Field(..., min_length=1, max_length=255)

class BookResponse(BookBase):
    id: str
    totalCopies: int
    availableCopies: int
    active: bool
    loanCount: int

    @classmethod
    def from_book(cls, book):
        return cls(**book.to_dict())

class CopyAdjustment(BaseModel):
    delta: int = Field(..., description="Positive to acquire copies, negative to withdraw")

class AvailabilityResponse(BaseModel):
    bookId: str
    title: str
    totalCopies: int
    availableCopies: int
    outstandingLoans: int

    @classmethod
    def from_row(cls, row):
        return cls(
            bookId=str(row.book_id),
            title=row.title,
            totalCopies=row.total,
            availableCopies=row.available,
            outstandingLoans=row.outstanding,
        )
