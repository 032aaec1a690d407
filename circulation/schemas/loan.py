from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal

class BorrowRequest(BaseModel):
    borrower_id: int = Field(..., gt=0)
    book_id: int = Field(..., gt=0)
    notes: Optional[str] = Field(None, max_length=500)

class ReturnRequest(BaseModel):
    return_date: Optional[datetime] = Field(None, description="Defaults to now")

class FinePaymentRequest(BaseModel):
    amount: Decimal = Field(..., ge=0, decimal_places=2)

class LoanResponse(BaseModel):
    id: str
    userId: str
    bookId: str
    loanDate: date
    dueDate: date
    returnedAt: Optional[datetime] = None
    status: str = Field(..., pattern="^(active|overdue|returned|returned_late)$")
    renewals: int
    fineAmount: Decimal
    finePaid: bool
    notes: Optional[str] = None

    @classmethod
    def from_loan(cls, loan):
        return cls(**loan.to_dict())

class SweepRequest(BaseModel):
    as_of: Optional[date] = Field(None, description="Defaults to today")

class SweepResponse(BaseModel):
    asOf: date
    scanned: int
    markedOverdue: int
    finesUpdated: int
    skipped: int
    failed: List[int] = []
