from fastapi import APIRouter, Depends, status
from typing import List, Optional
from circulation.dependencies import get_circulation_service, get_sweeper
from circulation.schemas.loan import (
    BorrowRequest,
    FinePaymentRequest,
    LoanResponse,
    ReturnRequest,
    SweepRequest,
    SweepResponse,
)
from circulation.services.circulation import CirculationService
from circulation.services.sweeper import OverdueSweeper

router = APIRouter(prefix="/api/circulation", tags=["Circulation"])

@router.post("/loans", response_model=LoanResponse, status_code=status.HTTP_201_CREATED)
def borrow_book(
    request: BorrowRequest,
    service: CirculationService = Depends(get_circulation_service)
):
    """Lend one copy of a book to a borrower."""
    loan = service.borrow(request.borrower_id, request.book_id, notes=request.notes)
    return LoanResponse.from_loan(loan)

@router.get("/loans/{loan_id}", response_model=LoanResponse)
def get_loan(
    loan_id: int,
    service: CirculationService = Depends(get_circulation_service)
):
    """Get specific loan details."""
    return LoanResponse.from_loan(service.get_loan(loan_id))

@router.post("/loans/{loan_id}/renew", response_model=LoanResponse)
def renew_loan(
    loan_id: int,
    service: CirculationService = Depends(get_circulation_service)
):
    """Extend the due date of an active loan by one loan period."""
    return LoanResponse.from_loan(service.renew(loan_id))

@router.post("/loans/{loan_id}/return", response_model=LoanResponse)
def return_loan(
    loan_id: int,
    request: Optional[ReturnRequest] = None,
    service: CirculationService = Depends(get_circulation_service)
):
    """Close a loan and put the copy back on the shelf."""
    return_date = request.return_date if request else None
    return LoanResponse.from_loan(service.return_loan(loan_id, return_date))

@router.post("/loans/{loan_id}/fine/payment", response_model=LoanResponse)
def pay_fine(
    loan_id: int,
    request: FinePaymentRequest,
    service: CirculationService = Depends(get_circulation_service)
):
    """Settle the fine on a loan. Partial payments are rejected."""
    return LoanResponse.from_loan(service.pay_fine(loan_id, request.amount))

@router.get("/borrowers/{borrower_id}/loans", response_model=List[LoanResponse])
def get_borrower_loans(
    borrower_id: int,
    outstanding: bool = False,
    service: CirculationService = Depends(get_circulation_service)
):
    """Loan history of a borrower, newest first."""
    loans = service.list_borrower_loans(borrower_id, outstanding_only=outstanding)
    return [LoanResponse.from_loan(loan) for loan in loans]

@router.post("/sweep", response_model=SweepResponse)
def run_sweep(
    request: Optional[SweepRequest] = None,
    sweeper: OverdueSweeper = Depends(get_sweeper)
):
    """Run the overdue sweep now instead of waiting for the scheduler."""
    as_of = request.as_of if request else None
    return SweepResponse(**sweeper.run_once(as_of).to_dict())
