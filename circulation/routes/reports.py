from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List
from circulation.database import get_db
from circulation.dependencies import get_clock
from circulation.schemas.loan import LoanResponse
from circulation.schemas.report import (
    AverageDurationResponse,
    PopularBookResponse,
    StatusCountsResponse,
    UnpaidFinesResponse,
)
from circulation.services.reports import CirculationReports
from circulation.utils.timezone import Clock

router = APIRouter(prefix="/api/circulation/reports", tags=["Circulation Reports"])

@router.get("/status", response_model=StatusCountsResponse)
def get_status_counts(db: Session = Depends(get_db)):
    """Number of loans in each status."""
    counts = CirculationReports(db).count_by_status()
    return StatusCountsResponse(counts={s.value: n for s, n in counts.items()})

@router.get("/fines/unpaid", response_model=UnpaidFinesResponse)
def get_unpaid_fines(db: Session = Depends(get_db)):
    """Sum of fines accrued and not yet paid."""
    return UnpaidFinesResponse(total=CirculationReports(db).total_unpaid_fines())

@router.get("/popular", response_model=List[PopularBookResponse])
def get_popular_books(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Books with the most loans, all time."""
    return [
        PopularBookResponse(bookId=str(book.book_id), title=book.title, author=book.author, loans=loans)
        for book, loans in CirculationReports(db).most_borrowed_books(limit)
    ]

@router.get("/due-soon", response_model=List[LoanResponse])
def get_loans_due_soon(
    days: int = Query(3, ge=1, le=60),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Unreturned loans falling due in the next few days."""
    loans = CirculationReports(db).loans_due_within(days, clock.today())
    return [LoanResponse.from_loan(loan) for loan in loans]

@router.get("/loans", response_model=List[LoanResponse])
def get_loans_between(
    start: date,
    end: date,
    db: Session = Depends(get_db)
):
    """Loans issued between two dates, inclusive."""
    try:
        loans = CirculationReports(db).loans_between(start, end)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return [LoanResponse.from_loan(loan) for loan in loans]

@router.get("/duration", response_model=AverageDurationResponse)
def get_average_duration(db: Session = Depends(get_db)):
    """Mean length in days of returned loans."""
    return AverageDurationResponse(averageDays=CirculationReports(db).average_loan_duration_days())
