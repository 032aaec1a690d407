from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
from circulation.database import get_db
from circulation.dependencies import get_circulation_service
from circulation.schemas.book import AvailabilityResponse, BookResponse, CopyAdjustment
from circulation.services.circulation import CirculationService
from circulation.services.reports import CirculationReports

router = APIRouter(prefix="/api/circulation/books", tags=["Inventory"])

@router.get("/availability", response_model=List[AvailabilityResponse])
def get_inventory(db: Session = Depends(get_db)):
    """Copy counters for every book."""
    return [AvailabilityResponse.from_row(row) for row in CirculationReports(db).inventory()]

@router.get("/{book_id}/availability", response_model=AvailabilityResponse)
def get_book_availability(book_id: int, db: Session = Depends(get_db)):
    """Copy counters for one book."""
    row = CirculationReports(db).inventory_for(book_id)
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Book not found"
        )
    return AvailabilityResponse.from_row(row)

@router.post("/{book_id}/copies", response_model=BookResponse)
def adjust_copies(
    book_id: int,
    request: CopyAdjustment,
    service: CirculationService = Depends(get_circulation_service)
):
    """Add newly acquired copies or withdraw copies that are on the shelf."""
    return BookResponse.from_book(service.adjust_inventory(book_id, request.delta))
