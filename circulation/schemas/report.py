from pydantic import BaseModel
from typing import Dict, Optional
from decimal import Decimal

class StatusCountsResponse(BaseModel):
    counts: Dict[str, int]

class UnpaidFinesResponse(BaseModel):
    total: Decimal

class PopularBookResponse(BaseModel):
    bookId: str
    title: str
    author: str
    loans: int

class AverageDurationResponse(BaseModel):
    averageDays: Optional[float] = None
