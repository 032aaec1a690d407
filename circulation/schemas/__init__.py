from .book import BookBase, BookResponse, CopyAdjustment, AvailabilityResponse
from .loan import (
    BorrowRequest, ReturnRequest, FinePaymentRequest,
    LoanResponse, SweepRequest, SweepResponse
)
from .report import (
    StatusCountsResponse, UnpaidFinesResponse,
    PopularBookResponse, AverageDurationResponse
)

__all__ = [
    "BookBase", "BookResponse", "CopyAdjustment", "AvailabilityResponse",
    "BorrowRequest", "ReturnRequest", "FinePaymentRequest",
    "LoanResponse", "SweepRequest", "SweepResponse",
    "StatusCountsResponse", "UnpaidFinesResponse",
    "PopularBookResponse", "AverageDurationResponse",
]
