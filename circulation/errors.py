"""Error taxonomy for circulation operations.

Business rule rejections derive from :class:`CirculationError` and carry a
stable ``code`` and ``message`` that transports can hand to clients as is.
:class:`ConsistencyViolation` sits outside that hierarchy, so an
``except CirculationError`` never catches it.
"""
from typing import Optional


class CirculationError(Exception):
    code = "circulation_error"
    message = "circulation request rejected"
    status_code = 400

    def __init__(self, message: Optional[str] = None, **context):
        self.message = message or self.message
        self.context = context
        super().__init__(self.message)

    def to_dict(self):
        return {"code": self.code, "message": self.message}


class NotFound(CirculationError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} not found", entity=entity, entity_id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class OutOfStock(CirculationError):
    code = "out_of_stock"
    message = "no copies available"
    status_code = 409


class BookNotLoanable(CirculationError):
    code = "book_not_loanable"
    message = "book is not available for loan"
    status_code = 409


class BorrowerIneligible(CirculationError):
    code = "borrower_ineligible"
    message = "borrower is not eligible to borrow"
    status_code = 403

    INACTIVE = "inactive"
    LOAN_LIMIT = "loan_limit"
    UNPAID_FINES = "unpaid_fines"
    ALREADY_BORROWED = "already_borrowed"

    def __init__(self, reason: str):
        super().__init__(reason=reason)
        self.reason = reason

    def to_dict(self):
        return {"code": self.code, "message": self.message, "reason": self.reason}


class RenewalLimitExceeded(CirculationError):
    code = "renewal_limit_exceeded"
    message = "renewal limit reached"
    status_code = 409


class LoanNotRenewable(CirculationError):
    code = "loan_not_renewable"
    message = "loan cannot be renewed"
    status_code = 409


class InvalidTransition(CirculationError):
    code = "invalid_transition"
    message = "loan is already closed"
    status_code = 409


class StaleLoanState(CirculationError):
    code = "stale_loan_state"
    message = "loan was modified concurrently"
    status_code = 409


class AmountMismatch(CirculationError):
    code = "amount_mismatch"
    message = "payment less than amount due"
    status_code = 422


class NoFineDue(CirculationError):
    code = "no_fine_due"
    message = "loan has no outstanding fine"
    status_code = 409


class ConsistencyViolation(Exception):
    """An internal invariant would break. The transaction must be aborted."""

    code = "consistency_violation"
    public_message = "internal consistency error"

    def __init__(self, detail: str, **context):
        self.detail = detail
        self.context = context
        super().__init__(detail)
