from circulation.errors import BorrowerIneligible
from circulation.repositories.borrower_repo import Borrower
from circulation.services.policy import CirculationPolicy


def ineligibility_reason(borrower: Borrower, policy: CirculationPolicy, already_borrowed: bool = False):
    """Return why ``borrower`` may not take another loan, or None."""
    if not borrower.active:
        return BorrowerIneligible.INACTIVE
    if borrower.outstanding_loan_count >= policy.max_loans_per_borrower:
        return BorrowerIneligible.LOAN_LIMIT
    if policy.block_on_unpaid_fines and borrower.unpaid_fines > 0:
        return BorrowerIneligible.UNPAID_FINES
    if already_borrowed:
        return BorrowerIneligible.ALREADY_BORROWED
    return None


def check_eligibility(borrower: Borrower, policy: CirculationPolicy, already_borrowed: bool = False) -> None:
    reason = ineligibility_reason(borrower, policy, already_borrowed)
    if reason is not None:
        raise BorrowerIneligible(reason)
