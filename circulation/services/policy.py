from dataclasses import dataclass
from decimal import Decimal

from circulation.config import settings


@dataclass(frozen=True)
class CirculationPolicy:
    loan_period_days: int = 14
    max_renewals: int = 3
    max_loans_per_borrower: int = 5
    daily_fine_rate: Decimal = Decimal("0.50")
    fine_grace_days: int = 0
    block_on_unpaid_fines: bool = True

    @classmethod
    def from_settings(cls, config=settings) -> "CirculationPolicy":
        return cls(
            loan_period_days=config.loan_period_days,
            max_renewals=config.max_renewals,
            max_loans_per_borrower=config.max_loans_per_borrower,
            daily_fine_rate=Decimal(str(config.daily_fine_rate)),
            fine_grace_days=config.fine_grace_days,
            block_on_unpaid_fines=config.block_on_unpaid_fines,
        )
