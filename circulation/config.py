from decimal import Decimal
from pydantic_settings import BaseSettings
from pathlib import Path

# Get the project directory (parent of circulation package)
BACKEND_DIR = Path(__file__).parent.parent
ENV_FILE = BACKEND_DIR / ".env"

class Settings(BaseSettings):
    # Server settings
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    # Database settings
    database_url: str = "sqlite:///./circulation.db"
    db_echo: bool = False

    # Local timezone used to decide what "today" is
    timezone: str = "Asia/Kuala_Lumpur"

    # Circulation policy
    loan_period_days: int = 14
    max_renewals: int = 3
    max_loans_per_borrower: int = 5
    daily_fine_rate: Decimal = Decimal("0.50")
    fine_grace_days: int = 0
    block_on_unpaid_fines: bool = True

    # Overdue sweeper
    sweeper_enabled: bool = True
    sweep_interval_minutes: int = 1440

    class Config:
        env_file = str(ENV_FILE) if ENV_FILE.exists() else ".env"
        case_sensitive = False

settings = Settings()
