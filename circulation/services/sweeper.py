import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from circulation.config import settings
from circulation.database import SessionLocal, session_scope
from circulation.errors import CirculationError, ConsistencyViolation, InvalidTransition
from circulation.models.loan import LoanStatus
from circulation.repositories.loan_repo import LoanRepo
from circulation.services import fine_policy
from circulation.services.loan_lifecycle import LoanLifecycle
from circulation.services.policy import CirculationPolicy
from circulation.utils.timezone import Clock, SystemClock

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    as_of: date
    scanned: int = 0
    marked_overdue: int = 0
    fines_updated: int = 0
    skipped: int = 0
    failed: List[int] = field(default_factory=list)

    def to_dict(self):
        return {
            "asOf": self.as_of.isoformat(),
            "scanned": self.scanned,
            "markedOverdue": self.marked_overdue,
            "finesUpdated": self.fines_updated,
            "skipped": self.skipped,
            "failed": list(self.failed),
        }


class OverdueSweeper:
    """Periodic pass over unreturned loans that are past due.

    Each loan is swept in its own transaction. A failure on one loan is
    logged and the pass moves on; loans already handled stay committed and
    the failed ones are picked up again by the next run.
    """

    JOB_ID = "overdue_sweep"

    def __init__(
        self,
        session_factory=SessionLocal,
        policy: Optional[CirculationPolicy] = None,
        clock: Optional[Clock] = None,
        interval_minutes: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.policy = policy or CirculationPolicy.from_settings()
        self.clock = clock or SystemClock()
        self.interval_minutes = interval_minutes or settings.sweep_interval_minutes
        self.scheduler: Optional[BackgroundScheduler] = None

    def run_once(self, as_of=None) -> SweepResult:
        as_of = fine_policy.as_of_date(as_of or self.clock.today())
        result = SweepResult(as_of=as_of)

        with session_scope(self.session_factory) as db:
            loan_ids = LoanRepo(db).overdue_ids(as_of)
        result.scanned = len(loan_ids)

        for loan_id in loan_ids:
            self._sweep_one(loan_id, as_of, result)

        logger.info(
            f"[sweeper] as_of={as_of} scanned={result.scanned} "
            f"marked_overdue={result.marked_overdue} fines_updated={result.fines_updated} "
            f"skipped={result.skipped} failed={len(result.failed)}"
        )
        return result

    def _sweep_one(self, loan_id: int, as_of: date, result: SweepResult) -> None:
        try:
            with session_scope(self.session_factory) as db:
                lifecycle = LoanLifecycle(db, self.policy, self.clock)
                before = lifecycle.get(loan_id)
                status_before, fine_before = before.status, before.fine_amount
                after = lifecycle.sweep(loan_id, as_of)
        except InvalidTransition:
            # Returned between the scan and now
            result.skipped += 1
            return
        except ConsistencyViolation as e:
            logger.error(f"[sweeper] Consistency violation on loan {loan_id}: {e.detail} {e.context}")
            result.failed.append(loan_id)
            return
        except (CirculationError, SQLAlchemyError) as e:
            logger.exception(f"[sweeper] Failed to sweep loan {loan_id}: {e}")
            result.failed.append(loan_id)
            return

        if status_before != LoanStatus.OVERDUE and after.status == LoanStatus.OVERDUE:
            result.marked_overdue += 1
        if after.fine_amount != fine_before:
            result.fines_updated += 1

    def _run_job(self):
        try:
            self.run_once()
        except Exception as ex:
            logger.exception(f"[sweeper] overdue sweep job error: {ex}")

    def start(self) -> BackgroundScheduler:
        if self.scheduler is not None and self.scheduler.running:
            return self.scheduler

        self.scheduler = BackgroundScheduler(timezone=settings.timezone)
        self.scheduler.add_job(
            func=self._run_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=self.JOB_ID,
            replace_existing=True,
            max_instances=1,        # never overlap two sweeps
            coalesce=True,          # missed runs collapse into one
            misfire_grace_time=300,
        )
        self.scheduler.start()
        logger.info(f"[sweeper] Overdue sweep scheduled every {self.interval_minutes} minutes.")
        return self.scheduler

    def shutdown(self) -> None:
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("[sweeper] Scheduler shutdown.")
        self.scheduler = None
