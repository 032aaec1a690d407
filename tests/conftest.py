import itertools
import os

# Keep the app-level engine in memory and the scheduler off while testing
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SWEEPER_ENABLED", "false")

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from circulation.database import Base, build_engine, session_scope
from circulation.models import Book, Loan, User
from circulation.services.circulation import CirculationService
from circulation.services.policy import CirculationPolicy
from circulation.services.sweeper import OverdueSweeper
from circulation.utils.timezone import FixedClock


@pytest.fixture
def engine(tmp_path):
    # File-backed so that worker threads in the concurrency tests share it
    engine = build_engine(f"sqlite:///{tmp_path / 'circulation.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def clock():
    return FixedClock(date(2025, 1, 1))


@pytest.fixture
def policy():
    return CirculationPolicy(
        loan_period_days=14,
        max_renewals=2,
        max_loans_per_borrower=5,
        daily_fine_rate=Decimal("0.50"),
        fine_grace_days=0,
        block_on_unpaid_fines=True,
    )


@pytest.fixture
def service(session_factory, policy, clock):
    return CirculationService(session_factory=session_factory, policy=policy, clock=clock)


@pytest.fixture
def sweeper(session_factory, policy, clock):
    return OverdueSweeper(session_factory=session_factory, policy=policy, clock=clock, interval_minutes=60)


@pytest.fixture
def make_book(session_factory):
    counter = itertools.count(1)

    def _make(total=1, available=None, active=True, title=None):
        n = next(counter)
        with session_scope(session_factory) as db:
            book = Book(
                title=title or f"Book {n}",
                author="Frank Herbert",
                isbn=f"978000000{n:04d}",
                total_copies=total,
                available_copies=total if available is None else available,
                active=active,
            )
            db.add(book)
            db.flush()
            return book.book_id

    return _make


@pytest.fixture
def make_borrower(session_factory):
    counter = itertools.count(1)

    def _make(active=True, role="student"):
        n = next(counter)
        with session_scope(session_factory) as db:
            user = User(
                user_fname="Reader",
                user_lname=str(n),
                user_email=f"reader{n}@example.com",
                user_role=role,
                active=active,
            )
            db.add(user)
            db.flush()
            return user.user_id

    return _make


@pytest.fixture
def counters(session_factory):
    """Current (total, available) copies of a book."""
    def _counters(book_id):
        with session_scope(session_factory) as db:
            book = db.get(Book, book_id)
            return book.total_copies, book.available_copies

    return _counters


@pytest.fixture
def stored_loan(session_factory):
    def _stored(loan_id):
        with session_scope(session_factory) as db:
            return db.get(Loan, loan_id)

    return _stored
