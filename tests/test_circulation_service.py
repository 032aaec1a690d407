import threading
import time
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from circulation.database import session_scope
from circulation.errors import (
    AmountMismatch,
    BookNotLoanable,
    BorrowerIneligible,
    ConsistencyViolation,
    NoFineDue,
    NotFound,
    OutOfStock,
)
from circulation.models import Book, Loan, LoanStatus
from circulation.repositories.borrower_repo import Borrower
from circulation.services.eligibility import check_eligibility, ineligibility_reason
from circulation.services.policy import CirculationPolicy


def _late_return(service, loan, days_late):
    when = datetime.combine(loan.due_date + timedelta(days=days_late), datetime.min.time())
    return service.return_loan(loan.loan_id, when)


def _loan_count(session_factory):
    with session_scope(session_factory) as db:
        return db.query(Loan).count()


def test_borrower_at_cap_is_refused_without_side_effects(service, session_factory, make_book, make_borrower, counters):
    borrower_id = make_borrower()
    for _ in range(5):
        service.borrow(borrower_id, make_book(total=2))
    book_id = make_book(total=2)
    loans_before = _loan_count(session_factory)

    with pytest.raises(BorrowerIneligible) as excinfo:
        service.borrow(borrower_id, book_id)

    assert excinfo.value.reason == BorrowerIneligible.LOAN_LIMIT
    assert counters(book_id) == (2, 2)
    assert _loan_count(session_factory) == loans_before


def test_returning_a_loan_frees_a_slot(service, make_book, make_borrower):
    borrower_id = make_borrower()
    loans = [service.borrow(borrower_id, make_book()) for _ in range(5)]
    service.return_loan(loans[0].loan_id)

    assert service.borrow(borrower_id, make_book()).status == LoanStatus.ACTIVE


def test_inactive_borrower_is_refused(service, make_book, make_borrower, counters):
    book_id = make_book()
    with pytest.raises(BorrowerIneligible) as excinfo:
        service.borrow(make_borrower(active=False), book_id)
    assert excinfo.value.reason == BorrowerIneligible.INACTIVE
    assert counters(book_id) == (1, 1)


def test_unpaid_fine_blocks_borrowing_until_paid(service, make_book, make_borrower):
    borrower_id = make_borrower()
    loan = service.borrow(borrower_id, make_book())
    _late_return(service, loan, 3)

    with pytest.raises(BorrowerIneligible) as excinfo:
        service.borrow(borrower_id, make_book())
    assert excinfo.value.reason == BorrowerIneligible.UNPAID_FINES

    service.pay_fine(loan.loan_id, Decimal("1.50"))
    assert service.borrow(borrower_id, make_book()).status == LoanStatus.ACTIVE


def test_unpaid_fine_rule_can_be_switched_off(session_factory, clock, make_book, make_borrower):
    from circulation.services.circulation import CirculationService
    lenient = CirculationService(
        session_factory=session_factory,
        policy=CirculationPolicy(block_on_unpaid_fines=False),
        clock=clock,
    )
    borrower_id = make_borrower()
    loan = lenient.borrow(borrower_id, make_book())
    _late_return(lenient, loan, 2)

    assert lenient.borrow(borrower_id, make_book()).status == LoanStatus.ACTIVE


def test_same_title_twice_is_refused(service, make_book, make_borrower, counters):
    borrower_id = make_borrower()
    book_id = make_book(total=3)
    service.borrow(borrower_id, book_id)

    with pytest.raises(BorrowerIneligible) as excinfo:
        service.borrow(borrower_id, book_id)
    assert excinfo.value.reason == BorrowerIneligible.ALREADY_BORROWED
    assert counters(book_id) == (3, 2)


def test_unknown_ids(service, make_book, make_borrower):
    with pytest.raises(NotFound):
        service.borrow(12345, make_book())
    with pytest.raises(NotFound):
        service.borrow(make_borrower(), 12345)
    with pytest.raises(NotFound):
        service.renew(12345)
    with pytest.raises(NotFound):
        service.return_loan(12345)
    with pytest.raises(NotFound):
        service.pay_fine(12345, Decimal("1.00"))


def test_inactive_book_is_not_loanable(service, make_book, make_borrower):
    with pytest.raises(BookNotLoanable):
        service.borrow(make_borrower(), make_book(active=False))


def test_underpayment_is_rejected_without_mutation(service, make_book, make_borrower, stored_loan):
    loan = service.borrow(make_borrower(), make_book())
    _late_return(service, loan, 5)

    with pytest.raises(AmountMismatch) as excinfo:
        service.pay_fine(loan.loan_id, Decimal("2.49"))
    assert excinfo.value.message == "payment less than amount due"
    assert stored_loan(loan.loan_id).fine_paid is False

    paid = service.pay_fine(loan.loan_id, Decimal("3.00"))
    assert paid.fine_paid is True
    assert paid.fine_amount == Decimal("2.50")


def test_paying_without_a_fine(service, make_book, make_borrower):
    loan = service.borrow(make_borrower(), make_book())
    with pytest.raises(NoFineDue):
        service.pay_fine(loan.loan_id, Decimal("1.00"))

    _late_return(service, loan, 1)
    service.pay_fine(loan.loan_id, Decimal("0.50"))
    with pytest.raises(NoFineDue):
        service.pay_fine(loan.loan_id, Decimal("0.50"))


def test_borrower_loans(service, make_book, make_borrower):
    borrower_id = make_borrower()
    first = service.borrow(borrower_id, make_book())
    second = service.borrow(borrower_id, make_book())
    service.return_loan(first.loan_id)

    assert {l.loan_id for l in service.list_borrower_loans(borrower_id)} == {first.loan_id, second.loan_id}
    assert [l.loan_id for l in service.list_borrower_loans(borrower_id, outstanding_only=True)] == [second.loan_id]

    borrower = service.get_borrower(borrower_id)
    assert borrower.outstanding_loan_count == 1
    assert borrower.unpaid_fines == Decimal("0.00")


def test_two_borrowers_race_for_the_last_copy(service, make_book, make_borrower, counters):
    book_id = make_book(total=1)
    borrowers = [make_borrower(), make_borrower()]
    barrier = threading.Barrier(len(borrowers))
    outcomes = []
    lock = threading.Lock()

    def attempt(borrower_id):
        barrier.wait()
        try:
            result = service.borrow(borrower_id, book_id)
        except OutOfStock as e:
            result = e
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt, args=(b,)) for b in borrowers]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    loans = [o for o in outcomes if isinstance(o, Loan)]
    refusals = [o for o in outcomes if isinstance(o, OutOfStock)]
    assert len(loans) == 1
    assert len(refusals) == 1
    assert counters(book_id) == (1, 0)


def test_one_borrower_racing_for_the_last_slot(service, make_book, make_borrower, monkeypatch):
    borrower_id = make_borrower()
    for _ in range(4):
        service.borrow(borrower_id, make_book())
    books = [make_book(), make_book()]

    # Hold each request between its eligibility check and the copy reservation
    def slow_check(*args, **kwargs):
        check_eligibility(*args, **kwargs)
        time.sleep(0.3)

    monkeypatch.setattr("circulation.services.circulation.check_eligibility", slow_check)

    barrier = threading.Barrier(len(books))
    outcomes = []
    lock = threading.Lock()

    def attempt(book_id):
        barrier.wait()
        try:
            result = service.borrow(borrower_id, book_id)
        except BorrowerIneligible as e:
            result = e
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt, args=(b,)) for b in books]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert len([o for o in outcomes if isinstance(o, Loan)]) == 1
    refusals = [o for o in outcomes if isinstance(o, BorrowerIneligible)]
    assert [r.reason for r in refusals] == [BorrowerIneligible.LOAN_LIMIT]
    assert service.get_borrower(borrower_id).outstanding_loan_count == 5


def test_copy_adjustment_refuses_drifted_counters(service, session_factory, make_book, make_borrower, counters):
    book_id = make_book(total=2)
    service.borrow(make_borrower(), book_id)
    assert service.adjust_inventory(book_id, 1).total_copies == 3

    with session_scope(session_factory) as db:
        db.get(Book, book_id).available_copies = 3

    with pytest.raises(ConsistencyViolation):
        service.adjust_inventory(book_id, 1)
    assert counters(book_id) == (3, 3)


def test_counters_match_outstanding_loans(service, sweeper, clock, session_factory, make_book, make_borrower):
    books = [make_book(total=3), make_book(total=2)]
    borrowers = [make_borrower() for _ in range(4)]

    loans = []
    for i, borrower_id in enumerate(borrowers):
        loans.append(service.borrow(borrower_id, books[0]))
        if i < 2:
            loans.append(service.borrow(borrower_id, books[1]))
        if len([l for l in loans if l.book_id == books[0]]) == 3:
            break

    service.renew(loans[0].loan_id)
    sweeper.run_once(clock.today() + timedelta(days=20))
    service.return_loan(loans[1].loan_id)
    _late_return(service, loans[2], 1)

    with session_scope(session_factory) as db:
        for book in db.query(Book).all():
            outstanding = db.query(Loan).filter(
                Loan.book_id == book.book_id,
                Loan.status.in_([LoanStatus.ACTIVE, LoanStatus.OVERDUE]),
            ).count()
            assert 0 <= book.available_copies <= book.total_copies
            assert book.total_copies - book.available_copies == outstanding


def test_eligibility_is_a_pure_check():
    policy = CirculationPolicy(max_loans_per_borrower=2)
    ok = Borrower(id=1, active=True, role="student", outstanding_loan_count=1)

    assert ineligibility_reason(ok, policy) is None
    check_eligibility(ok, policy)
    assert ineligibility_reason(Borrower(id=1, active=False, role="admin"), policy) == BorrowerIneligible.INACTIVE
    assert ineligibility_reason(
        Borrower(id=1, active=True, role="student", outstanding_loan_count=2), policy
    ) == BorrowerIneligible.LOAN_LIMIT
    assert ineligibility_reason(
        Borrower(id=1, active=True, role="student", unpaid_fines=Decimal("0.50")), policy
    ) == BorrowerIneligible.UNPAID_FINES
    with pytest.raises(BorrowerIneligible):
        check_eligibility(ok, policy, already_borrowed=True)
