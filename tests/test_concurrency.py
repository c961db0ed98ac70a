"""Concurrent enroll/recharge against a file-backed SQLite database.

Each worker thread runs its own unit of work through the shared
DatabaseManager, the way the API's threadpool does.
"""
import threading
from decimal import Decimal

import pytest

from enrollment_ledger.core.db import DatabaseManager
from enrollment_ledger.core.permissions import Principal, Role
from enrollment_ledger.services.account_service import AccountService
from enrollment_ledger.services.enrollment_service import EnrollmentService
from enrollment_ledger.services.errors import DuplicateEnrollment, EnrollmentLedgerError, InsufficientFunds

from conftest import add_course, add_student, balance_of, make_settings

pytestmark = pytest.mark.slow


@pytest.fixture
def file_db(tmp_path):
    manager = DatabaseManager(make_settings(DATABASE_URL=f"sqlite:///{tmp_path / 'ledger.db'}"))
    manager.create_all()
    yield manager
    manager.close()


def run_concurrently(count, target):
    """Start count threads on target(index) at the same moment; collect results or errors"""
    barrier = threading.Barrier(count)
    outcomes = [None] * count

    def worker(index):
        barrier.wait()
        try:
            outcomes[index] = target(index)
        except EnrollmentLedgerError as e:
            outcomes[index] = e

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return outcomes


def test_same_pair_enrolls_exactly_once(file_db):
    service = EnrollmentService(file_db)
    student_id = add_student(file_db, balance="1000.00")
    course_id = add_course(file_db, price="80.00")

    outcomes = run_concurrently(8, lambda _: service.enroll_student(student_id, course_id))

    failures = [o for o in outcomes if isinstance(o, Exception)]
    assert len(outcomes) - len(failures) == 1
    assert all(isinstance(f, DuplicateEnrollment) for f in failures)
    assert balance_of(file_db, student_id) == Decimal("920.00")


def test_stale_duplicate_check_is_caught_by_the_index(file_db, monkeypatch):
    service = EnrollmentService(file_db)
    student_id = add_student(file_db, balance="200.00")
    course_id = add_course(file_db, price="80.00")
    service.enroll_student(student_id, course_id)

    # as if the pre-check had read data from before the first commit
    monkeypatch.setattr(EnrollmentService, "_find_active_enrollment", staticmethod(lambda *args: None))

    with pytest.raises(DuplicateEnrollment):
        service.enroll_student(student_id, course_id)

    assert balance_of(file_db, student_id) == Decimal("120.00")


def test_balance_never_goes_negative(file_db):
    service = EnrollmentService(file_db)
    student_id = add_student(file_db, balance="100.00")
    course_ids = [add_course(file_db, price="80.00", name=f"Course {i}") for i in range(5)]

    outcomes = run_concurrently(5, lambda i: service.enroll_student(student_id, course_ids[i]))

    successes = [o for o in outcomes if not isinstance(o, Exception)]
    failures = [o for o in outcomes if isinstance(o, Exception)]
    assert len(successes) == 1
    assert all(isinstance(f, InsufficientFunds) for f in failures)
    assert balance_of(file_db, student_id) == Decimal("20.00")


def test_concurrent_recharges_all_land(file_db):
    accounts = AccountService(file_db)
    student_id = add_student(file_db, balance="0.00")
    principal = Principal(user_id="u-1", role=Role.STUDENT, linked_entity_id=student_id)

    outcomes = run_concurrently(10, lambda _: accounts.recharge(principal, "10.01"))

    assert not any(isinstance(o, Exception) for o in outcomes)
    assert balance_of(file_db, student_id) == Decimal("100.10")


def test_refunds_and_enrollments_interleave_without_losing_money(file_db):
    service = EnrollmentService(file_db)
    student_id = add_student(file_db, balance="300.00")
    course_ids = [add_course(file_db, price="50.00", name=f"Course {i}") for i in range(6)]
    paid = [service.enroll_student(student_id, course_id).enrollment.id for course_id in course_ids[:3]]

    def step(index):
        if index < 3:
            return service.review_enrollment(paid[index], "rejected")
        return service.enroll_student(student_id, course_ids[index])

    outcomes = run_concurrently(6, step)

    assert not any(isinstance(o, Exception) for o in outcomes)
    # 300 - 3 * 50 paid up front, + 3 * 50 refunded, - 3 * 50 new
    assert balance_of(file_db, student_id) == Decimal("150.00")
