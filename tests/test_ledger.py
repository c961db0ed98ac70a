import uuid
from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from enrollment_ledger.models import Student
from enrollment_ledger.services.errors import InsufficientFunds, InternalFailure, InvalidAmount, StudentNotFound
from enrollment_ledger.services.ledger import LedgerService, MAX_BALANCE, format_money, normalize_amount, to_money

from conftest import add_student, balance_of, load_student


class TestNormalizeAmount:
    @pytest.mark.parametrize("value, expected", [
        ("80", Decimal("80.00")),
        ("19.99", Decimal("19.99")),
        (19.99, Decimal("19.99")),
        (5, Decimal("5.00")),
        (Decimal("0.01"), Decimal("0.01")),
        (" 12.5 ", Decimal("12.50")),
    ])
    def test_accepts_positive_two_decimal_amounts(self, value, expected):
        assert normalize_amount(value) == expected

    @pytest.mark.parametrize("value", [None, True, "", "abc", "NaN", "Infinity", 0, "0.00", -5, "-0.01"])
    def test_rejects_missing_non_numeric_and_non_positive(self, value):
        with pytest.raises(InvalidAmount):
            normalize_amount(value)

    def test_rejects_more_than_two_decimals(self):
        with pytest.raises(InvalidAmount, match="2 decimal places"):
            normalize_amount("10.005")

    def test_rejects_amounts_above_column_limit(self):
        with pytest.raises(InvalidAmount):
            normalize_amount(MAX_BALANCE + 1)

    def test_money_helpers(self):
        assert to_money(None) == Decimal("0.00")
        assert to_money("2.675") == Decimal("2.68")
        assert format_money(Decimal("20")) == "20.00"


class TestLedgerService:
    def test_debit_reduces_balance(self, db):
        student_id = add_student(db, balance="100.00")

        with db.transaction() as session:
            remaining = LedgerService(session).debit(student_id, "80.00")

        assert remaining == Decimal("20.00")
        assert balance_of(db, student_id) == Decimal("20.00")

    def test_debit_of_entire_balance_leaves_zero(self, db):
        student_id = add_student(db, balance="80.00")

        with db.transaction() as session:
            LedgerService(session).debit(student_id, "80.00")

        assert balance_of(db, student_id) == Decimal("0.00")

    def test_insufficient_funds_leaves_balance_unchanged(self, db):
        student_id = add_student(db, balance="50.00")

        with pytest.raises(InsufficientFunds) as exc_info:
            with db.transaction() as session:
                LedgerService(session).debit(student_id, "80.00")

        assert "50.00" in exc_info.value.message
        assert "80.00" in exc_info.value.message
        assert balance_of(db, student_id) == Decimal("50.00")

    def test_credit_increases_balance(self, db):
        student_id = add_student(db, balance="20.00")

        with db.transaction() as session:
            balance = LedgerService(session).credit(student_id, Decimal("80.00"))

        assert balance == Decimal("100.00")
        assert balance_of(db, student_id) == Decimal("100.00")

    def test_credit_rejects_balance_above_limit(self, db):
        student_id = add_student(db, balance=str(MAX_BALANCE))

        with pytest.raises(InvalidAmount):
            with db.transaction() as session:
                LedgerService(session).credit(student_id, "0.01")

        assert balance_of(db, student_id) == MAX_BALANCE

    def test_invalid_amount_is_rejected_before_touching_the_row(self, db):
        student_id = add_student(db, balance="20.00")

        with pytest.raises(InvalidAmount):
            with db.transaction() as session:
                LedgerService(session).credit(student_id, "-5")

        assert balance_of(db, student_id) == Decimal("20.00")

    def test_unknown_student(self, db):
        missing = uuid.uuid4()

        with pytest.raises(StudentNotFound):
            with db.transaction() as session:
                LedgerService(session).debit(missing, "1.00")
        with pytest.raises(StudentNotFound):
            with db.session() as session:
                LedgerService(session).get_balance(missing)

    def test_every_write_bumps_the_row_version(self, db):
        student_id = add_student(db, balance="10.00")
        before = load_student(db, student_id).version

        with db.transaction() as session:
            ledger = LedgerService(session)
            ledger.credit(student_id, "5.00")
            ledger.debit(student_id, "3.00")

        assert load_student(db, student_id).version == before + 2
        assert balance_of(db, student_id) == Decimal("12.00")


class TestUnitOfWork:
    def test_storage_error_rolls_back_earlier_writes(self, db):
        student_id = add_student(db, balance="10.00")

        with pytest.raises(InternalFailure) as exc_info:
            with db.transaction() as session:
                LedgerService(session).credit(student_id, "5.00")
                # violates ck_students_balance_non_negative
                session.execute(update(Student).where(Student.id == student_id).values(balance=-1))

        assert isinstance(exc_info.value.__cause__, IntegrityError)
        assert exc_info.value.message == "Storage failure; no changes were saved"
        assert balance_of(db, student_id) == Decimal("10.00")

    def test_domain_error_propagates_unchanged(self, db):
        student_id = add_student(db, balance="10.00")

        with pytest.raises(InsufficientFunds):
            with db.transaction() as session:
                ledger = LedgerService(session)
                ledger.credit(student_id, "5.00")
                ledger.debit(student_id, "100.00")

        assert balance_of(db, student_id) == Decimal("10.00")

    def test_interrupt_rolls_back(self, db):
        student_id = add_student(db, balance="10.00")

        with pytest.raises(KeyboardInterrupt):
            with db.transaction() as session:
                LedgerService(session).credit(student_id, "5.00")
                raise KeyboardInterrupt

        assert balance_of(db, student_id) == Decimal("10.00")

    def test_unexpected_error_rolls_back(self, db):
        student_id = add_student(db, balance="10.00")

        with pytest.raises(RuntimeError):
            with db.transaction() as session:
                LedgerService(session).debit(student_id, "5.00")
                raise RuntimeError("worker crashed")

        assert balance_of(db, student_id) == Decimal("10.00")
