# enrollment_ledger/services/ledger.py - Student balance debit/credit
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from enrollment_ledger.models.student import Student
from enrollment_ledger.services.errors import InvalidAmount, InsufficientFunds, StudentNotFound

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest value a NUMERIC(12, 2) column holds
MAX_BALANCE = Decimal("9999999999.99")


def to_money(value: Any) -> Decimal:
    """Quantize a stored or computed value to two decimal places; None counts as zero"""
    if value is None:
        return ZERO
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    return f"{to_money(value):.2f}"


def normalize_amount(value: Any) -> Decimal:
    """
    Validate a caller-supplied amount.

    Accepts Decimal, int, str or float. The amount must be finite, greater
    than zero and carry at most two fractional digits.

    Raises:
        InvalidAmount: If any of the above does not hold
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmount("Amount is required and must be a number")

    try:
        # str() first so 19.99 is read as written, not as its binary expansion
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Amount must be a number, got {value!r}")

    if not amount.is_finite():
        raise InvalidAmount("Amount must be a finite number")
    if amount <= 0:
        raise InvalidAmount("Amount must be greater than 0")
    if amount > MAX_BALANCE:
        raise InvalidAmount(f"Amount must not exceed {MAX_BALANCE}")
    if amount != amount.quantize(TWO_PLACES):
        raise InvalidAmount("Amount must have at most 2 decimal places")

    return amount.quantize(TWO_PLACES)


class LedgerService:
    """
    Debit and credit operations on student balances.

    Runs inside the caller's unit of work (see DatabaseManager.transaction);
    it flushes but never commits. Every mutation first takes a write lock on
    the student row so concurrent debits cannot both pass the balance check.
    """

    def __init__(self, session: Session):
        self.session = session

    def lock_account(self, student_id: UUID) -> Student:
        """
        Load a student row for update.

        Raises:
            StudentNotFound: If no such student exists
        """
        student = self.session.execute(
            select(Student)
            .where(Student.id == student_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if not student:
            raise StudentNotFound(f"Student {student_id} not found")
        return student

    def debit(self, student_id: UUID, amount: Any) -> Decimal:
        """
        Subtract amount from the student's balance.

        Returns:
            The balance after the debit

        Raises:
            InvalidAmount: If amount is not a positive 2-decimal number
            StudentNotFound: If no such student exists
            InsufficientFunds: If the balance is lower than amount
        """
        amount = normalize_amount(amount)
        student = self.lock_account(student_id)
        balance = to_money(student.balance)

        if balance < amount:
            raise InsufficientFunds(
                f"Insufficient balance: {format_money(balance)} available, {format_money(amount)} required"
            )

        student.balance = to_money(balance - amount)
        self.session.flush()

        logger.info(f"Debited {format_money(amount)} from student {student_id}, balance {format_money(student.balance)}")
        return student.balance

    def credit(self, student_id: UUID, amount: Any) -> Decimal:
        """
        Add amount to the student's balance.

        Returns:
            The balance after the credit

        Raises:
            InvalidAmount: If amount is not a positive 2-decimal number
            StudentNotFound: If no such student exists
        """
        amount = normalize_amount(amount)
        student = self.lock_account(student_id)
        new_balance = to_money(student.balance) + amount

        if new_balance > MAX_BALANCE:
            raise InvalidAmount(f"Balance cannot exceed {MAX_BALANCE}")

        student.balance = to_money(new_balance)
        self.session.flush()

        logger.info(f"Credited {format_money(amount)} to student {student_id}, balance {format_money(student.balance)}")
        return student.balance

    def get_balance(self, student_id: UUID) -> Decimal:
        """
        Raises:
            StudentNotFound: If no such student exists
        """
        row = self.session.execute(
            select(Student.id, Student.balance).where(Student.id == student_id)
        ).first()

        if row is None:
            raise StudentNotFound(f"Student {student_id} not found")
        return to_money(row.balance)
