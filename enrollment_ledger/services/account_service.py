# enrollment_ledger/services/account_service.py - Student-facing balance operations
from typing import Any
import logging

from enrollment_ledger.core.db import DatabaseManager
from enrollment_ledger.core.permissions import Capability, Principal, authorize
from enrollment_ledger.schemas.account import BalanceOut, RechargeResult
from enrollment_ledger.services.ledger import LedgerService, format_money, normalize_amount

logger = logging.getLogger(__name__)


class AccountService:
    """Balance lookup and recharge for the signed-in student"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def get_balance(self, principal: Principal) -> BalanceOut:
        authorize(principal, Capability.VIEW_BALANCE)
        student_id = principal.require_linked_entity()

        with self.db.session() as session:
            balance = LedgerService(session).get_balance(student_id)
        return BalanceOut(student_id=student_id, balance=balance)

    def recharge(self, principal: Principal, amount: Any) -> RechargeResult:
        """
        Credit the student's own balance. No enrollment is involved.

        Raises:
            PermissionDenied: If the principal is not a student
            InvalidAmount: If amount is not positive with at most 2 decimals
            StudentNotFound: If the linked student record is gone
        """
        authorize(principal, Capability.RECHARGE)
        amount = normalize_amount(amount)
        student_id = principal.require_linked_entity()

        with self.db.transaction() as session:
            balance = LedgerService(session).credit(student_id, amount)

        logger.info(f"Student {student_id} recharged {format_money(amount)}")
        return RechargeResult(student_id=student_id, amount=amount, balance=balance)
