# enrollment_ledger/schemas/account.py - Balance and recharge schemas
from pydantic import BaseModel, Field
from decimal import Decimal
import uuid


class BalanceOut(BaseModel):
    student_id: uuid.UUID
    balance: Decimal


class RechargeRequest(BaseModel):
    amount: Decimal = Field(..., description="Positive amount with at most 2 decimal places")


class RechargeResult(BaseModel):
    student_id: uuid.UUID
    amount: Decimal
    balance: Decimal
