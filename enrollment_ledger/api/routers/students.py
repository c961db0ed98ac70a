# enrollment_ledger/api/routers/students.py - Balance and recharge for the signed-in student
from fastapi import APIRouter, Depends

from enrollment_ledger.api.deps.auth import get_current_principal
from enrollment_ledger.api.deps.services import get_account_service
from enrollment_ledger.core.permissions import Principal
from enrollment_ledger.schemas.account import BalanceOut, RechargeRequest, RechargeResult
from enrollment_ledger.schemas.common import ApiResponse
from enrollment_ledger.services.account_service import AccountService
from enrollment_ledger.services.ledger import format_money

router = APIRouter()


@router.get("/me/balance", response_model=ApiResponse[BalanceOut])
def get_my_balance(
    principal: Principal = Depends(get_current_principal),
    service: AccountService = Depends(get_account_service),
):
    balance = service.get_balance(principal)
    return ApiResponse(message=f"Current balance {format_money(balance.balance)}", data=balance)


@router.post("/me/recharge", response_model=ApiResponse[RechargeResult])
def recharge(
    data: RechargeRequest,
    principal: Principal = Depends(get_current_principal),
    service: AccountService = Depends(get_account_service),
):
    """Top up the signed-in student's balance"""
    result = service.recharge(principal, data.amount)
    return ApiResponse(
        message=f"Recharged {format_money(result.amount)}; balance {format_money(result.balance)}",
        data=result,
    )
