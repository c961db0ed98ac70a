# enrollment_ledger/api/deps/services.py - Storage handle and service wiring
from fastapi import Depends, Request

from enrollment_ledger.core.db import DatabaseManager
from enrollment_ledger.services.account_service import AccountService
from enrollment_ledger.services.enrollment_service import EnrollmentService


def get_db_manager(request: Request) -> DatabaseManager:
    """The DatabaseManager opened by the application lifespan"""
    return request.app.state.db


def get_enrollment_service(db: DatabaseManager = Depends(get_db_manager)) -> EnrollmentService:
    return EnrollmentService(db)


def get_account_service(db: DatabaseManager = Depends(get_db_manager)) -> AccountService:
    return AccountService(db)
