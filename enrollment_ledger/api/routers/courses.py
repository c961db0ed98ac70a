# enrollment_ledger/api/routers/courses.py - Course catalog views
from fastapi import APIRouter, Depends
from typing import List

from enrollment_ledger.api.deps.auth import get_current_principal
from enrollment_ledger.api.deps.services import get_enrollment_service
from enrollment_ledger.core.permissions import Principal
from enrollment_ledger.schemas.common import ApiResponse
from enrollment_ledger.schemas.course import AvailableCourseOut
from enrollment_ledger.services.enrollment_service import EnrollmentService

router = APIRouter()


@router.get("/available", response_model=ApiResponse[List[AvailableCourseOut]])
def list_available_courses(
    principal: Principal = Depends(get_current_principal),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    """Open courses the signed-in student is not already enrolled in"""
    courses = service.list_available_courses(principal)
    return ApiResponse(message=f"{len(courses)} course(s) available", data=courses)
