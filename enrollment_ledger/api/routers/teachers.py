# enrollment_ledger/api/routers/teachers.py - Teacher view of their courses' enrollments
from fastapi import APIRouter, Depends
from typing import List

from enrollment_ledger.api.deps.auth import get_current_principal
from enrollment_ledger.api.deps.services import get_enrollment_service
from enrollment_ledger.core.permissions import Principal
from enrollment_ledger.schemas.common import ApiResponse
from enrollment_ledger.schemas.course import TeacherCourseEnrollments
from enrollment_ledger.services.enrollment_service import EnrollmentService

router = APIRouter()


@router.get("/me/enrollments", response_model=ApiResponse[List[TeacherCourseEnrollments]])
def my_course_enrollments(
    principal: Principal = Depends(get_current_principal),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    courses = service.teacher_enrollments(principal)
    return ApiResponse(message=f"{len(courses)} course(s)", data=courses)
