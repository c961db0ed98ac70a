# enrollment_ledger/api/routers/enrollments.py - Enrollment endpoints
from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from uuid import UUID
import logging

from enrollment_ledger.api.deps.auth import get_current_principal
from enrollment_ledger.api.deps.services import get_enrollment_service
from enrollment_ledger.core.permissions import Principal
from enrollment_ledger.models.enrollment import EnrollmentStatus
from enrollment_ledger.schemas.common import ApiResponse
from enrollment_ledger.schemas.enrollment import (
    EnrollmentCreate,
    EnrollmentFilters,
    EnrollmentReceipt,
    EnrollmentView,
    ReviewRequest,
    ReviewResult,
)
from enrollment_ledger.services.enrollment_service import EnrollmentService
from enrollment_ledger.services.ledger import format_money

logger = logging.getLogger(__name__)
router = APIRouter()


def _review_message(result: ReviewResult) -> str:
    if result.status == EnrollmentStatus.APPROVED.value:
        return "Enrollment approved"
    if result.status == EnrollmentStatus.REJECTED.value:
        if result.refund > 0:
            return f"Enrollment rejected; {format_money(result.refund)} refunded to the student's balance"
        return "Enrollment rejected"
    return "Enrollment reset to pending"


@router.get("", response_model=ApiResponse[List[EnrollmentView]])
def list_enrollments(
    student_id: Optional[UUID] = Query(default=None),
    student_name: Optional[str] = Query(default=None, max_length=64),
    course_name: Optional[str] = Query(default=None, max_length=128),
    principal: Principal = Depends(get_current_principal),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    """List enrollments; students only see their own"""
    filters = EnrollmentFilters(student_id=student_id, student_name=student_name, course_name=course_name)
    enrollments = service.list_enrollments(principal, filters)
    return ApiResponse(message=f"{len(enrollments)} enrollment(s) found", data=enrollments)


@router.get("/{enrollment_id}", response_model=ApiResponse[EnrollmentView])
def get_enrollment(
    enrollment_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    return ApiResponse(message="Enrollment found", data=service.get_enrollment(principal, enrollment_id))


@router.post("", response_model=ApiResponse[EnrollmentReceipt], status_code=status.HTTP_201_CREATED)
def create_enrollment(
    data: EnrollmentCreate,
    principal: Principal = Depends(get_current_principal),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    """Enroll the signed-in student; the course price is debited immediately"""
    receipt = service.enroll(principal, data.course_id)
    return ApiResponse(
        message=f"Enrollment submitted and awaiting review; remaining balance {format_money(receipt.remaining_balance)}",
        data=receipt,
    )


@router.put("/{enrollment_id}/review", response_model=ApiResponse[ReviewResult])
def review_enrollment(
    enrollment_id: UUID,
    data: ReviewRequest,
    principal: Principal = Depends(get_current_principal),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    """Approve, reject (with refund) or reset an enrollment"""
    result = service.review(principal, enrollment_id, data.status)
    logger.info(f"Enrollment {enrollment_id} reviewed by user {principal.user_id}: {result.status}")
    return ApiResponse(message=_review_message(result), data=result)
