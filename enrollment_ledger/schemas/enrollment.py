# enrollment_ledger/schemas/enrollment.py - Enrollment schemas
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
import uuid


class EnrollmentCreate(BaseModel):
    course_id: uuid.UUID


class ReviewRequest(BaseModel):
    # validated by the service so the error carries the review vocabulary
    status: str = Field(..., description="approved, rejected or pending")


class EnrollmentFilters(BaseModel):
    student_id: Optional[uuid.UUID] = None
    student_name: Optional[str] = Field(default=None, max_length=64)
    course_name: Optional[str] = Field(default=None, max_length=128)


class EnrollmentOut(BaseModel):
    id: uuid.UUID
    student_id: uuid.UUID
    course_id: uuid.UUID
    status: str
    amount_paid: Optional[Decimal] = None
    refunded: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EnrollmentView(EnrollmentOut):
    """Enrollment joined with the names a listing screen needs"""
    student_name: Optional[str] = None
    course_name: Optional[str] = None
    course_price: Optional[Decimal] = None
    course_status: Optional[str] = None
    teacher_name: Optional[str] = None


class EnrollmentReceipt(BaseModel):
    enrollment: EnrollmentOut
    remaining_balance: Decimal


class ReviewResult(BaseModel):
    enrollment_id: uuid.UUID
    previous_status: str
    status: str
    refund: Decimal = Decimal("0.00")
    # balance after the refund; None when no money moved
    balance: Optional[Decimal] = None
