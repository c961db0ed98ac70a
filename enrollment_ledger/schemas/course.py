# enrollment_ledger/schemas/course.py - Course catalog views
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
import uuid


class AvailableCourseOut(BaseModel):
    id: uuid.UUID
    name: str
    price: Decimal
    status: str
    description: Optional[str] = None
    teacher_id: Optional[uuid.UUID] = None
    teacher_name: Optional[str] = None
    created_at: datetime


class CourseEnrollmentEntry(BaseModel):
    enrollment_id: uuid.UUID
    student_id: uuid.UUID
    student_name: Optional[str] = None
    phone: Optional[str] = None
    status: str
    created_at: datetime


class TeacherCourseEnrollments(BaseModel):
    course_id: uuid.UUID
    course_name: str
    price: Decimal
    status: str
    students: List[CourseEnrollmentEntry] = []
