# enrollment_ledger/models/__init__.py - Import all models so SQLAlchemy can discover them

from enrollment_ledger.models.base import Base
from enrollment_ledger.models.student import Student
from enrollment_ledger.models.course import Course, CourseStatus, Teacher, OPEN_COURSE_STATUSES
from enrollment_ledger.models.enrollment import Enrollment, EnrollmentStatus, ACTIVE_ENROLLMENT_STATUSES

__all__ = [
    "Base",
    "Student",
    "Teacher",
    "Course",
    "CourseStatus",
    "OPEN_COURSE_STATUSES",
    "Enrollment",
    "EnrollmentStatus",
    "ACTIVE_ENROLLMENT_STATUSES",
]
