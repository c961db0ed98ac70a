# enrollment_ledger/services/catalog.py - Read-only course catalog lookups
from typing import List
from uuid import UUID

from sqlalchemy import select, and_
from sqlalchemy.orm import Session, joinedload

from enrollment_ledger.models.course import Course, OPEN_COURSE_STATUSES
from enrollment_ledger.models.enrollment import Enrollment, ACTIVE_ENROLLMENT_STATUSES
from enrollment_ledger.services.errors import CourseNotFound


class CourseCatalog:
    """Course lookups consumed by the enrollment state machine"""

    def __init__(self, session: Session):
        self.session = session

    def find_active_course(self, course_id: UUID, lock: bool = False) -> Course:
        """
        Resolve a course that has not been soft-deleted.

        With lock=True the row is held FOR SHARE until the unit of work ends,
        so a concurrent price change cannot slip in between the price read and
        the debit.

        Raises:
            CourseNotFound: If the course is missing or deleted
        """
        stmt = select(Course).where(Course.id == course_id, Course.is_deleted.is_(False))
        if lock:
            stmt = stmt.with_for_update(read=True)

        course = self.session.execute(stmt).scalar_one_or_none()
        if not course:
            raise CourseNotFound(f"Course {course_id} does not exist or has been removed")
        return course

    def list_available_courses(self, student_id: UUID) -> List[Course]:
        """Open, non-deleted courses the student has no pending/approved enrollment for"""
        active_enrollment = and_(
            Enrollment.course_id == Course.id,
            Enrollment.student_id == student_id,
            Enrollment.status.in_(ACTIVE_ENROLLMENT_STATUSES),
        )
        stmt = (
            select(Course)
            .options(joinedload(Course.teacher))
            .outerjoin(Enrollment, active_enrollment)
            .where(
                Enrollment.id.is_(None),
                Course.is_deleted.is_(False),
                Course.status.in_(OPEN_COURSE_STATUSES),
            )
            .order_by(Course.name.asc())
        )
        return list(self.session.execute(stmt).scalars().unique().all())
