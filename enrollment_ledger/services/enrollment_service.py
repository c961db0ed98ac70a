# enrollment_ledger/services/enrollment_service.py - Enrollment state machine
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from enrollment_ledger.core.db import DatabaseManager
from enrollment_ledger.core.permissions import Capability, Principal, authorize
from enrollment_ledger.models.course import Course, CourseStatus, Teacher
from enrollment_ledger.models.enrollment import Enrollment, EnrollmentStatus, ACTIVE_ENROLLMENT_STATUSES
from enrollment_ledger.models.student import Student
from enrollment_ledger.schemas.course import AvailableCourseOut, CourseEnrollmentEntry, TeacherCourseEnrollments
from enrollment_ledger.schemas.enrollment import (
    EnrollmentFilters,
    EnrollmentOut,
    EnrollmentReceipt,
    EnrollmentView,
    ReviewResult,
)
from enrollment_ledger.services.catalog import CourseCatalog
from enrollment_ledger.services.errors import (
    CourseClosed,
    DuplicateEnrollment,
    EnrollmentNotFound,
    InsufficientFunds,
    InvalidStatus,
    PermissionDenied,
)
from enrollment_ledger.services.ledger import LedgerService, ZERO, format_money, to_money

logger = logging.getLogger(__name__)

ACTIVE_INDEX_NAME = "uq_enrollment_active_student_course"
REVIEW_STATUSES = tuple(s.value for s in EnrollmentStatus)


def _is_active_duplicate(exc: IntegrityError) -> bool:
    """True when the violation is the one-active-enrollment-per-pair index"""
    message = str(exc.orig)
    return ACTIVE_INDEX_NAME in message or (
        "UNIQUE constraint failed" in message and "enrollments.student_id" in message
    )


def _contains(value: str) -> str:
    """LIKE pattern matching value as a literal substring"""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class EnrollmentService:
    """
    Enrollment creation and review.

    enroll_student and review_enrollment each run as one unit of work: the
    balance change and the enrollment row change commit together or not at
    all. The principal-level methods (enroll, review, ...) apply the role
    policy first and then delegate.
    """

    def __init__(self, db: DatabaseManager):
        self.db = db

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def enroll_student(self, student_id: UUID, course_id: UUID) -> EnrollmentReceipt:
        """
        Enroll a student in a course, paying the course price from the balance.

        Checks, first failure wins: course exists, course not completed, no
        pending/approved enrollment for the pair, student exists, balance
        covers the price.

        Raises:
            CourseNotFound, CourseClosed, DuplicateEnrollment,
            StudentNotFound, InsufficientFunds, InternalFailure
        """
        with self.db.transaction() as session:
            catalog = CourseCatalog(session)
            ledger = LedgerService(session)

            course = catalog.find_active_course(course_id, lock=True)
            if course.status == CourseStatus.COMPLETED.value:
                raise CourseClosed(f"Course '{course.name}' has completed and no longer accepts enrollments")

            if self._find_active_enrollment(session, student_id, course_id) is not None:
                raise DuplicateEnrollment("Student is already enrolled in this course")

            student = ledger.lock_account(student_id)
            price = to_money(course.price)
            balance = to_money(student.balance)
            if balance < price:
                raise InsufficientFunds(
                    f"Insufficient balance ({format_money(balance)}) for course price "
                    f"{format_money(price)}; please recharge before enrolling"
                )

            remaining = ledger.debit(student_id, price)
            enrollment = Enrollment(
                id=uuid4(),
                student_id=student_id,
                course_id=course_id,
                status=EnrollmentStatus.PENDING.value,
                amount_paid=price,
                created_at=datetime.utcnow(),
            )
            session.add(enrollment)
            try:
                session.flush()
            except IntegrityError as e:
                if _is_active_duplicate(e):
                    raise DuplicateEnrollment("Student is already enrolled in this course") from e
                raise

            receipt = EnrollmentReceipt(
                enrollment=EnrollmentOut.model_validate(enrollment),
                remaining_balance=remaining,
            )

        logger.info(
            f"Enrollment {receipt.enrollment.id} created: student {student_id} course {course_id} "
            f"paid {format_money(price)}, balance {format_money(remaining)}"
        )
        return receipt

    def review_enrollment(self, enrollment_id: UUID, new_status: Any) -> ReviewResult:
        """
        Move an enrollment to approved, rejected or pending.

        Rejecting refunds the amount paid. Approving links the student to the
        course; rejecting an approved enrollment unlinks it. Resetting to
        pending moves no money and touches no link.

        A payment is refunded at most once: after reject, pending, reject the
        second rejection refunds 0.00 because the enrollment is already marked
        refunded. Checking only the previous status would pay the same amount
        back twice.

        Raises:
            InvalidStatus, EnrollmentNotFound, DuplicateEnrollment, InternalFailure
        """
        status = self._parse_status(new_status)

        with self.db.transaction() as session:
            enrollment = session.execute(
                select(Enrollment)
                .where(Enrollment.id == enrollment_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()

            if not enrollment:
                raise EnrollmentNotFound(f"Enrollment {enrollment_id} not found")

            previous = enrollment.status
            paid = ZERO
            if (
                status == EnrollmentStatus.REJECTED.value
                and previous != EnrollmentStatus.REJECTED.value
                and not enrollment.refunded
            ):
                paid = self._paid_amount(session, enrollment)
            needs_refund = paid > ZERO

            enrollment.status = status
            try:
                session.flush()
            except IntegrityError as e:
                if _is_active_duplicate(e):
                    raise DuplicateEnrollment(
                        "Student already has another pending or approved enrollment in this course"
                    ) from e
                raise

            ledger = LedgerService(session)
            balance: Optional[Decimal] = None
            if needs_refund:
                balance = ledger.credit(enrollment.student_id, paid)
                enrollment.refunded = True

            if status == EnrollmentStatus.APPROVED.value:
                student = ledger.lock_account(enrollment.student_id)
                if student.course_id != enrollment.course_id:
                    student.course_id = enrollment.course_id
            elif status == EnrollmentStatus.REJECTED.value and previous == EnrollmentStatus.APPROVED.value:
                student = ledger.lock_account(enrollment.student_id)
                if student.course_id == enrollment.course_id:
                    student.course_id = None

            session.flush()
            result = ReviewResult(
                enrollment_id=enrollment.id,
                previous_status=previous,
                status=status,
                refund=paid if needs_refund else ZERO,
                balance=balance,
            )

        logger.info(
            f"Enrollment {enrollment_id} reviewed: {previous} -> {status}, refund {format_money(result.refund)}"
        )
        return result

    # ------------------------------------------------------------------
    # Principal-level operations
    # ------------------------------------------------------------------

    def enroll(self, principal: Principal, course_id: UUID) -> EnrollmentReceipt:
        authorize(principal, Capability.ENROLL)
        return self.enroll_student(principal.require_linked_entity(), course_id)

    def review(self, principal: Principal, enrollment_id: UUID, new_status: Any) -> ReviewResult:
        authorize(principal, Capability.REVIEW)
        return self.review_enrollment(enrollment_id, new_status)

    def list_enrollments(self, principal: Principal, filters: Optional[EnrollmentFilters] = None) -> List[EnrollmentView]:
        """Students see their own enrollments; admins and teachers see all, optionally filtered"""
        authorize(principal, Capability.LIST_ENROLLMENTS)
        filters = filters or EnrollmentFilters()

        stmt = self._enrollment_view_query()
        if principal.is_student:
            stmt = stmt.where(Enrollment.student_id == principal.require_linked_entity())
        if filters.student_id:
            stmt = stmt.where(Enrollment.student_id == filters.student_id)
        if filters.student_name:
            stmt = stmt.where(Student.name.ilike(_contains(filters.student_name), escape="\\"))
        if filters.course_name:
            stmt = stmt.where(Course.name.ilike(_contains(filters.course_name), escape="\\"))
        stmt = stmt.order_by(Enrollment.created_at.desc())

        with self.db.session() as session:
            rows = session.execute(stmt).all()
            return [self._to_view(row) for row in rows]

    def get_enrollment(self, principal: Principal, enrollment_id: UUID) -> EnrollmentView:
        authorize(principal, Capability.VIEW_ENROLLMENT)

        with self.db.session() as session:
            row = session.execute(
                self._enrollment_view_query().where(Enrollment.id == enrollment_id)
            ).first()

            if row is None:
                raise EnrollmentNotFound(f"Enrollment {enrollment_id} not found")
            if principal.is_student and row.Enrollment.student_id != principal.require_linked_entity():
                raise PermissionDenied("Students can only view their own enrollments")
            return self._to_view(row)

    def list_available_courses(self, principal: Principal) -> List[AvailableCourseOut]:
        """Open courses the student can still enroll in"""
        authorize(principal, Capability.LIST_AVAILABLE_COURSES)
        student_id = principal.require_linked_entity()

        with self.db.session() as session:
            courses = CourseCatalog(session).list_available_courses(student_id)
            return [
                AvailableCourseOut(
                    id=c.id,
                    name=c.name,
                    price=to_money(c.price),
                    status=c.status,
                    description=c.description,
                    teacher_id=c.teacher_id,
                    teacher_name=c.teacher.name if c.teacher else None,
                    created_at=c.created_at,
                )
                for c in courses
            ]

    def teacher_enrollments(self, principal: Principal) -> List[TeacherCourseEnrollments]:
        """The teacher's courses, each with its enrollments, newest enrollment first"""
        authorize(principal, Capability.VIEW_TEACHER_ENROLLMENTS)
        teacher_id = principal.require_linked_entity()

        stmt = (
            select(Course, Enrollment, Student.name.label("student_name"), Student.phone.label("phone"))
            .outerjoin(Enrollment, Enrollment.course_id == Course.id)
            .outerjoin(Student, Enrollment.student_id == Student.id)
            .where(Course.teacher_id == teacher_id, Course.is_deleted.is_(False))
            .order_by(Course.name.asc(), Course.id.asc(), Enrollment.created_at.desc())
        )

        grouped: Dict[UUID, TeacherCourseEnrollments] = {}
        with self.db.session() as session:
            for row in session.execute(stmt).all():
                course = row.Course
                entry = grouped.get(course.id)
                if entry is None:
                    entry = grouped[course.id] = TeacherCourseEnrollments(
                        course_id=course.id,
                        course_name=course.name,
                        price=to_money(course.price),
                        status=course.status,
                        students=[],
                    )
                if row.Enrollment is not None:
                    entry.students.append(CourseEnrollmentEntry(
                        enrollment_id=row.Enrollment.id,
                        student_id=row.Enrollment.student_id,
                        student_name=row.student_name,
                        phone=row.phone,
                        status=row.Enrollment.status,
                        created_at=row.Enrollment.created_at,
                    ))

        return list(grouped.values())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_status(value: Any) -> str:
        if isinstance(value, EnrollmentStatus):
            return value.value
        if isinstance(value, str) and value in REVIEW_STATUSES:
            return value
        raise InvalidStatus(f"Status must be one of: {', '.join(REVIEW_STATUSES)}")

    @staticmethod
    def _find_active_enrollment(session: Session, student_id: UUID, course_id: UUID) -> Optional[Enrollment]:
        return session.execute(
            select(Enrollment).where(
                Enrollment.student_id == student_id,
                Enrollment.course_id == course_id,
                Enrollment.status.in_(ACTIVE_ENROLLMENT_STATUSES),
            )
        ).scalars().first()

    @staticmethod
    def _paid_amount(session: Session, enrollment: Enrollment) -> Decimal:
        """
        What the student paid for this enrollment. Rows written before
        amount_paid existed fall back to the course's current price.
        """
        if enrollment.amount_paid is not None:
            return to_money(enrollment.amount_paid)

        course = session.get(Course, enrollment.course_id)
        fallback = to_money(course.price) if course else ZERO
        logger.warning(
            f"Enrollment {enrollment.id} has no amount_paid; using current course price {format_money(fallback)}"
        )
        return fallback

    @staticmethod
    def _enrollment_view_query():
        return (
            select(
                Enrollment,
                Student.name.label("student_name"),
                Course.name.label("course_name"),
                Course.price.label("course_price"),
                Course.status.label("course_status"),
                Teacher.name.label("teacher_name"),
            )
            .outerjoin(Student, Enrollment.student_id == Student.id)
            .outerjoin(Course, Enrollment.course_id == Course.id)
            .outerjoin(Teacher, Course.teacher_id == Teacher.id)
        )

    @staticmethod
    def _to_view(row) -> EnrollmentView:
        enrollment = row.Enrollment
        return EnrollmentView(
            id=enrollment.id,
            student_id=enrollment.student_id,
            course_id=enrollment.course_id,
            status=enrollment.status,
            amount_paid=to_money(enrollment.amount_paid) if enrollment.amount_paid is not None else None,
            refunded=enrollment.refunded,
            created_at=enrollment.created_at,
            updated_at=enrollment.updated_at,
            student_name=row.student_name,
            course_name=row.course_name,
            course_price=to_money(row.course_price) if row.course_price is not None else None,
            course_status=row.course_status,
            teacher_name=row.teacher_name,
        )
