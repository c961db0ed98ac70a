# enrollment_ledger/models/enrollment.py - Enrollment record with the frozen amount paid
from __future__ import annotations
import enum
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, Boolean, Numeric, DateTime, ForeignKey, CheckConstraint, Index, Uuid, false, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enrollment_ledger.models.base import Base


class EnrollmentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# At most one enrollment per (student, course) may be in one of these
ACTIVE_ENROLLMENT_STATUSES = (EnrollmentStatus.PENDING.value, EnrollmentStatus.APPROVED.value)

_ACTIVE_PREDICATE = text("status IN ('pending', 'approved')")


class Enrollment(Base):
    """
    Links a student to a course. amount_paid is a snapshot of the course
    price at enrollment time and is what a rejection refunds.
    """
    __tablename__ = "enrollments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("courses.id"), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=EnrollmentStatus.PENDING.value)
    # NULL only on rows written before the ledger existed
    amount_paid: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    refunded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    student: Mapped["Student"] = relationship("Student", back_populates="enrollments")
    course: Mapped["Course"] = relationship("Course", back_populates="enrollments")

    __table_args__ = (
        Index(
            "uq_enrollment_active_student_course",
            "student_id",
            "course_id",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
        CheckConstraint("status IN ('pending','approved','rejected')", name="status"),
        CheckConstraint("amount_paid IS NULL OR amount_paid >= 0", name="amount_paid_non_negative"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_ENROLLMENT_STATUSES

    def __repr__(self):
        return f"<Enrollment(id={self.id}, student_id={self.student_id}, course_id={self.course_id}, status={self.status})>"
