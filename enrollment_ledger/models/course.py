# enrollment_ledger/models/course.py - Course catalog and teachers (read-only here)
from __future__ import annotations
import enum
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, Text, Boolean, Numeric, DateTime, ForeignKey, CheckConstraint, Uuid, false
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enrollment_ledger.models.base import Base


class CourseStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Courses a student may still enroll in
OPEN_COURSE_STATUSES = (CourseStatus.NOT_STARTED.value, CourseStatus.IN_PROGRESS.value)


class Teacher(Base):
    __tablename__ = "teachers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32))

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    courses: Mapped[list["Course"]] = relationship("Course", back_populates="teacher")


class Course(Base):
    """
    Owned by course management. Deletion is soft (is_deleted); price and
    status are read at enrollment time and never written by this service.
    """
    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    teacher_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True, index=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=CourseStatus.NOT_STARTED.value)
    description: Mapped[str | None] = mapped_column(Text)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    teacher: Mapped["Teacher | None"] = relationship("Teacher", back_populates="courses")
    enrollments: Mapped[list["Enrollment"]] = relationship("Enrollment", back_populates="course")

    __table_args__ = (
        CheckConstraint("price > 0", name="price_positive"),
        CheckConstraint("status IN ('not_started','in_progress','completed')", name="status"),
    )

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_COURSE_STATUSES

    def __repr__(self):
        return f"<Course(id={self.id}, name='{self.name}', price={self.price}, status={self.status})>"
