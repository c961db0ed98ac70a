# enrollment_ledger/models/student.py - Student account holding the prepaid balance
from __future__ import annotations
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, Integer, Numeric, DateTime, ForeignKey, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enrollment_ledger.models.base import Base


class Student(Base):
    """
    Student accounts are created and deleted by student management.
    This service only moves the balance and the linked course.
    """
    __tablename__ = "students"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32))

    # Never written directly: see LedgerService.debit / credit
    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default="0")
    course_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("courses.id"), nullable=True)

    # Optimistic lock: bumped on every UPDATE, a stale write raises StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    course: Mapped["Course | None"] = relationship("Course", foreign_keys=[course_id])
    enrollments: Mapped[list["Enrollment"]] = relationship(
        "Enrollment",
        back_populates="student",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="balance_non_negative"),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Student(id={self.id}, name='{self.name}', balance={self.balance})>"
