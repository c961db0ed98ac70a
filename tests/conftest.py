"""Pytest configuration and shared fixtures.

Every test gets its own in-memory SQLite database unless it asks for the
file-backed one (see test_concurrency.py).
"""
import uuid
from decimal import Decimal
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from enrollment_ledger.core.config import Settings
from enrollment_ledger.core.db import DatabaseManager
from enrollment_ledger.core.permissions import Principal, Role
from enrollment_ledger.core.security import TokenManager
from enrollment_ledger.models import Course, CourseStatus, Enrollment, Student, Teacher
from enrollment_ledger.services.ledger import LedgerService

TEST_JWT_SECRET = "test-secret-key-for-the-enrollment-ledger-suite"


def make_settings(**overrides) -> Settings:
    values = {
        "ENV": "test",
        "DATABASE_URL": "sqlite:///:memory:",
        "JWT_SECRET": TEST_JWT_SECRET,
        "LOG_LEVEL": "DEBUG",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# =============================================================================
# Storage
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def db(settings):
    manager = DatabaseManager(settings)
    manager.create_all()
    yield manager
    manager.close()


# =============================================================================
# Seed data
# =============================================================================


def add_teacher(db: DatabaseManager, name: str = "Ms. Li") -> uuid.UUID:
    with db.transaction() as session:
        teacher = Teacher(id=uuid.uuid4(), name=name, phone="13800000000")
        session.add(teacher)
    return teacher.id


def add_course(
    db: DatabaseManager,
    price: str = "80.00",
    name: str = "Algebra I",
    teacher_id: Optional[uuid.UUID] = None,
    status: CourseStatus = CourseStatus.NOT_STARTED,
    is_deleted: bool = False,
) -> uuid.UUID:
    with db.transaction() as session:
        course = Course(
            id=uuid.uuid4(),
            name=name,
            teacher_id=teacher_id,
            price=Decimal(price),
            status=status.value,
            is_deleted=is_deleted,
        )
        session.add(course)
    return course.id


def add_student(db: DatabaseManager, balance: str = "0.00", name: str = "Alice") -> uuid.UUID:
    with db.transaction() as session:
        student = Student(id=uuid.uuid4(), name=name, phone="13900000000", balance=Decimal(balance))
        session.add(student)
    return student.id


def balance_of(db: DatabaseManager, student_id: uuid.UUID) -> Decimal:
    with db.session() as session:
        return LedgerService(session).get_balance(student_id)


def load_student(db: DatabaseManager, student_id: uuid.UUID) -> Student:
    with db.session() as session:
        student = session.get(Student, student_id)
        session.expunge(student)
        return student


def load_enrollment(db: DatabaseManager, enrollment_id: uuid.UUID) -> Enrollment:
    with db.session() as session:
        enrollment = session.get(Enrollment, enrollment_id)
        session.expunge(enrollment)
        return enrollment


def update_course(db: DatabaseManager, course_id: uuid.UUID, **values):
    """Simulate course management editing a course"""
    with db.transaction() as session:
        course = session.get(Course, course_id)
        for key, value in values.items():
            setattr(course, key, value)


# =============================================================================
# Principals and tokens
# =============================================================================


def student_principal(student_id: uuid.UUID) -> Principal:
    return Principal(user_id=f"user-{student_id}", role=Role.STUDENT, linked_entity_id=student_id)


def teacher_principal(teacher_id: uuid.UUID) -> Principal:
    return Principal(user_id=f"user-{teacher_id}", role=Role.TEACHER, linked_entity_id=teacher_id)


@pytest.fixture
def admin() -> Principal:
    return Principal(user_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def tokens(settings) -> TokenManager:
    return TokenManager(settings)


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def client(settings):
    from enrollment_ledger.main import create_app

    with TestClient(create_app(settings)) as test_client:
        yield test_client
