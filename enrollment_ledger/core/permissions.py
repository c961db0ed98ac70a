# enrollment_ledger/core/permissions.py - Principal and the role/capability policy
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional
from uuid import UUID
import enum

from enrollment_ledger.services.errors import PermissionDenied, ValidationError


class Role(str, enum.Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class Capability(str, enum.Enum):
    ENROLL = "enroll"
    REVIEW = "review"
    VIEW_BALANCE = "view_balance"
    RECHARGE = "recharge"
    LIST_ENROLLMENTS = "list_enrollments"
    VIEW_ENROLLMENT = "view_enrollment"
    LIST_AVAILABLE_COURSES = "list_available_courses"
    VIEW_TEACHER_ENROLLMENTS = "view_teacher_enrollments"


POLICY: Dict[Capability, FrozenSet[Role]] = {
    Capability.ENROLL: frozenset({Role.STUDENT}),
    Capability.REVIEW: frozenset({Role.ADMIN}),
    Capability.VIEW_BALANCE: frozenset({Role.STUDENT}),
    Capability.RECHARGE: frozenset({Role.STUDENT}),
    Capability.LIST_ENROLLMENTS: frozenset({Role.ADMIN, Role.TEACHER, Role.STUDENT}),
    Capability.VIEW_ENROLLMENT: frozenset({Role.ADMIN, Role.TEACHER, Role.STUDENT}),
    Capability.LIST_AVAILABLE_COURSES: frozenset({Role.STUDENT}),
    Capability.VIEW_TEACHER_ENROLLMENTS: frozenset({Role.TEACHER}),
}

_DENIED_MESSAGES = {
    Capability.ENROLL: "Only students can enroll in courses",
    Capability.REVIEW: "Only administrators can review enrollments",
    Capability.VIEW_BALANCE: "Only students can view a balance",
    Capability.RECHARGE: "Only students can recharge a balance",
    Capability.LIST_AVAILABLE_COURSES: "Only students can list available courses",
    Capability.VIEW_TEACHER_ENROLLMENTS: "Only teachers can view their course enrollments",
}


@dataclass(frozen=True)
class Principal:
    """Authenticated identity attached to a request by the auth layer"""

    user_id: str
    role: Role
    linked_entity_id: Optional[UUID] = None

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT

    def require_linked_entity(self) -> UUID:
        """The student/teacher id this principal acts for"""
        if self.linked_entity_id is None:
            raise ValidationError(f"{self.role.value.capitalize()} account is not linked to a {self.role.value} record")
        return self.linked_entity_id


def authorize(principal: Principal, capability: Capability) -> Principal:
    """
    Apply the role policy for one capability.

    Raises:
        PermissionDenied: If the principal's role is not allowed
    """
    if principal.role not in POLICY[capability]:
        raise PermissionDenied(_DENIED_MESSAGES.get(capability, f"Access denied for {capability.value}"))
    return principal


__all__ = ["Role", "Capability", "POLICY", "Principal", "authorize"]
