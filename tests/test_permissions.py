import uuid
from datetime import timedelta

import jwt
import pytest

from enrollment_ledger.core.permissions import Capability, POLICY, Principal, Role, authorize
from enrollment_ledger.core.security import SecurityError, TokenManager, principal_from_claims
from enrollment_ledger.services.errors import PermissionDenied, ValidationError

from conftest import make_settings


EXPECTED_POLICY = {
    Capability.ENROLL: {Role.STUDENT},
    Capability.REVIEW: {Role.ADMIN},
    Capability.VIEW_BALANCE: {Role.STUDENT},
    Capability.RECHARGE: {Role.STUDENT},
    Capability.LIST_ENROLLMENTS: {Role.ADMIN, Role.TEACHER, Role.STUDENT},
    Capability.VIEW_ENROLLMENT: {Role.ADMIN, Role.TEACHER, Role.STUDENT},
    Capability.LIST_AVAILABLE_COURSES: {Role.STUDENT},
    Capability.VIEW_TEACHER_ENROLLMENTS: {Role.TEACHER},
}


def test_every_capability_has_a_policy():
    assert set(POLICY) == set(Capability)


@pytest.mark.parametrize("capability", list(Capability))
@pytest.mark.parametrize("role", list(Role))
def test_authorize_follows_the_policy(capability, role):
    principal = Principal(user_id="u-1", role=role, linked_entity_id=uuid.uuid4())

    if role in EXPECTED_POLICY[capability]:
        assert authorize(principal, capability) is principal
    else:
        with pytest.raises(PermissionDenied):
            authorize(principal, capability)


def test_denial_messages_name_the_allowed_role():
    teacher = Principal(user_id="t-1", role=Role.TEACHER)

    with pytest.raises(PermissionDenied, match="Only students can enroll"):
        authorize(teacher, Capability.ENROLL)
    with pytest.raises(PermissionDenied, match="Only administrators"):
        authorize(teacher, Capability.REVIEW)


def test_unlinked_student_cannot_act():
    principal = Principal(user_id="u-1", role=Role.STUDENT)

    with pytest.raises(ValidationError, match="not linked"):
        principal.require_linked_entity()


class TestTokens:
    @pytest.fixture
    def manager(self):
        return TokenManager(make_settings())

    def test_round_trip_to_principal(self, manager):
        student_id = uuid.uuid4()
        token = manager.create_access_token("user-7", Role.STUDENT, related_id=student_id)

        principal = manager.principal_from_token(token)

        assert principal == Principal(user_id="user-7", role=Role.STUDENT, linked_entity_id=student_id)

    def test_admin_token_without_related_id(self, manager):
        principal = manager.principal_from_token(manager.create_access_token("admin", "admin"))

        assert principal.role == Role.ADMIN
        assert principal.linked_entity_id is None

    def test_expired_token(self, manager):
        token = manager.create_access_token("user-7", Role.STUDENT, expires_delta=timedelta(seconds=-5))

        with pytest.raises(SecurityError, match="expired"):
            manager.decode_token(token)

    def test_token_signed_with_another_secret(self, manager):
        other = TokenManager(make_settings(JWT_SECRET="another-secret-key-that-is-long-enough"))
        token = other.create_access_token("user-7", Role.STUDENT)

        with pytest.raises(SecurityError, match="Invalid token"):
            manager.decode_token(token)

    def test_wrong_token_type(self, manager):
        token = jwt.encode(
            {"sub": "user-7", "role": "student", "type": "refresh", "iss": manager.issuer, "aud": manager.audience},
            manager.secret_key,
            algorithm=manager.algorithm,
        )

        with pytest.raises(SecurityError, match="token type"):
            manager.decode_token(token)

    @pytest.mark.parametrize("claims, message", [
        ({"role": "student"}, "missing user ID"),
        ({"sub": "u-1", "role": "janitor"}, "Unknown role"),
        ({"sub": "u-1", "role": "student", "related_id": "not-a-uuid"}, "related_id"),
    ])
    def test_malformed_claims(self, claims, message):
        with pytest.raises(SecurityError, match=message):
            principal_from_claims(claims)
