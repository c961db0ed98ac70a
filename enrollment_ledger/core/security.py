# enrollment_ledger/core/security.py - JWT handling and principal extraction
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, Union
from uuid import UUID
import secrets

import jwt

from enrollment_ledger.core.config import Settings
from enrollment_ledger.core.permissions import Principal, Role


class SecurityError(Exception):
    """Custom exception for security-related errors"""
    pass


class TokenManager:
    """
    Issues and validates the bearer tokens that carry the principal.

    Login lives in the authentication service; this service only needs to
    verify its tokens. create_access_token exists for that service's
    contract and for local tooling/tests.
    """

    def __init__(self, settings: Settings):
        self.secret_key = settings.JWT_SECRET
        self.algorithm = settings.JWT_ALGORITHM
        self.issuer = settings.JWT_ISSUER
        self.audience = settings.JWT_AUDIENCE
        self.access_token_expire_minutes = settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES

    def create_access_token(
        self,
        subject: Union[str, Any],
        role: Union[Role, str],
        related_id: Optional[UUID] = None,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """
        Create a JWT access token.

        Args:
            subject: Token subject (the user ID)
            role: admin, teacher or student
            related_id: ID of the student/teacher record the user acts for
            expires_delta: Custom expiration time

        Returns:
            Encoded JWT token string
        """
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=self.access_token_expire_minutes))

        payload = {
            "sub": str(subject),
            "role": Role(role).value,
            "iat": now,
            "exp": expire,
            "iss": self.issuer,
            "aud": self.audience,
            "type": "access",
            "jti": secrets.token_hex(16),
        }
        if related_id is not None:
            payload["related_id"] = str(related_id)

        try:
            return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        except jwt.PyJWTError as e:
            raise SecurityError(f"Failed to create access token: {e}")

    def decode_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate a JWT access token.

        Raises:
            SecurityError: If the token is invalid, expired or not an access token
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except jwt.ExpiredSignatureError:
            raise SecurityError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise SecurityError(f"Invalid token: {e}")

        if payload.get("type") != "access":
            raise SecurityError("Invalid token type. Expected access")
        return payload

    def principal_from_token(self, token: str) -> Principal:
        return principal_from_claims(self.decode_token(token))


def principal_from_claims(claims: Dict[str, Any]) -> Principal:
    """
    Build a Principal from decoded token claims.

    Raises:
        SecurityError: If sub/role are missing or related_id is malformed
    """
    subject = claims.get("sub")
    if not subject:
        raise SecurityError("Token missing user ID")

    try:
        role = Role(claims.get("role"))
    except ValueError:
        raise SecurityError(f"Unknown role: {claims.get('role')!r}")

    related_id = claims.get("related_id")
    try:
        linked = UUID(str(related_id)) if related_id is not None else None
    except ValueError:
        raise SecurityError("Invalid related_id format")

    return Principal(user_id=str(subject), role=role, linked_entity_id=linked)


__all__ = ["SecurityError", "TokenManager", "principal_from_claims"]
