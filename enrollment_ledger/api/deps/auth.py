# enrollment_ledger/api/deps/auth.py - Bearer token -> Principal
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import logging

from enrollment_ledger.core.permissions import Principal
from enrollment_ledger.core.security import SecurityError, TokenManager

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_token_manager(request: Request) -> TokenManager:
    return request.app.state.tokens


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    tokens: TokenManager = Depends(get_token_manager),
) -> Principal:
    """
    Decode the bearer token into the request's Principal.
    The role and linked entity in the token are trusted as issued.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return tokens.principal_from_token(credentials.credentials)
    except SecurityError as e:
        logger.info(f"Rejected token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
