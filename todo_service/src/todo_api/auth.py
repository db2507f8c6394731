from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .auth_service import AuthService
from .container import get_auth_service
from .errors import UnauthorizedError
from .security import ExpiredTokenError, InvalidTokenError, TokenClaims

logger = logging.getLogger(__name__)

_security = HTTPBearer(auto_error=False)


# PUBLIC_INTERFACE
def get_current_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_security),
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenClaims:
    """
    Resolve the bearer token in the Authorization header to the caller's claims.

    Raises:
        UnauthorizedError(401) with one of:
        - "Authentication required": no Authorization header
        - "Authentication token missing": header present but no bearer token in it
        - "Invalid token": bad signature or malformed token
        - "Token expired": valid signature, lifetime passed

    Usage:
        router = APIRouter(dependencies=[Depends(get_current_user)])
        def handler(user: TokenClaims = Depends(get_current_user)): ...
    """
    if creds is None or not creds.credentials:
        if not request.headers.get("Authorization"):
            raise UnauthorizedError("Authentication required")
        raise UnauthorizedError("Authentication token missing")

    try:
        return auth_service.verify_token(creds.credentials)
    except ExpiredTokenError as exc:
        logger.info(f"Authentication error: {exc}")
        raise UnauthorizedError("Token expired") from exc
    except InvalidTokenError as exc:
        logger.info(f"Authentication error: {exc}")
        raise UnauthorizedError("Invalid token") from exc
