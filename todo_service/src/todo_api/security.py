"""
Password hashing and signed identity tokens.

Tokens are HS256 JWTs carrying {userId, username, email, iat, exp}. Verification
either returns TokenClaims or raises one of MalformedTokenError,
InvalidSignatureError (both InvalidTokenError) or ExpiredTokenError, so the
HTTP layer can tell an expired token from a forged one.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

logger = logging.getLogger(__name__)


class TokenError(Exception):
    """Base class for token verification failures."""


class InvalidTokenError(TokenError):
    """Token cannot be trusted."""


class MalformedTokenError(InvalidTokenError):
    """Token is not a well-formed JWT or lacks required claims."""


class InvalidSignatureError(InvalidTokenError):
    """Token was not signed with our secret."""


class ExpiredTokenError(TokenError):
    """Token signature is valid but its lifetime has passed."""


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    username: str
    email: str
    issued_at: datetime
    expires_at: datetime


class PasswordHasher:
    """Salted bcrypt hashing."""

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        """Constant-time comparison via bcrypt.checkpw. Malformed hashes never match."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError as e:
            logger.error(f"Password verification failed: {e}")
            return False


class TokenService:
    """
    Issues and verifies time-limited identity tokens signed with a shared secret.
    """

    ALGORITHM = "HS256"

    def __init__(self, secret: str, expires_in_seconds: int = 3600) -> None:
        self._secret = secret
        self.expires_in_seconds = expires_in_seconds

    def issue(self, user_id: int, username: str, email: str, issued_at: Optional[datetime] = None) -> str:
        now = issued_at or datetime.now(timezone.utc)
        payload = {
            "userId": user_id,
            "username": username,
            "email": email,
            "iat": now,
            "exp": now + timedelta(seconds=self.expires_in_seconds),
        }
        return jwt.encode(payload, self._secret, algorithm=self.ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.ALGORITHM],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise ExpiredTokenError("Token expired") from exc
        except jwt.InvalidSignatureError as exc:
            raise InvalidSignatureError("Token signature mismatch") from exc
        except jwt.InvalidTokenError as exc:
            raise MalformedTokenError(f"Malformed token: {exc}") from exc

        try:
            return TokenClaims(
                user_id=int(payload["userId"]),
                username=str(payload["username"]),
                email=str(payload["email"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedTokenError("Token is missing identity claims") from exc
