from __future__ import annotations

import logging
from typing import Tuple

from .errors import ConflictError, InvalidCredentialsError
from .models import UserEntity
from .repositories import UserRepository
from .schemas import UserOut
from .security import PasswordHasher, TokenClaims, TokenService

logger = logging.getLogger(__name__)


def _public(user: UserEntity) -> UserOut:
    return UserOut(
        id=user["id"],
        username=user["username"],
        email=user["email"],
        created_at=user["created_at"],
        updated_at=user["updated_at"],
    )


# PUBLIC_INTERFACE
class AuthService:
    """
    Registration, login and token handling on top of the credential store.
    """

    def __init__(self, users: UserRepository, hasher: PasswordHasher, tokens: TokenService) -> None:
        self._users = users
        self._hasher = hasher
        self._tokens = tokens

    def register(self, username: str, email: str, password: str) -> Tuple[UserOut, str]:
        """
        Create a user and return it with a fresh token.

        Raises:
            ConflictError: the email (or, via the store's unique constraint, the username) is taken.
        """
        if self._users.get_by_email(email) is not None:
            raise ConflictError("User with this email already exists")

        user = self._users.create(username, email, self._hasher.hash(password))
        logger.info(f"Registered user {user['id']} ({user['username']})")
        return _public(user), self.issue_token(user["id"], user["username"], user["email"])

    def login(self, email: str, password: str) -> Tuple[UserOut, str]:
        """
        Check credentials and return the user with a fresh token.

        Raises:
            InvalidCredentialsError: unknown email or wrong password (same message for both).
        """
        user = self._users.get_by_email(email)
        if user is None or not self._hasher.verify(password, user["password_hash"]):
            raise InvalidCredentialsError("Invalid email or password")
        return _public(user), self.issue_token(user["id"], user["username"], user["email"])

    def issue_token(self, user_id: int, username: str, email: str) -> str:
        return self._tokens.issue(user_id, username, email)

    def verify_token(self, token: str) -> TokenClaims:
        return self._tokens.verify(token)
