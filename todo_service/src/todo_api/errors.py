"""
Error taxonomy shared by the services and the HTTP boundary.

Every error carries the HTTP status it resolves to; the exception handlers in
main.py render them as {"message": ...}.
"""
from __future__ import annotations


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(ApiError):
    status_code = 400


class ConflictError(BadRequestError):
    """A unique field (email, username) is already taken."""


class InvalidCredentialsError(BadRequestError):
    """Login with an unknown email or a wrong password."""


class UnauthorizedError(ApiError):
    status_code = 401


class ForbiddenError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class InternalError(ApiError):
    status_code = 500


class StoreError(InternalError):
    """The relational store failed in a way not classified above."""
