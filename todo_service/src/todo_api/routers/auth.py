from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..auth_service import AuthService
from ..container import get_auth_service
from ..schemas import AuthResponse, LoginRequest, RegisterRequest

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


# PUBLIC_INTERFACE
@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Create a user account and return it with a bearer token.",
    responses={
        201: {"description": "User registered successfully"},
        400: {"description": "Validation error or email already registered"},
    },
)
def register(payload: RegisterRequest, auth: AuthService = Depends(get_auth_service)) -> AuthResponse:
    """
    Register a new user.
    """
    user, token = auth.register(payload.username, str(payload.email), payload.password)
    return AuthResponse(message="User registered successfully", user=user, token=token)


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login",
    description="Exchange email and password for a bearer token.",
    responses={
        200: {"description": "Login successful"},
        400: {"description": "Validation error or invalid credentials"},
    },
)
def login(payload: LoginRequest, auth: AuthService = Depends(get_auth_service)) -> AuthResponse:
    user, token = auth.login(str(payload.email), payload.password)
    return AuthResponse(message="Login successful", user=user, token=token)
