from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

# bcrypt only looks at the first 72 bytes of a password
PASSWORD_MAX_BYTES = 72


def _check_password(value: str) -> str:
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
    return value


def _strip_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip()


class _ApiModel(BaseModel):
    """Response models are emitted with camelCase keys (userId, createdAt, ...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# PUBLIC_INTERFACE
class RegisterRequest(BaseModel):
    """
    Schema for registering a new user.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"username": "alice", "email": "alice@example.com", "password": "s3cret-pass"}
        }
    )

    username: str = Field(..., description="Unique user name", min_length=3, max_length=30)
    email: EmailStr = Field(..., description="Unique login email")
    password: str = Field(..., description="Plaintext password, hashed before storage", min_length=6)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """
        Strip whitespace and enforce 3..30 length.
        """
        s = v.strip()
        if not (3 <= len(s) <= 30):
            raise ValueError("Username must be between 3 and 30 characters")
        return s

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


# PUBLIC_INTERFACE
class LoginRequest(BaseModel):
    """
    Schema for logging in with email and password.
    """

    email: EmailStr = Field(..., description="Registered email")
    password: str = Field(..., description="Plaintext password", min_length=6)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


# PUBLIC_INTERFACE
class UserOut(_ApiModel):
    """
    Public view of a user. The password hash is never part of it.
    """

    id: int = Field(..., description="Unique identifier of the user")
    username: str = Field(..., description="User name")
    email: str = Field(..., description="Email address")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


# PUBLIC_INTERFACE
class AuthResponse(BaseModel):
    """Body returned by register and login."""

    message: str
    user: UserOut
    token: str = Field(..., description="Bearer token for the Authorization header")


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
            }
        }
    )

    title: str = Field(..., description="Short title for the todo item", min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, description="Optional detailed description")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..255 length.
        """
        s = v.strip()
        if not (1 <= len(s) <= 255):
            raise ValueError("Title is required and must be between 1 and 255 characters")
        return s

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v)


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.
    All fields are optional; only provided fields will be updated.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries and supplies",
                "completed": True,
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the todo item", min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, description="Optional detailed description; null clears it")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..255 length.
        """
        if v is None:
            return v
        s = v.strip()
        if not (1 <= len(s) <= 255):
            raise ValueError("Title must be between 1 and 255 characters")
        return s

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v)


# PUBLIC_INTERFACE
class TodoOut(_ApiModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": 123,
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "completed": False,
                "userId": 7,
                "createdAt": "2025-01-25T10:15:30.123456",
                "updatedAt": "2025-01-26T09:00:00.000001",
            }
        },
    )

    id: int = Field(..., description="Unique identifier of the todo item")
    title: str = Field(..., description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: bool = Field(..., description="Completion status flag")
    user_id: int = Field(..., description="Id of the owning user")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class TodoEnvelope(BaseModel):
    message: str
    todo: TodoOut


class TodoListEnvelope(BaseModel):
    message: str
    todos: List[TodoOut]


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str = Field(..., description="Always 'ok' when the process serves requests")
    message: str
    timestamp: datetime
