from __future__ import annotations

from datetime import datetime
from typing import Optional, TypedDict


# PUBLIC_INTERFACE
class UserEntity(TypedDict):
    """
    Storage-level representation of a registered user.

    Fields:
    - id: Unique, store-assigned integer identifier
    - username: Unique display name (3..30 chars)
    - email: Unique login email
    - password_hash: bcrypt hash; never leaves the service layer
    - created_at / updated_at: store-assigned timestamps
    """

    id: int
    username: str
    email: str
    password_hash: str
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    Storage-level representation of a Todo item.

    Fields:
    - id: Unique integer identifier
    - title: Short title (1..255 chars, trimmed on input via schemas)
    - description: Optional detailed description
    - completed: Boolean completion flag
    - user_id: Owning user's id; immutable after creation
    - created_at: Creation timestamp (datetime)
    - updated_at: Last update timestamp (datetime)
    """

    id: int
    title: str
    description: Optional[str]
    completed: bool
    user_id: int
    created_at: datetime
    updated_at: datetime
