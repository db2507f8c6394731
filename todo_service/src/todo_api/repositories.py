from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from threading import RLock
from typing import Any, Dict, List, Optional, Tuple

from .errors import ConflictError
from .models import TodoEntity, UserEntity
from .schemas import TodoUpdate


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclass(frozen=True)
class TodoPatch:
    """
    Partial update for a todo. Fields left as UNSET are not touched;
    description may be set to None to clear it.
    """
    title: Any = UNSET
    description: Any = UNSET
    completed: Any = UNSET

    @classmethod
    def from_update(cls, data: TodoUpdate) -> "TodoPatch":
        provided = data.model_fields_set
        kwargs: Dict[str, Any] = {}
        # title and completed are NOT NULL columns, an explicit null leaves them alone
        if "title" in provided and data.title is not None:
            kwargs["title"] = data.title
        if "description" in provided:
            kwargs["description"] = data.description
        if "completed" in provided and data.completed is not None:
            kwargs["completed"] = data.completed
        return cls(**kwargs)

    def values(self) -> Dict[str, Any]:
        """Populated fields only, keyed by column name."""
        fields: Tuple[Tuple[str, Any], ...] = (
            ("title", self.title),
            ("description", self.description),
            ("completed", self.completed),
        )
        return {name: value for name, value in fields if value is not UNSET}

    @property
    def is_empty(self) -> bool:
        return not self.values()


# PUBLIC_INTERFACE
class UserRepository(ABC):
    """Abstract repository contract for the credential store."""

    @abstractmethod
    def create(self, username: str, email: str, password_hash: str) -> UserEntity:
        """Create and return a new user. Raises ConflictError if username or email is taken."""

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[UserEntity]:
        """Return the user registered with `email`, or None."""

    @abstractmethod
    def get_by_id(self, user_id: int) -> Optional[UserEntity]:
        """Return a user by id, or None."""

    @abstractmethod
    def delete(self, user_id: int) -> bool:
        """Delete a user and, by cascade, all of their todos. Return True if deleted."""


# PUBLIC_INTERFACE
class TodoRepository(ABC):
    """Abstract repository contract for todo storage backends."""

    @abstractmethod
    def create(self, user_id: int, title: str, description: Optional[str] = None) -> TodoEntity:
        """Create and return a new TodoEntity owned by `user_id`."""

    @abstractmethod
    def get(self, todo_id: int) -> Optional[TodoEntity]:
        """Return a TodoEntity by id, or None if not found."""

    @abstractmethod
    def list_by_user(self, user_id: int) -> List[TodoEntity]:
        """Return all todos owned by `user_id`, newest first."""

    @abstractmethod
    def update(self, todo_id: int, user_id: int, patch: TodoPatch) -> Optional[TodoEntity]:
        """Apply `patch` to the todo if it exists and belongs to `user_id`. Return it or None."""

    @abstractmethod
    def delete(self, todo_id: int, user_id: int) -> bool:
        """Delete the todo if it belongs to `user_id`. Return True if a row was removed."""

    @abstractmethod
    def toggle_completed(self, todo_id: int, user_id: int) -> Optional[TodoEntity]:
        """Atomically flip `completed`. Return the updated todo or None if no row matched."""


class _MemoryState:
    """Tables shared by the in-memory repositories so user deletion can cascade."""

    def __init__(self) -> None:
        self.lock = RLock()
        self.users: Dict[int, UserEntity] = {}
        self.todos: Dict[int, TodoEntity] = {}
        self.next_user_id = 1
        self.next_todo_id = 1


def _now() -> datetime:
    return datetime.now()


class InMemoryUserRepository(UserRepository):
    """
    Thread-safe in-memory credential store suitable for testing and default runtime.
    """

    def __init__(self, state: Optional[_MemoryState] = None) -> None:
        self._state = state or _MemoryState()

    def create(self, username: str, email: str, password_hash: str) -> UserEntity:
        s = self._state
        with s.lock:
            for existing in s.users.values():
                if existing["email"] == email or existing["username"] == username:
                    raise ConflictError("Username or email already in use")
            now = _now()
            user: UserEntity = {
                "id": s.next_user_id,
                "username": username,
                "email": email,
                "password_hash": password_hash,
                "created_at": now,
                "updated_at": now,
            }
            s.next_user_id += 1
            s.users[user["id"]] = user
            return user.copy()

    def get_by_email(self, email: str) -> Optional[UserEntity]:
        with self._state.lock:
            for user in self._state.users.values():
                if user["email"] == email:
                    return user.copy()
            return None

    def get_by_id(self, user_id: int) -> Optional[UserEntity]:
        with self._state.lock:
            user = self._state.users.get(user_id)
            return None if user is None else user.copy()

    def delete(self, user_id: int) -> bool:
        s = self._state
        with s.lock:
            if s.users.pop(user_id, None) is None:
                return False
            for todo_id in [t["id"] for t in s.todos.values() if t["user_id"] == user_id]:
                del s.todos[todo_id]
            return True


class InMemoryTodoRepository(TodoRepository):
    """
    Thread-safe in-memory todo store suitable for testing and default runtime.
    """

    def __init__(self, state: Optional[_MemoryState] = None) -> None:
        self._state = state or _MemoryState()

    def _owned(self, todo_id: int, user_id: int) -> Optional[TodoEntity]:
        item = self._state.todos.get(todo_id)
        if item is None or item["user_id"] != user_id:
            return None
        return item

    def create(self, user_id: int, title: str, description: Optional[str] = None) -> TodoEntity:
        s = self._state
        with s.lock:
            if user_id not in s.users:
                # mirrors the foreign key on todos.user_id
                raise ConflictError(f"User {user_id} does not exist")
            now = _now()
            entity: TodoEntity = {
                "id": s.next_todo_id,
                "title": title,
                "description": description,
                "completed": False,
                "user_id": user_id,
                "created_at": now,
                "updated_at": now,
            }
            s.next_todo_id += 1
            s.todos[entity["id"]] = entity
            return entity.copy()

    def get(self, todo_id: int) -> Optional[TodoEntity]:
        with self._state.lock:
            item = self._state.todos.get(todo_id)
            return None if item is None else item.copy()

    def list_by_user(self, user_id: int) -> List[TodoEntity]:
        with self._state.lock:
            items = [t for t in self._state.todos.values() if t["user_id"] == user_id]
            items.sort(key=lambda t: (t["created_at"], t["id"]), reverse=True)
            # Return copies to avoid external mutation
            return [t.copy() for t in items]

    def update(self, todo_id: int, user_id: int, patch: TodoPatch) -> Optional[TodoEntity]:
        with self._state.lock:
            existing = self._owned(todo_id, user_id)
            if existing is None:
                return None
            existing.update(patch.values())  # type: ignore[typeddict-item]
            existing["updated_at"] = _now()
            return existing.copy()

    def delete(self, todo_id: int, user_id: int) -> bool:
        with self._state.lock:
            if self._owned(todo_id, user_id) is None:
                return False
            del self._state.todos[todo_id]
            return True

    def toggle_completed(self, todo_id: int, user_id: int) -> Optional[TodoEntity]:
        with self._state.lock:
            existing = self._owned(todo_id, user_id)
            if existing is None:
                return None
            existing["completed"] = not existing["completed"]
            existing["updated_at"] = _now()
            return existing.copy()


# PUBLIC_INTERFACE
def build_memory_repositories() -> Tuple[InMemoryUserRepository, InMemoryTodoRepository]:
    """Return a user and a todo repository sharing one in-memory state."""
    state = _MemoryState()
    return InMemoryUserRepository(state), InMemoryTodoRepository(state)
