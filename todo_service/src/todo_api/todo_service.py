"""
Todo CRUD with per-user ownership and a read-through cache.

Reads by id consult the cache first. Mutations re-read the todo from the store
for their ownership check, so they never act on a stale owner; after a write
they refresh the `todo:<id>` entry and drop the owner's list entry.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional

from pydantic import ValidationError

from .cache import Cache, todo_key, user_todos_key
from .errors import ForbiddenError, InternalError, NotFoundError
from .models import TodoEntity
from .repositories import TodoPatch, TodoRepository
from .schemas import TodoOut

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 3600


def _to_out(entity: TodoEntity) -> TodoOut:
    return TodoOut.model_validate(entity)


def _dump(todo: TodoOut) -> dict:
    return todo.model_dump(mode="json")


# PUBLIC_INTERFACE
class TodoService:
    """Todo operations on behalf of an authenticated user."""

    def __init__(self, todos: TodoRepository, cache: Cache, cache_ttl: int = DEFAULT_CACHE_TTL) -> None:
        self._todos = todos
        self._cache = cache
        self._ttl = cache_ttl

    def _cached_todo(self, todo_id: int) -> Optional[TodoOut]:
        cached = self._cache.get(todo_key(todo_id))
        if cached is None:
            return None
        try:
            todo = TodoOut.model_validate(cached)
        except ValidationError:
            logger.warning(f"Ignoring malformed cache entry for todo {todo_id}")
            return None
        logger.debug(f"Todo {todo_id} retrieved from cache")
        return todo

    def _cached_list(self, user_id: int) -> Optional[List[TodoOut]]:
        cached: Any = self._cache.get(user_todos_key(user_id))
        if not isinstance(cached, list):
            return None
        try:
            todos = [TodoOut.model_validate(item) for item in cached]
        except ValidationError:
            logger.warning(f"Ignoring malformed cached todo list for user {user_id}")
            return None
        logger.debug(f"Todos for user {user_id} retrieved from cache")
        return todos

    def _check_owner(self, todo: Optional[TodoOut], user_id: int, action: str) -> TodoOut:
        if todo is None:
            raise NotFoundError("Todo not found")
        if todo.user_id != user_id:
            raise ForbiddenError(f"You do not have permission to {action} this todo")
        return todo

    def _load_owned(self, user_id: int, todo_id: int, action: str) -> TodoOut:
        """Store read (cache bypassed) followed by the ownership check."""
        entity = self._todos.get(todo_id)
        return self._check_owner(_to_out(entity) if entity else None, user_id, action)

    def _after_write(self, todo: TodoOut) -> None:
        self._cache.set(todo_key(todo.id), _dump(todo), self._ttl)
        self._cache.delete(user_todos_key(todo.user_id))

    def create(self, user_id: int, title: str, description: Optional[str] = None) -> TodoOut:
        todo = _to_out(self._todos.create(user_id, title, description))
        self._cache.delete(user_todos_key(user_id))
        logger.info(f"User {user_id} created todo {todo.id}")
        return todo

    def get_by_id(self, user_id: int, todo_id: int) -> TodoOut:
        todo = self._cached_todo(todo_id)
        if todo is None:
            entity = self._todos.get(todo_id)
            if entity is not None:
                todo = _to_out(entity)
                self._cache.set(todo_key(todo_id), _dump(todo), self._ttl)
        return self._check_owner(todo, user_id, "access")

    def list_by_user(self, user_id: int) -> List[TodoOut]:
        todos = self._cached_list(user_id)
        if todos is not None:
            return todos
        todos = [_to_out(e) for e in self._todos.list_by_user(user_id)]
        self._cache.set(user_todos_key(user_id), [_dump(t) for t in todos], self._ttl)
        return todos

    def update(self, user_id: int, todo_id: int, patch: TodoPatch) -> TodoOut:
        current = self._load_owned(user_id, todo_id, "update")
        if patch.is_empty:
            return current

        entity = self._todos.update(todo_id, user_id, patch)
        if entity is None:
            # row vanished between the ownership check and the write
            raise InternalError("Failed to update todo")
        todo = _to_out(entity)
        self._after_write(todo)
        return todo

    def delete(self, user_id: int, todo_id: int) -> None:
        self._load_owned(user_id, todo_id, "delete")
        if not self._todos.delete(todo_id, user_id):
            raise InternalError("Failed to delete todo")
        self._cache.delete(todo_key(todo_id))
        self._cache.delete(user_todos_key(user_id))
        logger.info(f"User {user_id} deleted todo {todo_id}")

    def toggle_completed(self, user_id: int, todo_id: int) -> TodoOut:
        self._load_owned(user_id, todo_id, "update")
        entity = self._todos.toggle_completed(todo_id, user_id)
        if entity is None:
            raise InternalError("Failed to toggle todo")
        todo = _to_out(entity)
        self._after_write(todo)
        return todo
