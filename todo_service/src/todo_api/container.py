"""
Process-wide service wiring.

The application lifespan builds exactly one Container, starts it, stores it on
`app.state.container` and closes it on shutdown. Request handlers reach the
services through the dependency functions below.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from .auth_service import AuthService
from .cache import Cache, InMemoryCache, RedisCache
from .db import Database, SQLTodoRepository, SQLUserRepository
from .repositories import TodoRepository, UserRepository, build_memory_repositories
from .security import PasswordHasher, TokenService
from .settings import Settings
from .todo_service import TodoService

logger = logging.getLogger(__name__)


@dataclass
class Container:
    settings: Settings
    users: UserRepository
    todos: TodoRepository
    cache: Cache
    auth_service: AuthService
    todo_service: TodoService
    database: Optional[Database] = None

    def start(self) -> None:
        if self.database is not None:
            self.database.initialize()
        if not self.cache.connect():
            logger.warning("Cache unavailable at startup; reads will fall through to the store")

    def close(self) -> None:
        self.cache.close()
        if self.database is not None:
            self.database.close()


def _build_cache(settings: Settings) -> Cache:
    if settings.cache_backend == "redis":
        return RedisCache(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password,
            socket_timeout=settings.redis_socket_timeout,
        )
    return InMemoryCache()


# PUBLIC_INTERFACE
def build_container(settings: Settings) -> Container:
    """
    Construct repositories, cache and services for the configured backends.
    - memory: in-process repositories sharing one state
    - sql: SQLAlchemy engine with a bounded pool (settings.db_pool_size)
    """
    database: Optional[Database] = None
    users: UserRepository
    todos: TodoRepository
    if settings.persistence_backend == "sql":
        database = Database(
            settings.database_url,
            pool_size=settings.db_pool_size,
            pool_timeout=settings.db_pool_timeout,
        )
        users, todos = SQLUserRepository(database), SQLTodoRepository(database)
    else:
        users, todos = build_memory_repositories()

    cache = _build_cache(settings)
    auth_service = AuthService(
        users,
        PasswordHasher(rounds=settings.bcrypt_rounds),
        TokenService(settings.jwt_secret, expires_in_seconds=settings.jwt_expires_in_seconds),
    )
    todo_service = TodoService(todos, cache, cache_ttl=settings.cache_ttl_seconds)
    return Container(
        settings=settings,
        users=users,
        todos=todos,
        cache=cache,
        auth_service=auth_service,
        todo_service=todo_service,
        database=database,
    )


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_auth_service(container: Container = Depends(get_container)) -> AuthService:
    return container.auth_service


def get_todo_service(container: Container = Depends(get_container)) -> TodoService:
    return container.todo_service
