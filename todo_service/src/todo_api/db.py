from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Generator, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    event,
    insert,
    not_,
    select,
    update,
)
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import QueuePool

from .errors import ConflictError, StoreError
from .models import TodoEntity, UserEntity
from .repositories import TodoPatch, TodoRepository, UserRepository

logger = logging.getLogger(__name__)

metadata = MetaData()

users_table = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(100), unique=True, nullable=False),
    Column("email", String(255), unique=True, nullable=False),
    Column("password", String(255), nullable=False),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

todos_table = Table(
    "todos",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("description", Text, nullable=True),
    Column("completed", Boolean, nullable=False, default=False),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    Index("idx_todos_user_id", "user_id"),
)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Process-wide SQLAlchemy engine with a bounded connection pool.

    Each `transaction()` block checks out one connection, commits on success,
    rolls back on error and always returns the connection to the pool.
    """

    def __init__(self, url: str, pool_size: int = 20, pool_timeout: int = 2) -> None:
        self.url = url
        self._is_sqlite = url.startswith("sqlite")
        if self._is_sqlite:
            # Required for SQLite when used across threads (FastAPI runs sync endpoints in a threadpool)
            self.engine = create_engine(
                url,
                pool_pre_ping=True,
                connect_args={"check_same_thread": False},
            )
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        else:
            self.engine = create_engine(
                url,
                poolclass=QueuePool,
                pool_size=pool_size,
                max_overflow=0,
                pool_timeout=pool_timeout,
                pool_pre_ping=True,
                pool_recycle=3600,
                connect_args={"connect_timeout": 10} if url.startswith("postgresql") else {},
            )

    @contextmanager
    def transaction(
        self, context: str, conflict_message: str = "Resource already exists"
    ) -> Generator[Connection, None, None]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except IntegrityError as exc:
            logger.warning(f"Constraint violation during {context}: {exc.orig}")
            raise ConflictError(conflict_message) from exc
        except SQLAlchemyError as exc:
            statement = getattr(exc, "statement", None)
            logger.error(f"Error executing query during {context}: {statement}", exc_info=True)
            raise StoreError("Database error") from exc

    def initialize(self) -> None:
        """Create tables and indexes if they don't exist."""
        logger.info("Initializing database...")
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError:
            logger.error("Failed to initialize database", exc_info=True)
            raise
        logger.info("Database initialized successfully")

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
            return True
        except SQLAlchemyError:
            return False

    def close(self) -> None:
        self.engine.dispose()
        logger.info("Database connection pool closed")


def _row_to_user(row: Any) -> UserEntity:
    m = row._mapping
    return {
        "id": int(m["id"]),
        "username": str(m["username"]),
        "email": str(m["email"]),
        "password_hash": str(m["password"]),
        "created_at": m["created_at"],
        "updated_at": m["updated_at"],
    }


def _row_to_todo(row: Any) -> TodoEntity:
    m = row._mapping
    return {
        "id": int(m["id"]),
        "title": str(m["title"]),
        "description": m["description"],
        "completed": bool(m["completed"]),
        "user_id": int(m["user_id"]),
        "created_at": m["created_at"],
        "updated_at": m["updated_at"],
    }


class SQLUserRepository(UserRepository):
    """Credential store backed by the `users` table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def create(self, username: str, email: str, password_hash: str) -> UserEntity:
        now = datetime.now()
        stmt = (
            insert(users_table)
            .values(username=username, email=email, password=password_hash, created_at=now, updated_at=now)
            .returning(*users_table.c)
        )
        with self._db.transaction("create user", "Username or email already in use") as conn:
            return _row_to_user(conn.execute(stmt).one())

    def get_by_email(self, email: str) -> Optional[UserEntity]:
        with self._db.transaction("find user by email") as conn:
            row = conn.execute(select(users_table).where(users_table.c.email == email)).first()
            return _row_to_user(row) if row else None

    def get_by_id(self, user_id: int) -> Optional[UserEntity]:
        with self._db.transaction("find user by id") as conn:
            row = conn.execute(select(users_table).where(users_table.c.id == user_id)).first()
            return _row_to_user(row) if row else None

    def delete(self, user_id: int) -> bool:
        with self._db.transaction("delete user") as conn:
            result = conn.execute(delete(users_table).where(users_table.c.id == user_id))
            return result.rowcount > 0


class SQLTodoRepository(TodoRepository):
    """
    Todo store backed by the `todos` table.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def create(self, user_id: int, title: str, description: Optional[str] = None) -> TodoEntity:
        now = datetime.now()
        stmt = (
            insert(todos_table)
            .values(
                title=title,
                description=description,
                completed=False,
                user_id=user_id,
                created_at=now,
                updated_at=now,
            )
            .returning(*todos_table.c)
        )
        with self._db.transaction("create todo", f"User {user_id} does not exist") as conn:
            return _row_to_todo(conn.execute(stmt).one())

    def get(self, todo_id: int) -> Optional[TodoEntity]:
        with self._db.transaction(f"find todo {todo_id}") as conn:
            row = conn.execute(select(todos_table).where(todos_table.c.id == todo_id)).first()
            return _row_to_todo(row) if row else None

    def list_by_user(self, user_id: int) -> List[TodoEntity]:
        stmt = (
            select(todos_table)
            .where(todos_table.c.user_id == user_id)
            .order_by(todos_table.c.created_at.desc(), todos_table.c.id.desc())
        )
        with self._db.transaction(f"list todos for user {user_id}") as conn:
            return [_row_to_todo(r) for r in conn.execute(stmt)]

    def update(self, todo_id: int, user_id: int, patch: TodoPatch) -> Optional[TodoEntity]:
        # Keys come from TodoPatch's fixed field set, never from the request body
        values: Dict[str, Any] = dict(patch.values())
        values["updated_at"] = datetime.now()
        stmt = (
            update(todos_table)
            .where(todos_table.c.id == todo_id, todos_table.c.user_id == user_id)
            .values(**values)
            .returning(*todos_table.c)
        )
        with self._db.transaction(f"update todo {todo_id}") as conn:
            row = conn.execute(stmt).first()
            return _row_to_todo(row) if row else None

    def delete(self, todo_id: int, user_id: int) -> bool:
        stmt = delete(todos_table).where(todos_table.c.id == todo_id, todos_table.c.user_id == user_id)
        with self._db.transaction(f"delete todo {todo_id}") as conn:
            return conn.execute(stmt).rowcount > 0

    def toggle_completed(self, todo_id: int, user_id: int) -> Optional[TodoEntity]:
        stmt = (
            update(todos_table)
            .where(todos_table.c.id == todo_id, todos_table.c.user_id == user_id)
            .values(completed=not_(todos_table.c.completed), updated_at=datetime.now())
            .returning(*todos_table.c)
        )
        with self._db.transaction(f"toggle todo {todo_id}") as conn:
            row = conn.execute(stmt).first()
            return _row_to_todo(row) if row else None
