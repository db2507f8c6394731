import pytest
from fastapi.testclient import TestClient

from src.todo_api.db import Database, SQLTodoRepository, SQLUserRepository
from src.todo_api.errors import ConflictError
from src.todo_api.main import create_app
from src.todo_api.repositories import TodoPatch
from src.todo_api.settings import Settings

from .conftest import TEST_SECRET, bearer


@pytest.fixture
def db(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'todos.db'}")
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def users(db):
    return SQLUserRepository(db)


@pytest.fixture
def todos(db):
    return SQLTodoRepository(db)


@pytest.fixture
def alice(users):
    return users.create("alice", "alice@example.com", "$2b$04$hash")


class TestUsers:
    def test_create_and_lookup(self, users, alice):
        assert alice["id"] >= 1
        assert alice["password_hash"] == "$2b$04$hash"
        assert users.get_by_email("alice@example.com")["id"] == alice["id"]
        assert users.get_by_id(alice["id"])["username"] == "alice"
        assert users.get_by_email("missing@example.com") is None

    def test_unique_email_and_username(self, users, alice):
        with pytest.raises(ConflictError):
            users.create("alice2", "alice@example.com", "h")
        with pytest.raises(ConflictError):
            users.create("alice", "other@example.com", "h")

    def test_initialize_is_idempotent(self, db, users, alice):
        db.initialize()
        assert users.get_by_id(alice["id"]) is not None

    def test_ping(self, db):
        assert db.ping() is True


class TestTodos:
    def test_create_get_list(self, todos, alice):
        first = todos.create(alice["id"], "First", None)
        second = todos.create(alice["id"], "Second", "details")
        assert first["completed"] is False
        assert todos.get(second["id"])["description"] == "details"
        assert [t["id"] for t in todos.list_by_user(alice["id"])] == [second["id"], first["id"]]
        assert todos.get(9999) is None

    def test_todo_requires_existing_owner(self, todos):
        with pytest.raises(ConflictError):
            todos.create(424242, "Orphan")

    def test_partial_update(self, todos, alice):
        todo = todos.create(alice["id"], "Title", "Desc")
        updated = todos.update(todo["id"], alice["id"], TodoPatch(completed=True))
        assert updated["completed"] is True
        assert updated["title"] == "Title"
        assert updated["description"] == "Desc"
        assert updated["updated_at"] >= todo["updated_at"]

    def test_writes_are_scoped_to_owner(self, users, todos, alice):
        bob = users.create("bob", "bob@example.com", "h")
        todo = todos.create(alice["id"], "Alice's")
        assert todos.update(todo["id"], bob["id"], TodoPatch(title="x")) is None
        assert todos.toggle_completed(todo["id"], bob["id"]) is None
        assert todos.delete(todo["id"], bob["id"]) is False
        assert todos.get(todo["id"])["title"] == "Alice's"

    def test_toggle_flips_in_store(self, todos, alice):
        todo = todos.create(alice["id"], "Flip")
        assert todos.toggle_completed(todo["id"], alice["id"])["completed"] is True
        assert todos.get(todo["id"])["completed"] is True
        assert todos.toggle_completed(todo["id"], alice["id"])["completed"] is False

    def test_delete(self, todos, alice):
        todo = todos.create(alice["id"], "Gone")
        assert todos.delete(todo["id"], alice["id"]) is True
        assert todos.delete(todo["id"], alice["id"]) is False
        assert todos.get(todo["id"]) is None

    def test_deleting_user_cascades_to_todos(self, users, todos, alice):
        todo = todos.create(alice["id"], "Owned")
        assert users.delete(alice["id"]) is True
        assert todos.get(todo["id"]) is None
        assert todos.list_by_user(alice["id"]) == []


def test_app_on_sql_backend(tmp_path):
    settings = Settings(
        environment="test",
        persistence_backend="sql",
        database_url_override=f"sqlite:///{tmp_path / 'app.db'}",
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
        log_level="WARNING",
    )
    with TestClient(create_app(settings)) as client:
        reg = client.post(
            "/auth/register",
            json={"username": "sqluser", "email": "sql@example.com", "password": "password123"},
        )
        assert reg.status_code == 201
        headers = bearer(reg.json()["token"])

        created = client.post("/todos", json={"title": "Persisted"}, headers=headers)
        assert created.status_code == 201
        tid = created.json()["todo"]["id"]

        toggled = client.patch(f"/todos/{tid}/toggle", headers=headers)
        assert toggled.json()["todo"]["completed"] is True

        todos = client.get("/todos", headers=headers).json()["todos"]
        assert [t["title"] for t in todos] == ["Persisted"]
        assert todos[0]["completed"] is True
