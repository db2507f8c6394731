from datetime import datetime


def create_todo_payload(title="Test Task", description="Do something"):
    payload = {"title": title}
    if description is not None:
        payload["description"] = description
    return payload


def assert_todo_shape(todo: dict):
    # Basic structure validation; keys are camelCase on the wire
    for key in ["id", "title", "description", "completed", "userId", "createdAt", "updatedAt"]:
        assert key in todo
    assert isinstance(todo["id"], int)
    assert isinstance(todo["title"], str)
    assert isinstance(todo["completed"], bool)
    datetime.fromisoformat(todo["createdAt"])
    datetime.fromisoformat(todo["updatedAt"])


def create(client, owner, **kwargs) -> dict:
    res = client.post("/todos", json=create_todo_payload(**kwargs), headers=owner["headers"])
    assert res.status_code == 201, res.text
    return res.json()["todo"]


class TestHealth:
    def test_health_check(self, client):
        res = client.get("/health")
        assert res.status_code == 200
        data = res.json()
        assert data["status"] == "ok"
        assert data["message"] == "Service is running"
        datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00"))

    def test_unknown_route(self, client):
        res = client.get("/nope")
        assert res.status_code == 404
        assert res.json()["message"] == "Not Found - /nope"


class TestTodosCRUD:
    def test_create_todo(self, client, alice):
        res = client.post("/todos", json=create_todo_payload(title="Buy milk"), headers=alice["headers"])
        assert res.status_code == 201
        body = res.json()
        assert body["message"] == "Todo created successfully"
        todo = body["todo"]
        assert_todo_shape(todo)
        assert todo["title"] == "Buy milk"
        assert todo["description"] == "Do something"
        assert todo["completed"] is False
        assert todo["userId"] == alice["user"]["id"]

    def test_create_todo_minimal(self, client, alice):
        todo = create(client, alice, title="  Read book  ", description=None)
        assert todo["title"] == "Read book"
        assert todo["description"] is None

    def test_create_validation_error_title_empty(self, client, alice):
        res = client.post("/todos", json={"title": "  "}, headers=alice["headers"])
        assert res.status_code == 400
        assert res.json()["message"].startswith("Validation error: title")

    def test_create_validation_error_title_too_long(self, client, alice):
        res = client.post("/todos", json={"title": "x" * 256}, headers=alice["headers"])
        assert res.status_code == 400

    def test_get_todo_and_not_found(self, client, alice):
        todo = create(client, alice, title="Read book")

        res_get = client.get(f"/todos/{todo['id']}", headers=alice["headers"])
        assert res_get.status_code == 200
        fetched = res_get.json()["todo"]
        assert fetched["id"] == todo["id"]
        assert fetched["title"] == "Read book"
        assert fetched["completed"] is False

        res_404 = client.get("/todos/999999", headers=alice["headers"])
        assert res_404.status_code == 404
        assert res_404.json()["message"] == "Todo not found"

    def test_invalid_id(self, client, alice):
        assert client.get("/todos/abc", headers=alice["headers"]).status_code == 400
        assert client.get("/todos/0", headers=alice["headers"]).status_code == 400

    def test_put_partial_update(self, client, alice):
        todo = create(client, alice, title="Partial", description="X")

        res = client.put(f"/todos/{todo['id']}", json={"completed": True}, headers=alice["headers"])
        assert res.status_code == 200
        body = res.json()
        assert body["message"] == "Todo updated successfully"
        updated = body["todo"]
        assert updated["completed"] is True
        # title and description should remain unchanged
        assert updated["title"] == "Partial"
        assert updated["description"] == "X"

        res2 = client.put(
            f"/todos/{todo['id']}", json={"title": "Renamed", "description": None}, headers=alice["headers"]
        )
        assert res2.status_code == 200
        assert res2.json()["todo"]["title"] == "Renamed"
        assert res2.json()["todo"]["description"] is None
        assert res2.json()["todo"]["completed"] is True

        res_nf = client.put("/todos/424242", json={"title": "Nope"}, headers=alice["headers"])
        assert res_nf.status_code == 404

    def test_put_validation_error(self, client, alice):
        todo = create(client, alice)
        res = client.put(f"/todos/{todo['id']}", json={"title": ""}, headers=alice["headers"])
        assert res.status_code == 400

    def test_delete_todo(self, client, alice):
        todo = create(client, alice, title="ToDelete")

        res_del = client.delete(f"/todos/{todo['id']}", headers=alice["headers"])
        assert res_del.status_code == 200
        assert res_del.json() == {"message": "Todo deleted successfully"}

        # Subsequent get is 404
        assert client.get(f"/todos/{todo['id']}", headers=alice["headers"]).status_code == 404
        # Deleting again should still be 404
        res_again = client.delete(f"/todos/{todo['id']}", headers=alice["headers"])
        assert res_again.status_code == 404
        assert res_again.json()["message"] == "Todo not found"

    def test_toggle_twice_restores_value(self, client, alice):
        todo = create(client, alice)
        first = client.patch(f"/todos/{todo['id']}/toggle", headers=alice["headers"])
        assert first.status_code == 200
        assert first.json()["todo"]["completed"] is True
        second = client.patch(f"/todos/{todo['id']}/toggle", headers=alice["headers"])
        assert second.json()["todo"]["completed"] is False

        fetched = client.get(f"/todos/{todo['id']}", headers=alice["headers"]).json()["todo"]
        assert fetched["completed"] is False


class TestList:
    def test_list_is_newest_first_and_reflects_creates(self, client, alice):
        assert client.get("/todos", headers=alice["headers"]).json()["todos"] == []

        ids = [create(client, alice, title=f"Task {i}")["id"] for i in range(3)]
        res = client.get("/todos", headers=alice["headers"])
        assert res.status_code == 200
        body = res.json()
        assert body["message"] == "Todos retrieved successfully"
        assert [t["id"] for t in body["todos"]] == list(reversed(ids))

        # a create right after a cached list read must show up immediately
        newest = create(client, alice, title="Task 3")
        todos = client.get("/todos", headers=alice["headers"]).json()["todos"]
        assert todos[0]["id"] == newest["id"]
        assert len(todos) == 4

    def test_list_reflects_update_and_delete(self, client, alice):
        keep = create(client, alice, title="Keep")
        gone = create(client, alice, title="Gone")
        client.get("/todos", headers=alice["headers"])

        client.put(f"/todos/{keep['id']}", json={"title": "Kept"}, headers=alice["headers"])
        client.delete(f"/todos/{gone['id']}", headers=alice["headers"])

        todos = client.get("/todos", headers=alice["headers"]).json()["todos"]
        assert [t["title"] for t in todos] == ["Kept"]

    def test_lists_are_per_user(self, client, alice, bob):
        create(client, alice, title="Alice's")
        create(client, bob, title="Bob's")
        alice_titles = [t["title"] for t in client.get("/todos", headers=alice["headers"]).json()["todos"]]
        bob_titles = [t["title"] for t in client.get("/todos", headers=bob["headers"]).json()["todos"]]
        assert alice_titles == ["Alice's"]
        assert bob_titles == ["Bob's"]


class TestOwnership:
    def test_other_users_todo_is_forbidden_not_missing(self, client, alice, bob):
        todo = create(client, alice, title="Private")
        tid = todo["id"]

        res_get = client.get(f"/todos/{tid}", headers=bob["headers"])
        assert res_get.status_code == 403
        assert res_get.json()["message"] == "You do not have permission to access this todo"

        res_put = client.put(f"/todos/{tid}", json={"title": "Hijacked"}, headers=bob["headers"])
        assert res_put.status_code == 403
        assert res_put.json()["message"] == "You do not have permission to update this todo"

        res_toggle = client.patch(f"/todos/{tid}/toggle", headers=bob["headers"])
        assert res_toggle.status_code == 403

        res_del = client.delete(f"/todos/{tid}", headers=bob["headers"])
        assert res_del.status_code == 403
        assert res_del.json()["message"] == "You do not have permission to delete this todo"

        # nothing changed for the owner
        fetched = client.get(f"/todos/{tid}", headers=alice["headers"]).json()["todo"]
        assert fetched["title"] == "Private"
        assert fetched["completed"] is False
