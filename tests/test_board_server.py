"""
Tests for the FlowBoard JSON API.

Covers:
    - require_api_key   — 503 without a secret, 401 missing key, 403 wrong key
    - read routes       — health, board + stats, filtered task list, CSV export
    - task routes       — create, update, delete, move with validation
    - chat              — messages run through the conversation driver
    - history / board   — undo, redo, reset, clear
"""

import csv
import io

import pytest

from board_server import create_app
from flowboard.schema import ColumnId, Priority
from flowboard.store import BoardStore
from conftest import NOW

SECRET = "test-secret"
AUTH = {"X-API-Key": SECRET}


@pytest.fixture
def api_store(sample_board):
    return BoardStore(board=sample_board, autosave_delay=None, clock=lambda: NOW)


@pytest.fixture
def client(api_store):
    app = create_app(api_store, SECRET)
    app.config["TESTING"] = True
    return app.test_client()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Auth
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestAuth:

    def test_no_secret_configured(self, api_store):
        client = create_app(api_store, "").test_client()
        resp = client.post("/api/undo", headers=AUTH)
        assert resp.status_code == 503

    def test_missing_key(self, client):
        assert client.post("/api/undo").status_code == 401

    def test_wrong_key(self, client):
        resp = client.post("/api/undo", headers={"X-API-Key": "nope"})
        assert resp.status_code == 403

    def test_reads_need_no_key(self, client):
        assert client.get("/api/board").status_code == 200
        assert client.get("/health").status_code == 200


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Read routes
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestRead:

    def test_health(self, client):
        assert client.get("/health").get_json() == {"status": "ok", "tasks": 4}

    def test_board_payload(self, client):
        data = client.get("/api/board").get_json()
        assert set(data["board"]["tasks"]) == {"t1", "t2", "t3", "t4"}
        assert data["board"]["columnOrder"] == ["todo", "in-progress", "done"]
        stats = data["stats"]
        assert stats["total"] == 4
        assert stats["todo"] == 2
        assert stats["inProgress"] == 1
        assert stats["done"] == 1
        assert stats["completionRate"] == 25
        assert data["canUndo"] is False

    def test_tasks_filtered(self, client):
        data = client.get("/api/tasks?column=todo&priority=high").get_json()
        assert data["count"] == 1
        assert data["tasks"][0]["id"] == "t1"

    def test_tasks_search(self, client):
        data = client.get("/api/tasks?search=billing").get_json()
        assert [t["id"] for t in data["tasks"]] == ["t3"]

    @pytest.mark.parametrize("query", ["column=later", "sort=title", "due=someday", "priority=urgent"])
    def test_tasks_bad_filter(self, client, query):
        assert client.get(f"/api/tasks?{query}").status_code == 400

    def test_export_csv(self, client):
        resp = client.get("/api/export.csv")
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert "flowboard-export-" in resp.headers["Content-Disposition"]
        rows = list(csv.reader(io.StringIO(resp.get_data(as_text=True))))
        assert len(rows) == 5


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Task routes
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestCreate:

    def test_create(self, client, api_store):
        resp = client.post("/api/tasks", headers=AUTH, json={
            "title": "  Ship it  ", "column": "in-progress", "priority": "HIGH",
            "dueDate": "2025-03-20", "tags": "Release, ops",
        })
        assert resp.status_code == 201
        data = resp.get_json()
        task = api_store.board.tasks[data["id"]]
        assert task.title == "Ship it"
        assert task.column_id is ColumnId.IN_PROGRESS
        assert task.priority is Priority.HIGH
        assert task.tags == ["release", "ops"]
        assert data["task"]["dueDate"] == "2025-03-20"

    def test_defaults(self, client, api_store):
        data = client.post("/api/tasks", headers=AUTH, json={"title": "Plain"}).get_json()
        task = api_store.board.tasks[data["id"]]
        assert task.column_id is ColumnId.TODO
        assert task.priority is Priority.MEDIUM

    @pytest.mark.parametrize("body", [
        {"title": "   "},
        {"title": "x", "priority": "extreme"},
        {"title": "x", "column": "backlog"},
        {"title": "x", "dueDate": "next-ish"},
        {"title": "x", "tags": 5},
    ])
    def test_invalid(self, client, api_store, body):
        resp = client.post("/api/tasks", headers=AUTH, json=body)
        assert resp.status_code == 400
        assert "error" in resp.get_json()
        assert len(api_store.board.tasks) == 4

    def test_non_object_body(self, client):
        resp = client.post("/api/tasks", headers=AUTH, data="not json",
                           content_type="application/json")
        assert resp.status_code == 400


class TestUpdate:

    def test_update_fields(self, client, api_store):
        resp = client.put("/api/tasks/t2", headers=AUTH, json={
            "title": "API docs v2", "priority": "high", "dueDate": None,
        })
        assert resp.status_code == 200
        task = api_store.board.tasks["t2"]
        assert task.title == "API docs v2"
        assert task.priority is Priority.HIGH
        assert task.column_id is ColumnId.TODO

    def test_unknown_field(self, client):
        resp = client.put("/api/tasks/t2", headers=AUTH, json={"columnId": "done"})
        assert resp.status_code == 400
        assert "columnId" in resp.get_json()["error"]

    def test_empty_title(self, client):
        assert client.put("/api/tasks/t2", headers=AUTH, json={"title": ""}).status_code == 400

    def test_missing_task(self, client):
        assert client.put("/api/tasks/zzz", headers=AUTH, json={"title": "x"}).status_code == 404


class TestDelete:

    def test_delete(self, client, api_store):
        resp = client.delete("/api/tasks/t2", headers=AUTH)
        assert resp.get_json() == {"deleted": "t2"}
        assert "t2" not in api_store.board.tasks
        assert "t2" not in api_store.board.columns[ColumnId.TODO].task_ids

    def test_missing_task(self, client):
        assert client.delete("/api/tasks/zzz", headers=AUTH).status_code == 404


class TestMove:

    def test_move_to_done_stamps_completion(self, client, api_store):
        resp = client.post("/api/tasks/t1/move", headers=AUTH, json={"dest": "done", "index": 0})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["index"] == 0
        assert data["task"]["columnId"] == "done"
        assert api_store.board.tasks["t1"].completed_at == NOW
        assert api_store.board.columns[ColumnId.DONE].task_ids == ["t1", "t4"]

    def test_default_index_appends(self, client, api_store):
        client.post("/api/tasks/t2/move", headers=AUTH, json={"dest": "in-progress"})
        assert api_store.board.columns[ColumnId.IN_PROGRESS].task_ids == ["t3", "t2"]

    def test_reorder_within_column(self, client, api_store):
        client.post("/api/tasks/t2/move", headers=AUTH, json={"dest": "todo", "index": 0})
        assert api_store.board.columns[ColumnId.TODO].task_ids == ["t2", "t1"]

    @pytest.mark.parametrize("body", [{}, {"dest": "later"}, {"dest": "done", "index": "1"},
                                      {"dest": "done", "index": True}])
    def test_invalid(self, client, body):
        assert client.post("/api/tasks/t1/move", headers=AUTH, json=body).status_code == 400

    def test_missing_task(self, client):
        resp = client.post("/api/tasks/zzz/move", headers=AUTH, json={"dest": "done"})
        assert resp.status_code == 404


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Chat
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestChat:

    def test_create_through_chat(self, client, api_store):
        data = client.post("/api/chat", headers=AUTH, json={"message": "Create task: Plan the offsite"}).get_json()
        assert data["intent"] == "create"
        assert api_store.board.tasks[data["taskId"]].title == "Plan the offsite"

    def test_read_only_message(self, client, api_store):
        data = client.post("/api/chat", headers=AUTH, json={"message": "show summary"}).get_json()
        assert data["action"] is None
        assert data["taskId"] is None
        assert "Board Summary" in data["text"]
        assert not api_store.can_undo

    @pytest.mark.parametrize("body", [{}, {"message": "  "}, {"message": 3}])
    def test_message_required(self, client, body):
        assert client.post("/api/chat", headers=AUTH, json=body).status_code == 400


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# History and board-level
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestHistory:

    def test_undo_redo(self, client, api_store):
        client.delete("/api/tasks/t2", headers=AUTH)
        assert client.post("/api/undo", headers=AUTH).get_json() == {
            "ok": True, "canUndo": False, "canRedo": True,
        }
        assert "t2" in api_store.board.tasks
        assert client.post("/api/redo", headers=AUTH).get_json()["ok"] is True
        assert "t2" not in api_store.board.tasks

    def test_nothing_to_undo(self, client):
        assert client.post("/api/undo", headers=AUTH).get_json()["ok"] is False

    def test_clear_then_reset(self, client, api_store):
        assert client.post("/api/clear", headers=AUTH).get_json() == {"ok": True, "tasks": 0}
        assert api_store.board.tasks == {}
        data = client.post("/api/reset", headers=AUTH).get_json()
        assert data == {"ok": True, "tasks": 6}
        assert api_store.history_depth == 2
