#!/usr/bin/env python3
"""
FlowBoard API Server
--------------------
JSON API over a single BoardStore. The chat endpoint runs the same
conversation driver the Telegram bot uses.

Usage:
    export FLOWBOARD_API_SECRET=some-long-random-string
    python board_server.py            # http://localhost:3000

API:
    GET    /health                 → { status, tasks }
    GET    /api/board              → { board, stats, canUndo, canRedo }
    GET    /api/tasks              → { tasks, count }
           ?column=&search=&priority=&due=&tag=&sort=
    GET    /api/export.csv         → CSV download
    POST   /api/chat               → { text, intent, action, taskId }
    POST   /api/tasks              → 201 { task, id }
    PUT    /api/tasks/<id>         → { task }
    DELETE /api/tasks/<id>         → { deleted }
    POST   /api/tasks/<id>/move    → { task, index }   body { dest, index?, source? }
    POST   /api/undo | /api/redo   → { ok, canUndo, canRedo }
    POST   /api/reset | /api/clear → { ok, tasks }

All POST/PUT/DELETE routes need the X-API-Key header.

Dependencies: flask
    pip install flask
"""

import hmac
import logging
import os
import sys
from functools import wraps
from pathlib import Path

try:
    from flask import Flask, Response, current_app, jsonify, request
except ImportError:
    print("Flask not installed. Run: pip install flask", file=sys.stderr)
    sys.exit(1)

sys.path.insert(0, str(Path(__file__).parent))
from flowboard.driver import ConversationDriver
from flowboard.export import export_csv, export_filename
from flowboard.insights import BoardSnapshot
from flowboard.persistence import DEFAULT_DB_PATH, SqliteStorage
from flowboard.schema import ColumnId, Priority, parse_date
from flowboard.store import BoardStore
from flowboard.views import filter_tasks

logger = logging.getLogger(__name__)

# JSON body key → BoardStore.update field
EDITABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "priority": "priority",
    "dueDate": "due_date",
    "tags": "tags",
}


class BadRequest(ValueError):
    """Invalid body or field value; rendered as a 400."""
    pass


# ── Auth ─────────────────────────────────────────────────────────────────────

def require_api_key(f):
    """Decorator: reject requests without a valid X-API-Key header."""
    @wraps(f)
    def decorated(*args, **kwargs):
        secret = current_app.config.get("API_SECRET", "")
        if not secret:
            return jsonify({"error": "API_SECRET not set"}), 503
        provided = request.headers.get("X-API-Key", "").strip()
        if not hmac.compare_digest(provided, secret):
            code = 401 if not provided else 403
            return jsonify({"error": "Unauthorized"}), code
        return f(*args, **kwargs)
    return decorated


# ── Body parsing ─────────────────────────────────────────────────────────────

def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("request body must be a JSON object")
    return data


def parse_column(value, field: str = "column") -> ColumnId:
    try:
        return ColumnId(value)
    except ValueError:
        allowed = ", ".join(c.value for c in ColumnId)
        raise BadRequest(f"{field} must be one of: {allowed}")


def parse_priority(value) -> Priority:
    try:
        return Priority(str(value).lower())
    except ValueError:
        raise BadRequest("priority must be one of: high, medium, low")


def parse_due(value):
    try:
        return parse_date(value)
    except ValueError:
        raise BadRequest(f"dueDate must be YYYY-MM-DD, got {value!r}")


def parse_tags(value):
    if value is None:
        return []
    if isinstance(value, str):
        return value.split(",")
    if not isinstance(value, list):
        raise BadRequest("tags must be a list or comma-separated string")
    return value


def parse_changes(data: dict) -> dict:
    unknown = sorted(set(data) - set(EDITABLE_FIELDS))
    if unknown:
        raise BadRequest(f"unknown fields: {', '.join(unknown)}")
    changes = {}
    for key, value in data.items():
        name = EDITABLE_FIELDS[key]
        if name == "title":
            if not str(value or "").strip():
                raise BadRequest("title must not be empty")
        elif name == "priority":
            value = parse_priority(value)
        elif name == "due_date":
            value = parse_due(value)
        elif name == "tags":
            value = parse_tags(value)
        changes[name] = value
    return changes


# ── App factory ──────────────────────────────────────────────────────────────

def create_app(store: BoardStore, api_secret: str = "") -> Flask:
    """Build the Flask app serving `store`."""
    app = Flask(__name__)
    app.config["API_SECRET"] = api_secret
    driver = ConversationDriver(store)

    def board_payload():
        board = store.board
        snap = BoardSnapshot.of(board)
        return {
            "board": board.to_dict(),
            "stats": {
                "total": len(snap.all),
                "todo": len(snap.todo),
                "inProgress": len(snap.in_progress),
                "done": len(snap.done),
                "overdue": len(snap.overdue),
                "completionRate": snap.completion_rate,
            },
            "canUndo": store.can_undo,
            "canRedo": store.can_redo,
        }

    def history_payload(ok: bool):
        return {"ok": ok, "canUndo": store.can_undo, "canRedo": store.can_redo}

    def not_found(task_id: str):
        return jsonify({"error": f"Task {task_id} not found"}), 404

    @app.errorhandler(BadRequest)
    def handle_bad_request(e):
        return jsonify({"error": str(e)}), 400

    # ── read ──

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "tasks": len(store.board.tasks)})

    @app.route("/api/board")
    def api_board():
        return jsonify(board_payload())

    @app.route("/api/tasks", methods=["GET"])
    def api_tasks():
        args = request.args
        column = args.get("column") or None
        try:
            tasks = filter_tasks(
                store.board,
                column=parse_column(column) if column else None,
                search=args.get("search", ""),
                priority=args.get("priority", "all"),
                due=args.get("due", "all"),
                tag=args.get("tag", ""),
                sort=args.get("sort", "created"),
            )
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify({"tasks": [t.to_dict() for t in tasks], "count": len(tasks)})

    @app.route("/api/export.csv")
    def api_export():
        return Response(
            export_csv(store.board),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={export_filename()}"},
        )

    # ── chat ──

    @app.route("/api/chat", methods=["POST"])
    @require_api_key
    def api_chat():
        message = json_body().get("message")
        if not isinstance(message, str) or not message.strip():
            raise BadRequest("message is required")
        with store.lock:
            response = driver.handle(message)
            payload = response.to_dict()
            payload["taskId"] = driver.last_task_id
        return jsonify(payload)

    # ── task CRUD ──

    @app.route("/api/tasks", methods=["POST"])
    @require_api_key
    def api_create_task():
        data = json_body()
        title = str(data.get("title") or "").strip()
        if not title:
            raise BadRequest("title is required")
        column = parse_column(data.get("column", ColumnId.TODO.value))
        priority = parse_priority(data.get("priority", "medium"))
        due_date = parse_due(data.get("dueDate"))
        tags = parse_tags(data.get("tags"))
        with store.lock:
            task_id = store.create(
                column, title,
                description=str(data.get("description") or ""),
                priority=priority, due_date=due_date, tags=tags,
            )
            task = store.board.tasks[task_id]
        return jsonify({"task": task.to_dict(), "id": task_id}), 201

    @app.route("/api/tasks/<task_id>", methods=["PUT"])
    @require_api_key
    def api_update_task(task_id):
        changes = parse_changes(json_body())
        with store.lock:
            if task_id not in store.board.tasks:
                return not_found(task_id)
            store.update(task_id, changes)
            task = store.board.tasks[task_id]
        return jsonify({"task": task.to_dict()})

    @app.route("/api/tasks/<task_id>", methods=["DELETE"])
    @require_api_key
    def api_delete_task(task_id):
        with store.lock:
            if task_id not in store.board.tasks:
                return not_found(task_id)
            store.delete(task_id)
        return jsonify({"deleted": task_id})

    @app.route("/api/tasks/<task_id>/move", methods=["POST"])
    @require_api_key
    def api_move_task(task_id):
        data = json_body()
        if "dest" not in data:
            raise BadRequest("dest is required")
        dest = parse_column(data["dest"], "dest")
        with store.lock:
            task = store.board.get(task_id)
            if task is None:
                return not_found(task_id)
            source = parse_column(data["source"], "source") if data.get("source") else task.column_id
            index = data.get("index", len(store.board.columns[dest].task_ids))
            if isinstance(index, bool) or not isinstance(index, int):
                raise BadRequest("index must be an integer")
            store.move(task_id, source, dest, index)
            moved = store.board.tasks[task_id]
            position = store.board.index_of(task_id)
        return jsonify({"task": moved.to_dict(), "index": position})

    # ── history & board-level ──

    @app.route("/api/undo", methods=["POST"])
    @require_api_key
    def api_undo():
        with store.lock:
            payload = history_payload(store.undo())
        return jsonify(payload)

    @app.route("/api/redo", methods=["POST"])
    @require_api_key
    def api_redo():
        with store.lock:
            payload = history_payload(store.redo())
        return jsonify(payload)

    @app.route("/api/reset", methods=["POST"])
    @require_api_key
    def api_reset():
        store.reset_board()
        return jsonify({"ok": True, "tasks": len(store.board.tasks)})

    @app.route("/api/clear", methods=["POST"])
    @require_api_key
    def api_clear():
        store.clear_board()
        return jsonify({"ok": True, "tasks": 0})

    return app


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [board_server] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    db_path = Path(os.environ.get("FLOWBOARD_DB", DEFAULT_DB_PATH)).expanduser()
    api_secret = os.environ.get("FLOWBOARD_API_SECRET", "")
    if not api_secret:
        logger.warning("FLOWBOARD_API_SECRET not set; write endpoints will answer 503")

    store = BoardStore(SqliteStorage(str(db_path)))
    app = create_app(store, api_secret)
    port = int(os.environ.get("FLOWBOARD_PORT", 3000))
    logger.info(f"FlowBoard API on port {port}, db={db_path}")
    try:
        app.run(host="0.0.0.0", port=port, debug=False, threaded=True)
    finally:
        store.close()


if __name__ == "__main__":
    main()
