#!/usr/bin/env python3
"""
TaskFlow Board Server
---------------------
JSON API over the board engine. One BoardSession per logged-in user; every
request and timer tick for a board runs under that session's lock, so events
are applied strictly one at a time in arrival order.

Usage:
    python taskflow_server.py --port 3000
    python taskflow_server.py --config taskflow.yaml --db /tmp/taskflow.db

API:
    POST   /api/register                 → { username, password }
    POST   /api/login                    → { username, password }
    POST   /api/logout
    GET    /api/board                    → { user, columns, stats, lastUpdated }
    POST   /api/tasks                    → { text, priority?, category?, dueDate? }
    PUT    /api/tasks/<id>               → { text?, priority?, category?, dueDate? }
    DELETE /api/tasks/<id>
    POST   /api/tasks/<id>/progress      → { delta: ±10 }
    POST   /api/tasks/<id>/move          → { stage, position? }
    POST   /api/tasks/<id>/drop          → { stage, pointer_y, boxes: [{task_id, top, height}] }
    POST   /api/tasks/<id>/timer         → { action: start|pause|toggle, minutes? }
    GET    /api/tasks?q=<text or category>
    GET    /api/stats
    GET    /api/export?format=json|yaml
    POST   /api/import                   → { content, filename?, confirm }
    GET    /health
"""

import logging
import os
import sys
import threading
from functools import wraps
from typing import Dict, Optional, Any

from flask import Flask, Response, jsonify, request, session

from taskflow.accounts import AccountStore, AuthError, UsernameTaken
from taskflow.analytics import board_stats, filter_tasks
from taskflow.board import STAGES
from taskflow.config import Config
from taskflow.errors import (
    TaskflowError,
    ValidationError,
    NotFoundError,
    ImportFormatError,
    StorageUnavailableError,
)
from taskflow.placement import TaskBox
from taskflow.sequence import TaskIdSequence
from taskflow.session import BoardSession
from taskflow.store import SnapshotStore, COUNTER_KEY
from taskflow.timer import Ticker

logger = logging.getLogger("taskflow.server")

app = Flask(__name__)

# ── State ────────────────────────────────────────────────────────────────────

CONFIG: Config = Config.load(os.environ.get("TASKFLOW_CONFIG"))
_store: Optional[SnapshotStore] = None
_sequence: Optional[TaskIdSequence] = None
_sessions: Dict[str, BoardSession] = {}
_sessions_lock = threading.Lock()


def init_app(config: Config) -> Flask:
    """(Re)configure the app: storage path, secret key, and a clean session table."""
    global CONFIG, _store, _sequence
    CONFIG = config
    app.secret_key = config.secret_key or os.urandom(24).hex()
    with _sessions_lock:
        _store = None
        _sequence = None
        _sessions.clear()
    return app


def get_store() -> SnapshotStore:
    global _store
    if _store is None:
        _store = SnapshotStore(CONFIG.db_path)
    return _store


def get_sequence() -> TaskIdSequence:
    """Process-wide task id sequence, loaded once from the store."""
    global _sequence
    if _sequence is None:
        _sequence = TaskIdSequence.from_stored(get_store().get(COUNTER_KEY))
    return _sequence


def open_session(username: str) -> BoardSession:
    with _sessions_lock:
        board_session = _sessions.get(username)
        if board_session is None:
            board_session = BoardSession(username, get_store(), CONFIG, sequence=get_sequence())
            board_session.load()
            _sessions[username] = board_session
        return board_session


def tick_all() -> None:
    """Advance every live session's running timer by one tick interval."""
    with _sessions_lock:
        live = list(_sessions.values())
    for board_session in live:
        with board_session.lock:
            try:
                board_session.tick(CONFIG.tick_interval_secs)
            except StorageUnavailableError as e:
                logger.warning("Tick for %s not persisted: %s", board_session.username, e)


# ── Auth ─────────────────────────────────────────────────────────────────────

def require_login(f):
    """Decorator: reject requests without a logged-in user; pass the user's BoardSession."""
    @wraps(f)
    def decorated(*args, **kwargs):
        username = session.get("username")
        if not username:
            return jsonify({"error": "Not logged in"}), 401
        board_session = open_session(username)
        with board_session.lock:
            return f(board_session, *args, **kwargs)
    return decorated


# ── Errors ───────────────────────────────────────────────────────────────────

_STATUS = (
    (ValidationError, 400),
    (AuthError, 401),
    (NotFoundError, 404),
    (UsernameTaken, 409),
    (ImportFormatError, 422),
    (StorageUnavailableError, 503),
)


@app.errorhandler(TaskflowError)
def handle_taskflow_error(e: TaskflowError):
    for error_type, status in _STATUS:
        if isinstance(e, error_type):
            break
    else:
        status = 500
    if status >= 500:
        logger.error("%s: %s", type(e).__name__, e)
    return jsonify({"error": str(e), "type": type(e).__name__}), status


# ── Helpers ──────────────────────────────────────────────────────────────────

def _json_body() -> Dict[str, Any]:
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


def _task_id(raw: str):
    """URL ids are strings; numeric ones address integer task ids."""
    return int(raw) if raw.isdigit() else raw


def board_payload(board_session: BoardSession) -> Dict[str, Any]:
    board = board_session.board
    running = board_session.timers.running_task()
    return {
        "user": board_session.username,
        "columns": {stage.value: [t.to_dict() for t in board.columns[stage]] for stage in STAGES},
        "stats": board_stats(board),
        "running_timer": running.id if running else None,
        "lastUpdated": board.last_updated.isoformat(),
    }


# ── Routes ───────────────────────────────────────────────────────────────────

@app.route("/api/register", methods=["POST"])
def api_register():
    data = _json_body()
    AccountStore(get_store()).register(data.get("username", ""), data.get("password", ""))
    return jsonify({"message": "Registration successful! You can now log in."}), 201


@app.route("/api/login", methods=["POST"])
def api_login():
    data = _json_body()
    user = AccountStore(get_store()).login(data.get("username", ""), data.get("password", ""))
    session["username"] = user.username
    board_session = open_session(user.username)
    with board_session.lock:
        return jsonify({"user": {"username": user.username, "lastLogin": user.last_login},
                        "board": board_payload(board_session)})


@app.route("/api/logout", methods=["POST"])
@require_login
def api_logout(board_session: BoardSession):
    board_session.logout()
    with _sessions_lock:
        _sessions.pop(board_session.username, None)
    session.clear()
    return jsonify({"message": "Logged out"})


@app.route("/api/board")
@require_login
def api_board(board_session: BoardSession):
    return jsonify(board_payload(board_session))


@app.route("/api/tasks", methods=["POST"])
@require_login
def api_create_task(board_session: BoardSession):
    data = _json_body()
    task = board_session.add_task(
        data.get("text", ""),
        priority=data.get("priority", "medium"),
        category=data.get("category", "other"),
        due_date=data.get("dueDate"),
    )
    if task is None:
        return jsonify({"error": "Please enter a task description"}), 400
    return jsonify({"task": task.to_dict()}), 201


@app.route("/api/tasks", methods=["GET"])
@require_login
def api_list_tasks(board_session: BoardSession):
    query = request.args.get("q", "")
    matched = filter_tasks(board_session.board, query)
    return jsonify({
        "columns": {stage: [t.to_dict() for t in tasks] for stage, tasks in matched.items()},
        "count": sum(len(tasks) for tasks in matched.values()),
    })


@app.route("/api/tasks/<task_id>", methods=["PUT"])
@require_login
def api_update_task(board_session: BoardSession, task_id: str):
    data = _json_body()
    fields = {}
    for key, name in (("text", "text"), ("priority", "priority"), ("category", "category"), ("dueDate", "due_date")):
        if key in data:
            fields[name] = data[key]
    task = board_session.update_task(_task_id(task_id), **fields)
    return jsonify({"task": task.to_dict()})


@app.route("/api/tasks/<task_id>", methods=["DELETE"])
@require_login
def api_delete_task(board_session: BoardSession, task_id: str):
    task = board_session.delete_task(_task_id(task_id))
    return jsonify({"deleted": task.id})


@app.route("/api/tasks/<task_id>/progress", methods=["POST"])
@require_login
def api_progress(board_session: BoardSession, task_id: str):
    data = _json_body()
    try:
        delta = int(data.get("delta", 10))
    except (TypeError, ValueError):
        raise ValidationError("delta must be an integer")
    task = board_session.change_progress(_task_id(task_id), delta)
    return jsonify({"task": task.to_dict()})


@app.route("/api/tasks/<task_id>/move", methods=["POST"])
@require_login
def api_move(board_session: BoardSession, task_id: str):
    data = _json_body()
    stage = data.get("stage", "")
    position = data.get("position")
    try:
        position = int(position) if position is not None else None
    except (TypeError, ValueError):
        raise ValidationError("position must be an integer")
    task = board_session.move_task(_task_id(task_id), stage, position)
    return jsonify({"task": task.to_dict()})


@app.route("/api/tasks/<task_id>/drop", methods=["POST"])
@require_login
def api_drop(board_session: BoardSession, task_id: str):
    data = _json_body()
    try:
        pointer_y = float(data["pointer_y"])
        boxes = [
            TaskBox(task_id=_task_id(str(b["task_id"])), top=float(b["top"]), height=float(b["height"]))
            for b in data.get("boxes", [])
        ]
    except (KeyError, TypeError, ValueError):
        raise ValidationError("drop needs pointer_y and boxes of {task_id, top, height}")
    task = board_session.drop_task(_task_id(task_id), data.get("stage", ""), pointer_y, boxes)
    return jsonify({"task": task.to_dict()})


@app.route("/api/tasks/<task_id>/timer", methods=["POST"])
@require_login
def api_timer(board_session: BoardSession, task_id: str):
    data = _json_body()
    action = data.get("action", "toggle")
    tid = _task_id(task_id)
    if action == "start":
        board_session.start_timer(tid, data.get("minutes"))
    elif action == "pause":
        board_session.pause_timer(tid)
    elif action == "toggle":
        board_session.toggle_timer(tid, data.get("minutes"))
    else:
        raise ValidationError(f"Unknown timer action: {action}")
    return jsonify({"task": board_session.board.require(tid).to_dict()})


@app.route("/api/stats")
@require_login
def api_stats(board_session: BoardSession):
    return jsonify(board_stats(board_session.board))


@app.route("/api/export")
@require_login
def api_export(board_session: BoardSession):
    filename, text = board_session.export(request.args.get("format"))
    mimetype = "application/x-yaml" if filename.endswith(".yaml") else "application/json"
    return Response(
        text,
        mimetype=mimetype,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.route("/api/import", methods=["POST"])
@require_login
def api_import(board_session: BoardSession):
    data = _json_body()
    pending = board_session.prepare_import(data.get("content", ""), data.get("filename"))
    if not data.get("confirm"):
        return jsonify({
            "pending": True,
            "task_count": pending.task_count,
            "message": "Importing will replace your current board. Resend with confirm=true to proceed.",
        })
    board_session.confirm_import(pending)
    return jsonify({"message": "Board imported successfully!", "board": board_payload(board_session)})


@app.route("/health")
def health():
    with _sessions_lock:
        live = len(_sessions)
    return jsonify({"status": "ok", "db": CONFIG.db_path, "sessions": live})


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description="TaskFlow Board Server")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--config", help="Path to taskflow.yaml")
    parser.add_argument("--db", help="Path to the SQLite store (overrides TASKFLOW_DB)")
    args = parser.parse_args(argv)

    if args.db:
        os.environ["TASKFLOW_DB"] = args.db
    config = Config.load(args.config)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [taskflow] %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    init_app(config)

    ticker = Ticker(config.tick_interval_secs, tick_all)
    ticker.start()
    logger.info("Serving on http://%s:%d (db: %s)", args.host, args.port, config.db_path)
    try:
        app.run(host=args.host, port=args.port, debug=False, threaded=True)
    finally:
        ticker.stop()


if __name__ == "__main__":
    main()
