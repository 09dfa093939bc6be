"""
Board snapshots: persistence, export and import.

Snapshot schema:
  {
    "todo":        [TaskRecord, ...],
    "in_progress": [TaskRecord, ...],
    "done":        [TaskRecord, ...],
    "lastUpdated": ISO-8601
  }
  TaskRecord = {id, text, priority, dueDate, category, progress}

Export documents add "user" and "exportedAt". Older saves that use
{"columns": {"to-do": {"tasks": [...]}, ...}, "timestamp": ...} are accepted
on restore.

restore() validates the whole payload before touching the board, so a bad
document leaves the board exactly as it was.
"""
import json
import logging
import re
from datetime import datetime, timezone
from typing import Dict, List, Any, Optional, Tuple

import yaml

from .board import Board, STAGES
from .errors import ImportFormatError, ValidationError
from .schema import Task, Stage

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("json", "yaml")
YAML_SUFFIXES = (".yaml", ".yml")


def snapshot(board: Board) -> Dict[str, Any]:
    """Capture the board's stable state, position implied by list order."""
    data: Dict[str, Any] = {
        stage.value: [task.to_record() for task in board.columns[stage]]
        for stage in STAGES
    }
    data["lastUpdated"] = board.last_updated.isoformat()
    return data


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Ignoring unparseable timestamp %r", value)
        return None


def _stage_lists(data: Dict[str, Any]) -> Dict[Stage, Any]:
    """Pick the per-stage record lists out of a current or legacy payload."""
    lists: Dict[Stage, Any] = {}
    columns = data.get("columns")
    if isinstance(columns, dict):
        for key, column in columns.items():
            stage = Stage.from_str(key)
            if stage is None:
                logger.warning("Skipping unknown column %r in import", key)
                continue
            lists[stage] = column.get("tasks", []) if isinstance(column, dict) else column
        return lists
    for stage in STAGES:
        for key in (stage.value, stage.value.replace("_", "-")):
            if key in data:
                lists[stage] = data[key]
                break
    return lists


def parse_snapshot(data: Any) -> Tuple[Dict[Stage, List[Task]], Optional[datetime]]:
    """Validate a snapshot payload and build its tasks. Raises ImportFormatError."""
    if not isinstance(data, dict):
        raise ImportFormatError(f"Snapshot must be an object, got {type(data).__name__}")

    lists = _stage_lists(data)
    if not lists:
        raise ImportFormatError("Snapshot has no board columns")

    columns: Dict[Stage, List[Task]] = {stage: [] for stage in STAGES}
    seen_ids = set()
    for stage, records in lists.items():
        if not isinstance(records, list):
            raise ImportFormatError(f"Column {stage.value!r} must be a list")
        for record in records:
            task = Task.from_record(record, stage)
            if task.id is not None:
                if task.id in seen_ids:
                    raise ImportFormatError(f"Duplicate task id {task.id!r}")
                seen_ids.add(task.id)
            columns[stage].append(task)

    last_updated = _parse_timestamp(data.get("lastUpdated", data.get("timestamp")))
    return columns, last_updated


def restore(board: Board, data: Any) -> Board:
    """Replace the board's contents with a snapshot (total replacement, not merge).

    Original ids and order are kept. Records without an id get a fresh one
    from the board's sequence, which is first moved past every imported id.
    """
    columns, last_updated = parse_snapshot(data)

    tasks = [task for stage in STAGES for task in columns[stage]]
    board.sequence.advance_past(task.id for task in tasks)
    for task in tasks:
        if task.id is None:
            task.id = board.sequence.next_id()

    board.replace(columns, last_updated)
    logger.info("Restored board with %d tasks", len(tasks))
    return board


def _safe_filename_part(value: str) -> str:
    return re.sub(r"[^\w.-]", "_", value) or "user"


def export_document(board: Board, username: str, fmt: str = "json", now: Optional[datetime] = None) -> Tuple[str, str]:
    """Render the board as a downloadable document. Returns (filename, text)."""
    fmt = (fmt or "json").lower()
    if fmt == "yml":
        fmt = "yaml"
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(f"Unsupported export format: {fmt}")

    now = now or datetime.now(timezone.utc)
    document = snapshot(board)
    document["user"] = username
    document["exportedAt"] = now.isoformat()

    filename = f"kanban_board_{_safe_filename_part(username)}_{now.date().isoformat()}.{fmt}"
    if fmt == "yaml":
        text = yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
    else:
        text = json.dumps(document, indent=2, ensure_ascii=False)
    return filename, text


def parse_document(content: Any, filename: Optional[str] = None) -> Dict[str, Any]:
    """Parse an import file into a snapshot payload. Raises ImportFormatError."""
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ImportFormatError(f"Import file is not UTF-8 text: {e}")
    if not isinstance(content, str) or not content.strip():
        raise ImportFormatError("Import file is empty")

    if filename and filename.lower().endswith(YAML_SUFFIXES):
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ImportFormatError(f"Invalid YAML: {e}")
    else:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ImportFormatError(f"Invalid JSON: {e}")

    if not isinstance(data, dict):
        raise ImportFormatError("Import file must contain a board object")
    return data
