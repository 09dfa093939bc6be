"""
Per-user board session.

Owns one user's board, its timers, and the link to the key-value store. Every
mutating call applies the board operation first and then saves, so a storage
failure (StorageUnavailableError) never loses the in-memory change; the board
stays usable for the rest of the session.

Import is two-step: prepare_import() parses and validates without touching the
board, confirm_import() performs the overwrite. Dropping the PendingImport is
how a user declines.
"""
import json
import logging
import threading
from dataclasses import dataclass
from typing import Optional, Any, Sequence, Tuple, Dict

from .board import Board
from .config import Config
from .errors import ImportFormatError
from .events import BoardEvents
from .placement import TaskBox
from .schema import Task, TimerState, TaskId
from .sequence import TaskIdSequence
from .serializer import snapshot, restore, parse_snapshot, parse_document, export_document
from .store import SnapshotStore, board_key, COUNTER_KEY
from .timer import TimerController

logger = logging.getLogger(__name__)


@dataclass
class PendingImport:
    """A parsed, validated import waiting for the user to confirm the overwrite."""
    data: Dict[str, Any]
    filename: Optional[str]
    task_count: int


class BoardSession:
    """One authenticated user's board, kept in sync with the store."""

    def __init__(
        self,
        username: str,
        store: SnapshotStore,
        config: Optional[Config] = None,
        sequence: Optional[TaskIdSequence] = None,
    ):
        self.username = username
        self.store = store
        self.config = config or Config()
        self.events = BoardEvents()
        self.board = Board(sequence=sequence, events=self.events)
        self._shared_sequence = sequence is not None
        self.timers = TimerController(
            self.board,
            default_minutes=self.config.default_timer_minutes,
            max_minutes=self.config.max_timer_minutes,
        )
        # Serializes UI events and timer ticks for this board
        self.lock = threading.RLock()

    # ── Persistence ──

    def load(self) -> bool:
        """Load the persisted board. Returns False when starting fresh."""
        if not self._shared_sequence:
            stored = TaskIdSequence.from_stored(self.store.get(COUNTER_KEY))
            self.board.sequence.advance_past([stored.cursor - 1])

        blob = self.store.get(board_key(self.username))
        if not blob:
            return False
        try:
            restore(self.board, json.loads(blob))
        except (ImportFormatError, json.JSONDecodeError) as e:
            logger.error("Error loading board for %s, starting with a fresh board: %s", self.username, e)
            return False
        return True

    def save(self) -> None:
        """Persist the snapshot and the id cursor. Raises StorageUnavailableError."""
        blob = json.dumps(snapshot(self.board), ensure_ascii=False)
        self.store.set(board_key(self.username), blob)
        self.store.set(COUNTER_KEY, str(self.board.sequence.cursor))

    # ── Task operations ──

    def add_task(self, text: str, priority: Any = "medium", category: Any = "other", due_date: Any = None) -> Optional[Task]:
        task = self.board.add_task(text, priority=priority, category=category, due_date=due_date)
        if task is not None:
            self.save()
        return task

    def update_task(self, task_id: TaskId, **fields) -> Task:
        if self.board.update_task(task_id, **fields):
            self.save()
        return self.board.require(task_id)

    def delete_task(self, task_id: TaskId) -> Task:
        task = self.board.remove_task(task_id)
        self.save()
        return task

    def change_progress(self, task_id: TaskId, delta: int) -> Task:
        task = self.board.change_progress(task_id, delta)
        self.save()
        return task

    def move_task(self, task_id: TaskId, stage: Any, position: Optional[int] = None) -> Task:
        task = self.board.move_to(task_id, stage, position)
        self.save()
        return task

    def drop_task(self, task_id: TaskId, stage: Any, pointer_y: float, boxes: Sequence[TaskBox]) -> Task:
        task = self.board.drop(task_id, stage, pointer_y, boxes)
        self.save()
        return task

    # ── Timers ──

    def start_timer(self, task_id: TaskId, minutes: Any = None) -> TimerState:
        return self.timers.start(task_id, minutes)

    def pause_timer(self, task_id: TaskId) -> bool:
        return self.timers.pause(task_id)

    def toggle_timer(self, task_id: TaskId, minutes: Any = None) -> TimerState:
        return self.timers.toggle(task_id, minutes)

    def tick(self, seconds: float = 1) -> Optional[Task]:
        """Advance the running timer; saves when an expiry moved a task."""
        expired = self.timers.tick(seconds)
        if expired is not None:
            self.save()
        return expired

    # ── Export / import ──

    def export(self, fmt: Optional[str] = None) -> Tuple[str, str]:
        return export_document(self.board, self.username, fmt or self.config.export_format)

    def prepare_import(self, content: Any, filename: Optional[str] = None) -> PendingImport:
        """Parse and validate an import file. The board is not touched."""
        data = parse_document(content, filename)
        columns, _ = parse_snapshot(data)
        count = sum(len(tasks) for tasks in columns.values())
        logger.info("Import of %d tasks prepared for %s", count, self.username)
        return PendingImport(data=data, filename=filename, task_count=count)

    def confirm_import(self, pending: PendingImport) -> Board:
        """Overwrite the board with a prepared import, then save."""
        restore(self.board, pending.data)
        self.save()
        return self.board

    # ── Logout ──

    def logout(self) -> None:
        """End the session. Deletes the saved board when clear_board_on_logout is set."""
        running = self.timers.running_task()
        if running is not None:
            self.timers.pause(running.id)
        if self.config.clear_board_on_logout:
            logger.info("Clearing saved board for %s on logout", self.username)
            self.store.remove(board_key(self.username))
        self.board.clear()
