"""
Per-task countdown timers.

State machine per task:
  idle → running → idle        (paused, remaining time kept)
  running → completed → idle   (expired)

Only one countdown on the board advances at a time. Starting a timer takes
the single running slot, force-pausing whichever task held it. When a
countdown expires the task is pulled into In Progress unless it is already
Done; this is independent of the progress-driven stage policy.
"""
import logging
import threading
from typing import Optional, Callable, Any

from .board import Board
from .schema import Task, TimerState, Stage, TaskId

logger = logging.getLogger(__name__)

DEFAULT_MINUTES = 25
MAX_MINUTES = 180


def parse_duration(value: Any, default: int = DEFAULT_MINUTES, maximum: int = MAX_MINUTES) -> int:
    """Minutes from user input. Non-numeric or non-positive input falls back to the default."""
    if isinstance(value, bool):
        return default
    try:
        minutes = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    if minutes <= 0:
        return default
    return min(minutes, maximum)


class TimerController:
    """Starts, pauses and advances task timers on one board."""

    def __init__(self, board: Board, default_minutes: int = DEFAULT_MINUTES, max_minutes: int = MAX_MINUTES):
        self.board = board
        self.default_minutes = default_minutes
        self.max_minutes = max_minutes
        self._carry = 0.0

    def running_task(self) -> Optional[Task]:
        """The task currently holding the running slot, if any."""
        for task in self.board.all_tasks():
            if task.timer and task.timer.running:
                return task
        return None

    def start(self, task_id: TaskId, minutes: Any = None) -> TimerState:
        """Start (or resume) a countdown, pausing any other running timer first."""
        task = self.board.require(task_id)
        if minutes is None and task.timer:
            duration = task.timer.duration_seconds // 60
        else:
            duration = parse_duration(minutes, self.default_minutes, self.max_minutes)

        for other in self.board.all_tasks():
            if other is not task and other.timer and other.timer.running:
                other.timer.running = False
                logger.debug("Pausing timer on task %s to start task %s", other.id, task.id)
                self.board.events.emit("timer_paused", task=other, forced=True)

        timer = task.timer
        resumable = (
            timer is not None
            and not timer.completed
            and timer.remaining_seconds > 0
            and timer.duration_seconds == duration * 60
        )
        if not resumable:
            timer = TimerState(duration_seconds=duration * 60, remaining_seconds=duration * 60)
            task.timer = timer
        timer.running = True
        timer.completed = False
        self._carry = 0.0
        self.board.events.emit("timer_started", task=task, remaining_seconds=timer.remaining_seconds)
        return timer

    def pause(self, task_id: TaskId) -> bool:
        """Stop the countdown without resetting it. Returns False if it was not running."""
        task = self.board.require(task_id)
        if not task.timer or not task.timer.running:
            return False
        task.timer.running = False
        self.board.events.emit("timer_paused", task=task, forced=False)
        return True

    def toggle(self, task_id: TaskId, minutes: Any = None) -> TimerState:
        task = self.board.require(task_id)
        if task.timer and task.timer.running:
            self.pause(task_id)
            return task.timer
        return self.start(task_id, minutes)

    def tick(self, seconds: float = 1) -> Optional[Task]:
        """Advance the running countdown by ``seconds`` of wall time.

        Fractional seconds are carried over between calls, so the countdown
        runs at real time whatever the tick interval. Returns the task whose
        timer just expired.
        """
        task = self.running_task()
        if task is None:
            self._carry = 0.0
            return None
        self._carry += seconds
        whole = int(self._carry)
        self._carry -= whole
        timer = task.timer
        timer.remaining_seconds = max(timer.remaining_seconds - whole, 0)
        if timer.remaining_seconds > 0:
            return None

        timer.running = False
        timer.completed = True
        logger.info("Timer finished for task %s", task.id)
        if task.stage == Stage.TODO:
            self.board.move_to(task.id, Stage.IN_PROGRESS)
        self.board.events.emit("timer_completed", task=task)
        return task


class Ticker:
    """Calls ``callback`` every ``interval`` seconds on a daemon thread."""

    def __init__(self, interval: float, callback: Callable[[], None]):
        self.interval = interval
        self.callback = callback
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="taskflow-ticker", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=self.interval * 2)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.callback()
            except Exception:
                logger.exception("Ticker callback failed")
