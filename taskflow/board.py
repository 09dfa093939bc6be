"""
Board logic: stage lists, id allocation, and task mutation.

The board is the single source of truth for a user's tasks. Every task sits
in exactly one of the three stage lists and its ``stage``/``position`` fields
always mirror that list membership. Operations that name a missing task raise
NotFoundError before touching anything.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Union, Any

from .errors import NotFoundError, ValidationError
from .events import BoardEvents
from .placement import TaskBox, insertion_index
from .policy import derive_stage
from .schema import Task, Stage, Priority, Category, TaskId, parse_due_date
from .sequence import TaskIdSequence

logger = logging.getLogger(__name__)

STAGES = (Stage.TODO, Stage.IN_PROGRESS, Stage.DONE)

_UNSET = object()


def to_stage(value: Union[Stage, str]) -> Stage:
    """Coerce a stage argument, raising ValidationError for unknown names."""
    if isinstance(value, Stage):
        return value
    stage = Stage.from_str(value)
    if stage is None:
        raise ValidationError(f"Invalid stage: {value}")
    return stage


class Board:
    def __init__(self, sequence: Optional[TaskIdSequence] = None, events: Optional[BoardEvents] = None):
        self.columns: Dict[Stage, List[Task]] = {stage: [] for stage in STAGES}
        self.sequence = sequence or TaskIdSequence()
        self.events = events or BoardEvents()
        self.last_updated: datetime = datetime.now(timezone.utc)

    # -------------------- queries --------------------
    def tasks_in(self, stage: Union[Stage, str]) -> List[Task]:
        return list(self.columns[to_stage(stage)])

    def all_tasks(self) -> List[Task]:
        return self.columns[Stage.TODO] + self.columns[Stage.IN_PROGRESS] + self.columns[Stage.DONE]

    def get(self, task_id: TaskId) -> Optional[Task]:
        for task in self.all_tasks():
            if task.id == task_id:
                return task
        return None

    def require(self, task_id: TaskId) -> Task:
        task = self.get(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def counts(self) -> Dict[str, int]:
        return {stage.value: len(self.columns[stage]) for stage in STAGES}

    # -------------------- task operations --------------------
    def add_task(
        self,
        text: str,
        priority: Union[Priority, str] = Priority.MEDIUM,
        category: Union[Category, str] = Category.OTHER,
        due_date: Any = None,
    ) -> Optional[Task]:
        """Create a task at the end of To Do. Returns None for blank text."""
        if not isinstance(text, str) or not text.strip():
            logger.debug("Ignoring task with empty description")
            return None
        try:
            due = parse_due_date(due_date)
        except ValueError:
            logger.debug("Ignoring unparseable due date %r", due_date)
            due = None
        task = Task(
            id=self.sequence.next_id(),
            text=text,
            priority=priority if isinstance(priority, Priority) else Priority.from_str(priority),
            category=category if isinstance(category, Category) else Category.from_str(category),
            due_date=due,
        )
        self.columns[Stage.TODO].append(task)
        self._reindex(Stage.TODO)
        self.touch()
        self.events.emit("task_created", task=task)
        return task

    def update_task(
        self,
        task_id: TaskId,
        text: Optional[str] = None,
        priority: Union[Priority, str, None] = None,
        category: Union[Category, str, None] = None,
        due_date: Any = _UNSET,
    ) -> bool:
        """Apply field edits. Invalid values are ignored; returns True if anything changed."""
        task = self.require(task_id)
        changed = False
        if text is not None:
            changed |= task.edit_text(text)
        if priority is not None:
            changed |= task.set_priority(priority)
        if category is not None:
            changed |= task.set_category(category)
        if due_date is not _UNSET:
            changed |= task.set_due_date(due_date)
        if changed:
            self.touch()
            self.events.emit("task_updated", task=task)
        return changed

    def remove_task(self, task_id: TaskId) -> Task:
        task = self.require(task_id)
        self.columns[task.stage].remove(task)
        self._reindex(task.stage)
        self.touch()
        self.events.emit("task_deleted", task=task)
        return task

    def move_to(self, task_id: TaskId, stage: Union[Stage, str], position: Optional[int] = None) -> Task:
        """Relocate a task, inserting at ``position`` (clamped) or at the end."""
        task = self.require(task_id)
        target = to_stage(stage)
        source = task.stage
        self.columns[source].remove(task)
        tasks = self.columns[target]
        index = len(tasks) if position is None else max(0, min(int(position), len(tasks)))
        tasks.insert(index, task)
        task.stage = target
        self._reindex(source)
        if target != source:
            self._reindex(target)
        self.touch()
        self.events.emit("task_moved", task=task, from_stage=source, to_stage=target)
        return task

    def change_progress(self, task_id: TaskId, delta: int) -> Task:
        """Step progress by ``delta`` and re-route the task by the stage policy.

        The policy runs even when the step is clamped at a bound, so a task
        that was dragged away from where its progress belongs is sent back.
        """
        task = self.require(task_id)
        changed = task.step_progress(delta)
        new_stage = derive_stage(task, delta)
        if changed:
            self.touch()
            self.events.emit("progress_changed", task=task, progress=task.progress)
        if new_stage != task.stage:
            self.move_to(task.id, new_stage)
        return task

    def drop(self, task_id: TaskId, stage: Union[Stage, str], pointer_y: float, boxes: Sequence[TaskBox]) -> Task:
        """Finish a drag: place the task by pointer position, bypassing the stage policy.

        ``boxes`` are the rendered bounds of the cards in the target column.
        Cards without a box (hidden by a filter) are not drop candidates.
        """
        task = self.require(task_id)
        target = to_stage(stage)
        others = [t for t in self.columns[target] if t.id != task.id]
        centers = {b.task_id: b.center for b in boxes}
        visible = [t for t in others if t.id in centers]
        index = insertion_index(pointer_y, [centers[t.id] for t in visible])
        position = len(others) if index == len(visible) else others.index(visible[index])
        return self.move_to(task.id, target, position)

    # -------------------- bulk --------------------
    def clear(self) -> None:
        for stage in STAGES:
            self.columns[stage] = []
        self.touch()
        self.events.emit("board_cleared")

    def replace(self, columns: Dict[Stage, List[Task]], last_updated: Optional[datetime] = None) -> None:
        """Swap in fully built stage lists (used by restore)."""
        for stage in STAGES:
            self.columns[stage] = list(columns.get(stage, []))
            for task in self.columns[stage]:
                task.stage = stage
            self._reindex(stage)
        self.sequence.advance_past(t.id for t in self.all_tasks())
        self.last_updated = last_updated or datetime.now(timezone.utc)
        self.events.emit("board_restored", board=self)

    def touch(self) -> None:
        self.last_updated = datetime.now(timezone.utc)

    def _reindex(self, stage: Stage) -> None:
        for index, task in enumerate(self.columns[stage]):
            task.position = index

    def __str__(self) -> str:
        return (f'Todo: {len(self.columns[Stage.TODO])} tasks, '
                f'In-Progress: {len(self.columns[Stage.IN_PROGRESS])} tasks, '
                f'Done: {len(self.columns[Stage.DONE])} tasks')
