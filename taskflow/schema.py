"""
Task schema for the board.

Task lifecycle:
  todo → in_progress → done

Stage placement follows progress (see policy.py) unless a drag overrides it.
Only the stable fields (id, text, priority, dueDate, category, progress) are
persisted; stage comes from the list a record sits in and position from its
order in that list.
"""
import math
from enum import Enum
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Dict, Any, Union

from .errors import ValidationError, ImportFormatError


PROGRESS_STEP = 10
PROGRESS_MIN = 0
PROGRESS_MAX = 100

TaskId = Union[int, str]


class Stage(Enum):
    """The three board columns, in display order."""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @classmethod
    def from_str(cls, value: str, default: Optional["Stage"] = None) -> Optional["Stage"]:
        """Parse a stage key, including the column ids of older saves."""
        key = str(value or "").strip().lower().replace("-", "_")
        aliases = {"to_do": "todo", "inprogress": "in_progress", "doing": "in_progress"}
        key = aliases.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return default


class Priority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_str(cls, value: str) -> "Priority":
        try:
            return cls[str(value).upper()]
        except KeyError:
            return cls.MEDIUM


class Category(Enum):
    WORK = "work"
    PERSONAL = "personal"
    STUDY = "study"
    HEALTH = "health"
    OTHER = "other"

    @classmethod
    def from_str(cls, value: str) -> "Category":
        try:
            return cls[str(value).upper()]
        except KeyError:
            return cls.OTHER


def clamp_progress(value: Union[int, float]) -> int:
    """Snap a progress value to the nearest 10 and clamp it to [0, 100]."""
    snapped = int(math.floor(value / PROGRESS_STEP + 0.5)) * PROGRESS_STEP
    return max(PROGRESS_MIN, min(PROGRESS_MAX, snapped))


def parse_due_date(value: Any) -> Optional[date]:
    """Parse a due date. Empty → None; raises ValueError when unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


@dataclass
class TimerState:
    """Countdown attached to a task."""
    duration_seconds: int
    remaining_seconds: int
    running: bool = False
    completed: bool = False

    def display(self) -> str:
        minutes, seconds = divmod(max(self.remaining_seconds, 0), 60)
        return f"{minutes:02d}:{seconds:02d}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "duration_seconds": self.duration_seconds,
            "remaining_seconds": self.remaining_seconds,
            "running": self.running,
            "completed": self.completed,
            "display": self.display(),
        }


@dataclass
class Task:
    """A single unit of work on the board."""

    id: TaskId
    text: str

    # Classification
    priority: Priority = Priority.MEDIUM
    category: Category = Category.OTHER
    due_date: Optional[date] = None

    # Placement
    progress: int = 0
    stage: Stage = Stage.TODO
    position: int = 0

    timer: Optional[TimerState] = field(default=None, repr=False)

    def __post_init__(self):
        if not isinstance(self.text, str) or not self.text.strip():
            raise ValidationError("Task text must not be empty")
        self.progress = clamp_progress(self.progress)

    # ── Mutators: return True when the task changed ──

    def edit_text(self, text: str) -> bool:
        """Replace the description. Blank text is ignored."""
        if not isinstance(text, str) or not text.strip() or text == self.text:
            return False
        self.text = text
        return True

    def set_priority(self, priority: Union[Priority, str]) -> bool:
        if not isinstance(priority, Priority):
            try:
                priority = Priority(str(priority).lower())
            except ValueError:
                return False
        if priority == self.priority:
            return False
        self.priority = priority
        return True

    def set_category(self, category: Union[Category, str]) -> bool:
        if not isinstance(category, Category):
            try:
                category = Category(str(category).lower())
            except ValueError:
                return False
        if category == self.category:
            return False
        self.category = category
        return True

    def set_due_date(self, value: Any) -> bool:
        try:
            due = parse_due_date(value)
        except ValueError:
            return False
        if due == self.due_date:
            return False
        self.due_date = due
        return True

    def step_progress(self, delta: int) -> bool:
        """Apply a ±10 step. Returns False when the value is already at a bound."""
        if isinstance(delta, bool) or delta not in (PROGRESS_STEP, -PROGRESS_STEP):
            raise ValidationError(f"Progress changes by +{PROGRESS_STEP} or -{PROGRESS_STEP}, got {delta}")
        new_progress = max(PROGRESS_MIN, min(PROGRESS_MAX, self.progress + delta))
        if new_progress == self.progress:
            return False
        self.progress = new_progress
        return True

    # ── Derived ──

    def is_overdue(self, today: Optional[date] = None) -> bool:
        """True if the due date is strictly before today (time of day ignored)."""
        if self.due_date is None:
            return False
        return self.due_date < (today or date.today())

    # ── Serialization ──

    def to_record(self) -> Dict[str, Any]:
        """Stable fields only, as stored in a snapshot."""
        return {
            "id": self.id,
            "text": self.text,
            "priority": self.priority.value,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "category": self.category.value,
            "progress": self.progress,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Full view for API responses."""
        data = self.to_record()
        data.update({
            "stage": self.stage.value,
            "position": self.position,
            "overdue": self.is_overdue(),
            "timer": self.timer.to_dict() if self.timer else None,
        })
        return data

    @classmethod
    def from_record(cls, data: Dict[str, Any], stage: Stage) -> "Task":
        """Build a task from a snapshot record. Raises ImportFormatError."""
        if not isinstance(data, dict):
            raise ImportFormatError(f"Task record must be an object, got {type(data).__name__}")

        text = data.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ImportFormatError("Task record has no text")

        raw_progress = data.get("progress", 0)
        if raw_progress is None or raw_progress == "":
            raw_progress = 0
        try:
            progress = clamp_progress(float(raw_progress))
        except (TypeError, ValueError, OverflowError):
            raise ImportFormatError(f"Invalid progress {raw_progress!r} for task {text!r}")

        try:
            due_date = parse_due_date(data.get("dueDate"))
        except ValueError:
            raise ImportFormatError(f"Invalid due date {data.get('dueDate')!r} for task {text!r}")

        task_id = data.get("id")
        if isinstance(task_id, str):
            task_id = task_id.strip()
            if task_id.isdigit():
                task_id = int(task_id)
            elif not task_id:
                task_id = None
        elif isinstance(task_id, bool) or not isinstance(task_id, (int, str)):
            task_id = None

        return cls(
            id=task_id,
            text=text,
            priority=Priority.from_str(data.get("priority", "medium")),
            category=Category.from_str(data.get("category", "other")),
            due_date=due_date,
            progress=progress,
            stage=stage,
        )
