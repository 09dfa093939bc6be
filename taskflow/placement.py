"""
Drop-index search for drag reordering.

While a task is dragged over a column, the pointer's vertical coordinate is
compared with the vertical centre of every other task in that column. The
dragged task lands immediately before the first task whose centre is below
the pointer (the negative offset closest to zero), or at the end if there is
none. The result is always a valid index into the remaining tasks.
"""
from dataclasses import dataclass
from typing import Sequence, Optional, List

from .schema import TaskId


@dataclass(frozen=True)
class TaskBox:
    """Rendered bounds of a task card, as reported by the UI."""
    task_id: TaskId
    top: float
    height: float

    @property
    def center(self) -> float:
        return self.top + self.height / 2


def insertion_index(pointer_y: float, centers: Sequence[float]) -> int:
    """Index to insert at, given candidate centres in list order."""
    best_index: Optional[int] = None
    best_offset = float("-inf")
    for index, center in enumerate(centers):
        offset = pointer_y - center
        if offset < 0 and offset > best_offset:
            best_offset = offset
            best_index = index
    return len(centers) if best_index is None else best_index


def drop_index(pointer_y: float, boxes: Sequence[TaskBox], dragged_id: TaskId) -> int:
    """Insertion index among ``boxes`` once the dragged task is left out."""
    others: List[TaskBox] = [b for b in boxes if b.task_id != dragged_id]
    return insertion_index(pointer_y, [b.center for b in others])
