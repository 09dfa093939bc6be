"""
Task id sequence.

Ids come from a monotonically increasing counter whose cursor is persisted
alongside the board (store key "taskCounter"), so ids are never reused across
sessions. The sequence is injected into the board rather than kept as module
state, which lets tests scope or reset it.
"""
from typing import Iterable, Any


class TaskIdSequence:
    """Hands out integer task ids starting at ``cursor``."""

    def __init__(self, cursor: int = 1):
        self._cursor = max(int(cursor), 1)

    @property
    def cursor(self) -> int:
        """The next id that will be handed out."""
        return self._cursor

    def next_id(self) -> int:
        task_id = self._cursor
        self._cursor += 1
        return task_id

    def advance_past(self, ids: Iterable[Any]) -> None:
        """Move the cursor beyond every integer id given. Never moves it back."""
        highest = max((i for i in ids if isinstance(i, int) and not isinstance(i, bool)), default=0)
        if highest >= self._cursor:
            self._cursor = highest + 1

    @classmethod
    def from_stored(cls, raw) -> "TaskIdSequence":
        """Build from a persisted cursor value; missing or garbage starts at 1."""
        try:
            return cls(int(raw))
        except (TypeError, ValueError):
            return cls()
