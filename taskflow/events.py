"""
Event bus: lets UI, chart and sound collaborators react to board changes.

The engine emits events (task_created, task_moved, progress_changed,
timer_completed, ...) and never depends on who listens. A failing subscriber
is logged and skipped so it cannot break the operation that emitted.
"""
import logging
from typing import Dict, List, Callable

logger = logging.getLogger(__name__)

EVENT_TYPES = (
    "task_created",
    "task_updated",
    "task_moved",
    "task_deleted",
    "progress_changed",
    "timer_started",
    "timer_paused",
    "timer_completed",
    "board_restored",
    "board_cleared",
)


class BoardEvents:
    """Routes board events to subscribed callbacks."""

    def __init__(self):
        self.subscribers: Dict[str, List[Callable]] = {}  # event_type -> callbacks

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """Register a callback for an event type."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")
        self.subscribers.setdefault(event_type, []).append(callback)

    def unsubscribe(self, event_type: str, callback: Callable) -> None:
        callbacks = self.subscribers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event_type: str, **kwargs) -> None:
        """Emit an event to all subscribers."""
        for callback in list(self.subscribers.get(event_type, [])):
            try:
                callback(**kwargs)
            except Exception:
                logger.exception("Error in %s callback", event_type)
