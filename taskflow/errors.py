"""
Error taxonomy for the board engine.

None of these is fatal: every one is raised at an operation boundary with the
board left exactly as it was before the call.
"""


class TaskflowError(Exception):
    """Base class for all engine errors."""
    pass


class ValidationError(TaskflowError):
    """Raised when user input fails validation (e.g. empty task text)."""
    pass


class NotFoundError(TaskflowError):
    """Raised when an operation names a task id that is not on the board."""

    def __init__(self, task_id):
        super().__init__(f"Task {task_id!r} not found")
        self.task_id = task_id


class ImportFormatError(TaskflowError):
    """Raised when a snapshot or import document cannot be parsed."""
    pass


class StorageUnavailableError(TaskflowError):
    """Raised when the persistence collaborator cannot be read or written."""
    pass
