"""
Progress-driven stage transitions.

Rules (evaluated after every progress step):
  progress == 0        → todo
  0 < progress < 100   → in_progress, but only when coming from todo
  progress == 100      → done

A manual drag sets the stage directly and bypasses these rules. The next
progress step re-applies them, so a drag and a progress edit are two writers
of the same field and the last one wins.
"""
from .schema import Task, Stage, PROGRESS_MIN, PROGRESS_MAX


def derive_stage(task: Task, progress_delta: int = 0) -> Stage:
    """Return the stage ``task`` should occupy given its (already updated) progress.

    ``progress_delta`` is the step that produced the current value. It does not
    change the outcome; the rules depend only on the resulting progress and the
    stage the task is in now.
    """
    if task.progress <= PROGRESS_MIN:
        return Stage.TODO
    if task.progress >= PROGRESS_MAX:
        return Stage.DONE
    if task.stage == Stage.TODO:
        return Stage.IN_PROGRESS
    # In progress stays put; a done task is not pulled backward.
    return task.stage
