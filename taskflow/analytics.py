"""
Board statistics and filtering, as shown in the analytics panel and search box.
"""
from datetime import date
from typing import Dict, List, Any, Optional

from .board import Board, STAGES
from .schema import Task, Priority, Category


def completion_rate(done: int, total: int) -> int:
    """Whole-number percentage of tasks in Done; 0 on an empty board."""
    if total == 0:
        return 0
    return round(done / total * 100)


def board_stats(board: Board, today: Optional[date] = None) -> Dict[str, Any]:
    tasks = board.all_tasks()
    by_stage = board.counts()
    by_priority = {p.value: 0 for p in Priority}
    by_category = {c.value: 0 for c in Category}
    for task in tasks:
        by_priority[task.priority.value] += 1
        by_category[task.category.value] += 1

    total = len(tasks)
    return {
        "total": total,
        "by_stage": by_stage,
        "by_priority": by_priority,
        "by_category": by_category,
        "completion_rate": completion_rate(by_stage["done"], total),
        "overdue": sum(1 for t in tasks if t.is_overdue(today)),
        "average_progress": round(sum(t.progress for t in tasks) / total) if total else 0,
    }


def matches(task: Task, query: str) -> bool:
    """Text contains the query, or the category is exactly the query (case-insensitive)."""
    needle = query.strip().lower()
    if not needle:
        return True
    return needle in task.text.lower() or task.category.value == needle


def filter_tasks(board: Board, query: str) -> Dict[str, List[Task]]:
    """Tasks per stage that match ``query``, in board order."""
    return {
        stage.value: [t for t in board.columns[stage] if matches(t, query or "")]
        for stage in STAGES
    }
