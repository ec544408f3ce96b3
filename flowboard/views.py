"""
Search, filter and sort over board tasks.

    filter_tasks(board, search="api", priority="high", sort="dueDate")
    filter_tasks(board, column=ColumnId.TODO, due="overdue")
"""
from typing import List, Optional

from .dates import as_day, is_due_this_week, is_due_today, is_overdue
from .schema import Board, ColumnId, Priority, Task, PRIORITY_ORDER


DUE_FILTERS = ("all", "overdue", "today", "this-week", "no-date")
SORT_KEYS = ("created", "dueDate", "priority")


def _matches_search(task: Task, needle: str) -> bool:
    return (
        needle in task.title.lower()
        or needle in task.description.lower()
        or any(needle in tag for tag in task.tags)
    )


def _matches_due(task: Task, due: str, today) -> bool:
    if due == "overdue":
        return is_overdue(task.due_date, today)
    if due == "today":
        return is_due_today(task.due_date, today)
    if due == "this-week":
        return is_due_this_week(task.due_date, today)
    if due == "no-date":
        return task.due_date is None
    return True


def filter_tasks(board: Board, column: Optional[ColumnId] = None, search: str = "",
                 priority: str = "all", due: str = "all", tag: str = "",
                 sort: str = "created", today=None) -> List[Task]:
    """
    Select and order tasks.

    Args:
        column: restrict to one column (its display order is the base order)
        search: case-insensitive substring of title, description or a tag
        priority: "all" or a priority name
        due: one of DUE_FILTERS
        tag: exact tag
        sort: "created" (newest first), "dueDate" (soonest first, undated last)
              or "priority" (high first)

    Raises:
        ValueError: unknown priority, due filter or sort key
    """
    if due not in DUE_FILTERS:
        raise ValueError(f"Unknown due filter: {due}")
    if sort not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {sort}")
    wanted_priority = None if priority in ("", "all") else Priority(priority)

    day = as_day(today)
    tasks = board.tasks_in(ColumnId(column)) if column else board.all_tasks()
    needle = search.strip().lower()
    tag = tag.strip().lower()

    result = [
        t for t in tasks
        if (not needle or _matches_search(t, needle))
        and (wanted_priority is None or t.priority is wanted_priority)
        and _matches_due(t, due, day)
        and (not tag or tag in t.tags)
    ]

    if sort == "created":
        result.sort(key=lambda t: t.created_at, reverse=True)
    elif sort == "dueDate":
        result.sort(key=lambda t: (t.due_date is None, t.due_date or day))
    elif sort == "priority":
        result.sort(key=lambda t: PRIORITY_ORDER[t.priority])
    return result


def all_tags(board: Board) -> List[str]:
    """Every tag in use, sorted."""
    return sorted({tag for t in board.all_tasks() for tag in t.tags})
