"""
Sample board installed on first run, on unreadable storage and on reset.

Due dates and timestamps are relative to the moment the board is built,
so the sample always has one overdue task and a spread of upcoming ones.
"""
from datetime import date, datetime, timedelta
from typing import Optional

from .schema import Board, ColumnId, Priority, Task, make_task_id, utc_now


# (title, description, priority, due in days or None, tags, created days ago, column)
SAMPLE_TASKS = [
    ("Design homepage mockup",
     "Create wireframes and high-fidelity mockups for the new landing page redesign.",
     Priority.HIGH, 2, ["design", "ui"], 3, ColumnId.TODO),
    ("Set up CI/CD pipeline",
     "Configure GitHub Actions for automated testing and deployment.",
     Priority.MEDIUM, 5, ["devops", "backend"], 2, ColumnId.TODO),
    ("Write API documentation",
     "Document all REST API endpoints with request/response examples.",
     Priority.LOW, 7, ["docs"], 1, ColumnId.TODO),
    ("Implement user authentication",
     "Build login/signup flow with OAuth and JWT tokens.",
     Priority.HIGH, 1, ["backend", "security"], 5, ColumnId.IN_PROGRESS),
    ("Optimize database queries",
     "Review and optimize slow SQL queries identified in performance monitoring.",
     Priority.MEDIUM, -1, ["backend", "performance"], 4, ColumnId.IN_PROGRESS),
    ("Setup project repository",
     "Initialize repo with proper folder structure, linting, and README.",
     Priority.HIGH, None, ["devops"], 10, ColumnId.DONE),
]

# The sample "done" task was completed this many days ago
SAMPLE_COMPLETED_DAYS_AGO = 7


def build_seed_board(now: Optional[datetime] = None, today: Optional[date] = None) -> Board:
    """Build the sample board with fresh task ids."""
    now = now or utc_now()
    today = today or date.today()

    tasks = []
    for title, description, priority, due_in, tags, age, column in SAMPLE_TASKS:
        tasks.append(Task(
            id=make_task_id(),
            title=title,
            description=description,
            priority=priority,
            due_date=today + timedelta(days=due_in) if due_in is not None else None,
            tags=list(tags),
            created_at=now - timedelta(days=age),
            completed_at=now - timedelta(days=SAMPLE_COMPLETED_DAYS_AGO) if column.is_terminal else None,
            column_id=column,
        ))
    return Board.from_tasks(tasks)
