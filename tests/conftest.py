"""Shared test fixtures for FlowBoard tests."""

import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

# Ensure the repo root and the bots directory are importable
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "bots"))

from flowboard.schema import Board, ColumnId, Priority, Task
from flowboard.store import BoardStore

# Wednesday
TODAY = date(2025, 3, 12)
NOW = datetime(2025, 3, 12, 9, 30, tzinfo=timezone.utc)


def make_task(task_id, title, column=ColumnId.TODO, priority=Priority.MEDIUM,
              due=None, tags=None, description="", created=None, completed=None):
    """Build a Task with sensible defaults for tests."""
    return Task(
        id=task_id,
        title=title,
        description=description,
        priority=priority,
        due_date=due,
        tags=list(tags or []),
        created_at=created or NOW,
        completed_at=completed if completed else (NOW if column is ColumnId.DONE else None),
        column_id=column,
    )


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def empty_board():
    return Board.empty()


@pytest.fixture
def sample_board():
    """Small hand-built board: two todo, one in progress, one done."""
    return Board.from_tasks([
        make_task("t1", "Fix login bug", priority=Priority.HIGH, tags=["frontend", "urgent"],
                  due=date(2025, 3, 10)),
        make_task("t2", "Write API docs", priority=Priority.LOW, tags=["docs"]),
        make_task("t3", "Refactor billing module", column=ColumnId.IN_PROGRESS,
                  due=date(2025, 3, 14), tags=["backend"]),
        make_task("t4", "Release v1.2", column=ColumnId.DONE, priority=Priority.HIGH),
    ])


@pytest.fixture
def store(sample_board):
    """In-memory store over sample_board with a pinned clock."""
    return BoardStore(board=sample_board, autosave_delay=None, clock=lambda: NOW)
