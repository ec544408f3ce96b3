"""
Board schema: tasks, columns and the board that owns them.

Column lifecycle:
  To Do → In Progress → Done

"Done" is the terminal column: a task gets completed_at when it enters it
and loses it when it leaves. The three columns and their order are fixed;
only task membership and task fields change.
"""
import copy
import time
import uuid
from enum import Enum
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any, Iterable


class BoardIntegrityError(ValueError):
    """Raised when a board (usually a persisted one) breaks a structural invariant."""
    pass


class Priority(Enum):
    """Task priority levels."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_str(cls, value: str) -> "Priority":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MEDIUM


class ColumnId(Enum):
    """The three fixed board columns."""
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"

    @property
    def title(self) -> str:
        return COLUMN_TITLES[self]

    @property
    def is_terminal(self) -> bool:
        return self is TERMINAL_COLUMN


COLUMN_TITLES: Dict[ColumnId, str] = {
    ColumnId.TODO: "To Do",
    ColumnId.IN_PROGRESS: "In Progress",
    ColumnId.DONE: "Done",
}
COLUMN_ORDER = (ColumnId.TODO, ColumnId.IN_PROGRESS, ColumnId.DONE)
TERMINAL_COLUMN = ColumnId.DONE
PRIORITY_ORDER = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def make_task_id() -> str:
    """Generate a sortable unique task ID (ms-precision timestamp + random hex)."""
    ts = int(time.time() * 1000)
    rand = uuid.uuid4().hex[:8]
    return f"task-{ts}-{rand}"


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Lowercase, strip and de-duplicate tags, keeping first-seen order."""
    result: List[str] = []
    for tag in tags or []:
        cleaned = str(tag).strip().lower()
        if cleaned and cleaned not in result:
            result.append(cleaned)
    return result


def parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    # fromisoformat() only learned the "Z" suffix in 3.11
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class Task:
    """A single card on the board."""

    id: str
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    due_date: Optional[date] = None
    tags: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    column_id: ColumnId = ColumnId.TODO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "tags": list(self.tags),
            "createdAt": self.created_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "columnId": self.column_id.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Deserialize from dict. Raises KeyError/ValueError on malformed input."""
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            description=data.get("description") or "",
            priority=Priority.from_str(data.get("priority", "medium")),
            due_date=parse_date(data.get("dueDate")),
            tags=normalize_tags(data.get("tags", [])),
            created_at=parse_timestamp(data.get("createdAt")) or utc_now(),
            completed_at=parse_timestamp(data.get("completedAt")),
            column_id=ColumnId(data["columnId"]),
        )


@dataclass
class Column:
    """One board column and the display order of its tasks."""

    id: ColumnId
    title: str
    task_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id.value, "title": self.title, "taskIds": list(self.task_ids)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        column_id = ColumnId(data["id"])
        return cls(
            id=column_id,
            title=data.get("title") or column_id.title,
            task_ids=[str(tid) for tid in data.get("taskIds", [])],
        )


@dataclass
class Board:
    """Full board state: task records, columns and the fixed column order."""

    tasks: Dict[str, Task] = field(default_factory=dict)
    columns: Dict[ColumnId, Column] = field(default_factory=dict)
    column_order: List[ColumnId] = field(default_factory=lambda: list(COLUMN_ORDER))

    @classmethod
    def empty(cls) -> "Board":
        return cls(
            tasks={},
            columns={cid: Column(id=cid, title=cid.title) for cid in COLUMN_ORDER},
            column_order=list(COLUMN_ORDER),
        )

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> "Board":
        """Build a board whose column lists follow the given task order."""
        board = cls.empty()
        for task in tasks:
            board.tasks[task.id] = task
            board.columns[task.column_id].task_ids.append(task.id)
        return board

    # -------------------- queries --------------------

    def all_tasks(self) -> List[Task]:
        """All tasks in record (insertion) order."""
        return list(self.tasks.values())

    def tasks_in(self, column_id: ColumnId) -> List[Task]:
        """Tasks of one column in display order."""
        return [self.tasks[tid] for tid in self.columns[column_id].task_ids if tid in self.tasks]

    def get(self, task_id: str) -> Optional[Task]:
        return self.tasks.get(task_id)

    def index_of(self, task_id: str) -> int:
        task = self.tasks.get(task_id)
        if task is None:
            return -1
        return self.columns[task.column_id].task_ids.index(task_id)

    def copy(self) -> "Board":
        return copy.deepcopy(self)

    # -------------------- integrity --------------------

    def validate(self) -> None:
        """Check the structural invariants; raise BoardIntegrityError on the first violation."""
        if list(self.column_order) != list(COLUMN_ORDER):
            raise BoardIntegrityError(f"Unexpected column order: {self.column_order}")
        if set(self.columns) != set(COLUMN_ORDER):
            raise BoardIntegrityError(f"Unexpected columns: {sorted(c.value for c in self.columns)}")

        seen: Dict[str, ColumnId] = {}
        for column_id, column in self.columns.items():
            if column.id != column_id:
                raise BoardIntegrityError(f"Column keyed {column_id.value} has id {column.id.value}")
            for tid in column.task_ids:
                if tid in seen:
                    raise BoardIntegrityError(f"Task {tid} listed in more than one column")
                task = self.tasks.get(tid)
                if task is None:
                    raise BoardIntegrityError(f"Column {column_id.value} lists unknown task {tid}")
                if task.column_id != column_id:
                    raise BoardIntegrityError(
                        f"Task {tid} claims column {task.column_id.value} but sits in {column_id.value}"
                    )
                seen[tid] = column_id

        orphans = set(self.tasks) - set(seen)
        if orphans:
            raise BoardIntegrityError(f"Tasks not in any column: {sorted(orphans)}")
        for tid, task in self.tasks.items():
            if task.id != tid:
                raise BoardIntegrityError(f"Task keyed {tid} has id {task.id}")

    # -------------------- serialization --------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tasks": {tid: task.to_dict() for tid, task in self.tasks.items()},
            "columns": {cid.value: col.to_dict() for cid, col in self.columns.items()},
            "columnOrder": [cid.value for cid in self.column_order],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Board":
        """Deserialize and validate. Raises BoardIntegrityError on any malformed input."""
        try:
            tasks = {str(tid): Task.from_dict(raw) for tid, raw in data["tasks"].items()}
            columns = {ColumnId(cid): Column.from_dict(raw) for cid, raw in data["columns"].items()}
            column_order = [ColumnId(cid) for cid in data.get("columnOrder", [c.value for c in COLUMN_ORDER])]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise BoardIntegrityError(f"Malformed board data: {e}") from e

        board = cls(tasks=tasks, columns=columns, column_order=column_order)
        board.validate()
        return board
