"""
Actions emitted by the intent classifier, and the reply envelope.

An action is a structured instruction for the caller to apply to the
board store. The union is closed: Create, Update, Delete, Move.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, List, Dict, Any, Union

from .schema import ColumnId, Priority


class Intent(Enum):
    """Which classifier branch produced a reply."""
    TAG_ADD = "tag_add"
    TAG_REMOVE = "tag_remove"
    CREATE = "create"
    MOVE = "move"
    EDIT = "edit"
    DELETE = "delete"
    GREETING = "greeting"
    HELP = "help"
    SUMMARY = "summary"
    OVERDUE = "overdue"
    PRIORITIZE = "prioritize"
    WORKLOAD = "workload"
    TAGS = "tags"
    LIST = "list"
    TIPS = "tips"
    STATS = "stats"
    THANKS = "thanks"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class CreateAction:
    column_id: ColumnId
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    due_date: Optional[date] = None
    tags: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class UpdateAction:
    """Partial update; `changes` keys are Task field names."""
    task_id: str
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteAction:
    task_id: str


@dataclass(frozen=True)
class MoveAction:
    """Move to the end of dest_column; the caller picks the index."""
    task_id: str
    source_column: ColumnId
    dest_column: ColumnId


Action = Union[CreateAction, UpdateAction, DeleteAction, MoveAction]


@dataclass(frozen=True)
class ChatResponse:
    text: str
    action: Optional[Action] = None
    intent: Intent = Intent.FALLBACK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "intent": self.intent.value,
            "action": action_to_dict(self.action) if self.action else None,
        }


def action_to_dict(action: Action) -> Dict[str, Any]:
    """JSON-friendly rendering of an action (used by the HTTP API and the audit log)."""
    if isinstance(action, CreateAction):
        return {
            "type": "create",
            "columnId": action.column_id.value,
            "title": action.title,
            "description": action.description,
            "priority": action.priority.value,
            "dueDate": action.due_date.isoformat() if action.due_date else None,
            "tags": list(action.tags),
        }
    if isinstance(action, UpdateAction):
        changes = {}
        for key, value in action.changes.items():
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, date):
                value = value.isoformat()
            changes[key] = value
        return {"type": "update", "taskId": action.task_id, "changes": changes}
    if isinstance(action, DeleteAction):
        return {"type": "delete", "taskId": action.task_id}
    if isinstance(action, MoveAction):
        return {
            "type": "move",
            "taskId": action.task_id,
            "sourceColumn": action.source_column.value,
            "destColumn": action.dest_column.value,
        }
    raise TypeError(f"Unknown action type: {type(action).__name__}")
