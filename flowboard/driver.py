"""
Conversation driver: user text → classifier → board store → reply.

Keeps a bounded transcript of the conversation so surfaces can show
recent history.
"""
import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, List, Optional

from .actions import Action, ChatResponse, CreateAction, DeleteAction, MoveAction, UpdateAction
from .intents import process_message
from .schema import utc_now
from .store import BoardStore

logger = logging.getLogger(__name__)


TRANSCRIPT_LIMIT = 200

WELCOME_TEXT = (
    "Hi! 👋 I'm your FlowBoard assistant. I can **create, edit, move, and delete tasks** "
    "for you and help you stay productive!\n\n"
    "Try me:\n"
    "• \"Create task: Fix login bug\"\n"
    "• \"Move Design homepage to done\"\n"
    "• \"What should I focus on?\"\n"
    "• Type **\"help\"** to see all commands"
)


@dataclass
class ChatMessage:
    role: str  # "user" | "assistant"
    content: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


def apply_action(store: BoardStore, action: Action) -> Optional[str]:
    """
    Apply a classifier action to the store.

    Moves go to the end of the destination column. Returns the new task id
    for creates, the affected task id otherwise.
    """
    if isinstance(action, CreateAction):
        return store.create(
            action.column_id, action.title, action.description,
            action.priority, action.due_date, action.tags,
        )
    if isinstance(action, UpdateAction):
        store.update(action.task_id, dict(action.changes))
        return action.task_id
    if isinstance(action, DeleteAction):
        store.delete(action.task_id)
        return action.task_id
    if isinstance(action, MoveAction):
        dest_index = len(store.board.columns[action.dest_column].task_ids)
        store.move(action.task_id, action.source_column, action.dest_column, dest_index)
        return action.task_id
    raise TypeError(f"Unknown action type: {type(action).__name__}")


class ConversationDriver:
    """Feeds chat messages through the classifier and applies the resulting actions."""

    def __init__(self, store: BoardStore, today=None, rng: Optional[random.Random] = None,
                 transcript_limit: int = TRANSCRIPT_LIMIT):
        self.store = store
        self.today = today
        self.rng = rng
        self.transcript_limit = transcript_limit
        self.transcript: List[ChatMessage] = [ChatMessage("assistant", WELCOME_TEXT)]
        self.last_task_id: Optional[str] = None

    def handle(self, text: str) -> ChatResponse:
        """Process one user message and return the reply (its action already applied)."""
        # Classify and apply against the same board; the transcript shares the lock
        with self.store.lock:
            self._record("user", text.strip())
            response = process_message(text, self.store.board, today=self.today, rng=self.rng)
            self.last_task_id = None
            if response.action is not None:
                self.last_task_id = apply_action(self.store, response.action)
                logger.info(f"Applied {type(response.action).__name__} from intent {response.intent.value}")
            self._record("assistant", response.text)
            return response

    def _record(self, role: str, content: str):
        self.transcript.append(ChatMessage(role, content))
        if len(self.transcript) > self.transcript_limit:
            del self.transcript[:-self.transcript_limit]
