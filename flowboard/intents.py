"""
Intent classifier and action builder for the chat interface.

process_message(message, board) inspects one free-text message against a
board snapshot and returns a ChatResponse: reply text plus, for the four
mutating intents, an Action for the caller to apply to the BoardStore.

Categories are checked in a fixed order and only the first match is handled:

  tag add → tag remove → create → move/complete/start → field edit → delete
  → greeting → help → summary → overdue → prioritize → workload → tags
  → list → tips → stats → thanks → default help

The classifier is rule-based (regex + heuristics), never mutates the board
and never raises: anything unrecognized degrades to the default help text.
"""
import logging
import random
import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional

from . import insights
from .actions import (
    ChatResponse, CreateAction, DeleteAction, Intent, MoveAction, UpdateAction,
)
from .dates import as_day, resolve_date
from .insights import PRIORITY_EMOJI, BoardSnapshot
from .matcher import Ambiguous, NotFound, Resolved, match_task
from .resolvers import resolve_column, resolve_priority
from .schema import Board, ColumnId, Priority, Task, normalize_tags

logger = logging.getLogger(__name__)


NOT_FOUND_LIST_LIMIT = 8

# ── normalization ─────────────────────────────────────────────────────────

_PREAMBLE = re.compile(
    r"^(please\s+|can\s+you\s+|could\s+you\s+|would\s+you\s+|i\s+want\s+to\s+|"
    r"i'd\s+like\s+to\s+|i\s+need\s+to\s+|i\s+want\s+you\s+to\s+)",
    re.IGNORECASE,
)
_TRAILING_QUESTION = re.compile(r"\?+$")

# ── keyword clauses used by create ────────────────────────────────────────

_COLUMN_CLAUSE = (
    r"in\s+(?:the\s+)?(?:to[\s-]?do|backlog|doing|done|completed|in[\s-]?progress)"
    r"|in[\s-]progress"
)


def _boundary(*keywords: str) -> str:
    """Lookahead-free clause terminator: a following keyword clause or end of text."""
    alternatives = "|".join(list(keywords) + [_COLUMN_CLAUSE])
    return rf"(?:\s+(?:{alternatives})\b|$)"


_TITLE_END = _boundary("with", "priority", "due", "by", "tags?", "tagged", "description", "desc")
_DUE_END = _boundary("with", "priority", "tags?", "tagged", "description", "desc")
_TAGS_END = _boundary("with", "priority", "due", "by", "description", "desc")

_QUOTED = re.compile(r"[\"']([^\"']+)[\"']")
_CALLED = re.compile(rf"\b(?:called|titled|named)\s+(.+?){_TITLE_END}", re.IGNORECASE)
_COLON_TITLE = re.compile(rf"\b(?:task|item|card)\s*:\s*(.+?){_TITLE_END}", re.IGNORECASE)
_NOUN_TITLE = re.compile(rf"\b(?:task|item|card)\s+(.+?){_TITLE_END}", re.IGNORECASE)
_DIRECT_TITLE = re.compile(
    rf"^(?:create|add|make|new)\s+(?:a\s+|an\s+)?(?:(?:high|medium|low)[\s-]?(?:priority\s+)?)?(.+?){_TITLE_END}",
    re.IGNORECASE,
)
_LEADING_ARTICLE = re.compile(r"^(a|an|the)\s+", re.IGNORECASE)
_LEADING_NAMING = re.compile(r"^(called|titled|named)\s+", re.IGNORECASE)
_LEADING_NOUN = re.compile(r"^(task|item|card)\b\s*", re.IGNORECASE)
_DUE_CLAUSE = re.compile(rf"\b(?:due|by|deadline)\s+(.+?){_DUE_END}", re.IGNORECASE)
_TAGS_CLAUSE = re.compile(rf"\b(?:tags?|tagged|labels?)\b\s*:?\s*(.+?){_TAGS_END}", re.IGNORECASE)
_DESC_CLAUSE = re.compile(r"\b(?:description|desc|details)\b\s*:?\s*(.+?)$", re.IGNORECASE)
_TITLE_LEAK = re.compile(
    rf"\s+(?:with|priority|due|by|tags?|tagged|{_COLUMN_CLAUSE}|description|desc)\b.*$",
    re.IGNORECASE,
)
_SURROUNDING_QUOTES = re.compile(r"^[\"']|[\"']$")
_TAG_SPLIT = re.compile(r"[,;&]+")

# ── triggers ──────────────────────────────────────────────────────────────

_TAG_ADD = re.compile(r"^add\s+(a\s+)?tags?\b|^tag\s")
_TAG_ADD_PARTS = re.compile(
    r"(?:add\s+(?:a\s+)?tags?\s+|tag\s+)(.+?)(?:\s+to\s+|\s+on\s+|\s+for\s+)(.+)", re.IGNORECASE
)
_TAG_REMOVE = re.compile(r"^remove\s+(a\s+)?tags?\b|^untag\s")
_TAG_REMOVE_PARTS = re.compile(
    r"(?:remove\s+(?:a\s+)?tags?\s+|untag\s+)(.+?)(?:\s+from\s+|\s+on\s+)(.+)", re.IGNORECASE
)
_CREATE = re.compile(r"^(create|add|make|new)\s|^(create|add)\s*$|^new task$")
_QUESTION = re.compile(r"^(how|what|when|where|why|can i)\s")
_MOVE = re.compile(r"^(move|complete|finish|done\s+with|mark|start|begin)")
_MOVE_TO_DONE = re.compile(r"^(complete|finish|done\s+with)|mark.*(?:as\s+)?(?:done|complete)")
_MOVE_TO_PROGRESS = re.compile(r"^(start|begin)")
_MOVE_DEST_TAIL = re.compile(r".*\b(?:to|into|as)\s+(.+)$")
_EDIT = re.compile(r"^(change|set|update|edit|modify|rename|retitle)")
_DELETE = re.compile(r"^(delete|remove|trash|discard|drop)\s")

_FIELD_RULES = [
    ("priority", re.compile(r"\b(priority|pri)\b")),
    ("title", re.compile(r"^(rename|retitle)|\b(title|name)\b")),
    ("due_date", re.compile(r"\b(due|deadline|date)\b")),
    ("description", re.compile(r"\b(description|desc|details)\b")),
]
_NEW_TITLE = re.compile(r"\b(?:to|as)\s+[\"']?(.+?)[\"']?\s*$", re.IGNORECASE)
_NEW_DUE = re.compile(r"(?:\bto|=)\s+(.+?)$", re.IGNORECASE)
_NEW_DUE_KEYWORD = re.compile(r"\b(?:due|deadline|date)\s+(?:to\s+|=\s+)?(.+?)$", re.IGNORECASE)
_CLEAR_DUE = re.compile(r"^(none|clear|remove|no date|unset|null)$", re.IGNORECASE)
_NEW_DESC = re.compile(r"(?:\bto|=)\s+[\"']?(.+?)[\"']?\s*$", re.IGNORECASE)
_NEW_DESC_KEYWORD = re.compile(
    r"\b(?:description|desc|details)\s+(?:of\s+.+?\s+)?(?:to\s+)?[\"']?(.+?)[\"']?\s*$", re.IGNORECASE
)

_GREETING = re.compile(r"^(hi|hello|hey|howdy|greetings|sup|yo)\b|^good\s")
_HELP = re.compile(r"(what can you|help|commands|capabilities|how do|what do you|features)")
_SUMMARY = re.compile(r"(summary|overview|status|how.*(board|doing|look)|what.*going)")
_OVERDUE = re.compile(r"(overdue|late|behind|missed|past.due)")
_PRIORITIZE = re.compile(r"(priorit|focus|what.*should|suggest|recommend|important|urgent)")
_WORKLOAD = re.compile(r"(workload|busy|capacity|how much|load)")
_TAG_REPORT = re.compile(r"(show.*tag|tag.*distribut|categor|label|group|list.*tag)")
_LIST = re.compile(
    r"(list|show|display)\s+(all\s+|my\s+)*tasks?|what\s+tasks?\s+do\s+i\s+have|^(my\s+)?tasks$"
)
_TIPS = re.compile(r"(tip|advice|productiv|efficien)")
_STATS = re.compile(r"(stat|number|metric|count|data|analytic)")
_THANKS = re.compile(r"(thank|thanks|thx|appreciate)")

# ── canned replies ────────────────────────────────────────────────────────

CREATE_HELP = (
    "I'd be happy to create a task! Please provide a title. Here are some examples:\n\n"
    "• **\"Create task: Fix the login bug\"**\n"
    "• **\"Add a task called Review PR\"**\n"
    "• **\"Create a high priority task 'Deploy v2' due tomorrow\"**\n"
    "• **\"New task Design homepage with tags design, ui\"**\n"
    "• **\"Add task Set up CI/CD in progress\"**"
)
CREATE_NO_TITLE = (
    "I couldn't determine the task title. Please try again with a clearer format, like:\n\n"
    "• **\"Create task: Fix the login bug\"**"
)
TAG_ADD_HELP = (
    "To add tags, say:\n"
    "• **\"Add tag frontend to [task name]\"**\n"
    "• **\"Add tags design, ui to [task name]\"**"
)
TAG_REMOVE_HELP = (
    "To remove tags, say:\n"
    "• **\"Remove tag frontend from [task name]\"**\n"
    "• **\"Remove tags design, ui from [task name]\"**"
)
MOVE_WHERE = (
    "Where should I move the task? Options:\n"
    "• **To Do**\n• **In Progress**\n• **Done**\n\n"
    "Example: **\"Move [task name] to In Progress\"**"
)
EDIT_MENU = (
    "What would you like to edit? I can change:\n\n"
    "• **Priority**: \"Change priority of [task] to high\"\n"
    "• **Title**: \"Rename [task] to [new name]\"\n"
    "• **Due date**: \"Set due date of [task] to tomorrow\"\n"
    "• **Description**: \"Set description of [task] to [text]\"\n"
    "• **Tags**: \"Add tag frontend to [task]\""
)
DATE_HELP = (
    "Try:\n"
    "• **tomorrow**, **next week**, **next friday**\n"
    "• **in 3 days**, **in 2 weeks**\n"
    "• **2025-01-15**"
)
GREETING_TEXT = (
    "Hello! 👋 I'm your FlowBoard assistant. I can **create, edit, move, and delete tasks** "
    "for you, and analyze your workload too!\n\n"
    "🛠️ **Task Management:**\n"
    "• \"Create task: Fix login bug\"\n"
    "• \"Add a high priority task Deploy v2 due tomorrow\"\n"
    "• \"Move Design homepage to done\"\n"
    "• \"Change priority of Review PR to high\"\n"
    "• \"Delete Setup project repository\"\n\n"
    "📊 **Insights:**\n"
    "• \"Show summary\" · \"What should I focus on?\"\n"
    "• \"Any overdue tasks?\" · \"Show statistics\""
)
HELP_TEXT = (
    "🤖 **Here's everything I can do:**\n\n"
    "🆕 **Create Tasks:**\n"
    "• \"Create task: Fix the login bug\"\n"
    "• \"Add a high priority task called Review PR due tomorrow\"\n"
    "• \"New task Deploy v2 with tags release, devops\"\n\n"
    "✏️ **Edit Tasks:**\n"
    "• \"Change priority of [task] to high\"\n"
    "• \"Rename [task] to [new name]\"\n"
    "• \"Set due date of [task] to next Friday\"\n"
    "• \"Set description of [task] to [text]\"\n"
    "• \"Add tag frontend to [task]\"\n"
    "• \"Remove tag backend from [task]\"\n\n"
    "📦 **Move Tasks:**\n"
    "• \"Move [task] to In Progress\"\n"
    "• \"Complete [task]\" / \"Finish [task]\"\n"
    "• \"Start [task]\"\n\n"
    "🗑️ **Delete Tasks:**\n"
    "• \"Delete [task]\"\n\n"
    "📊 **Insights & Analysis:**\n"
    "• \"Show summary\" · \"What should I focus on?\"\n"
    "• \"Any overdue tasks?\" · \"Analyze my workload\"\n"
    "• \"Show statistics\" · \"Show my tags\"\n"
    "• \"Give me productivity tips\""
)
THANKS_TEXT = "You're welcome! 😊 Let me know if you need anything else!"
DEFAULT_TEXT = (
    "I can help with that! Here's what I can do:\n\n"
    "🛠️ **Manage Tasks:**\n"
    "• **\"Create task: [title]\"**: add a new task\n"
    "• **\"Move [task] to done\"**: change task status\n"
    "• **\"Change priority of [task] to high\"**: edit a task\n"
    "• **\"Delete [task]\"**: remove a task\n\n"
    "📊 **Get Insights:**\n"
    "• **\"Show summary\"**: board overview\n"
    "• **\"What should I focus on?\"**: priorities\n"
    "• **\"List my tasks\"**: see all tasks\n"
    "• **\"Show statistics\"**: detailed metrics"
)
MOVE_EMOJI = {ColumnId.DONE: "🎉", ColumnId.IN_PROGRESS: "🚀", ColumnId.TODO: "📋"}


@dataclass
class MessageContext:
    """Everything a handler needs for one message."""

    raw: str
    normalized: str
    lower: str
    board: Board
    snap: BoardSnapshot
    today: date
    rng: Optional[random.Random]

    @property
    def tasks(self) -> List[Task]:
        return self.snap.all


def normalize_message(message: str) -> str:
    """Strip request preambles ("please", "can you", ...) and trailing question marks."""
    text = (message or "").strip()
    while True:
        stripped = _PREAMBLE.sub("", text, count=1)
        if stripped == text:
            break
        text = stripped
    return _TRAILING_QUESTION.sub("", text).strip()


def format_candidates(candidates: List[Task]) -> str:
    return "\n".join(
        f"• **{t.title}** ({t.column_id.title}, {t.priority.value} priority)" for t in candidates
    )


def _code_list(tags: List[str]) -> str:
    return ", ".join(f"`{t}`" for t in tags)


def _split_tags(text: str) -> List[str]:
    return normalize_tags(t for t in _TAG_SPLIT.split(text) if t.strip())


def _around_title(ctx: MessageContext, task: Task):
    """
    Split the message around the task's title so a new value is never read
    from inside the title itself.

    Returns (text after the title, message with the title cut out). When the
    title does not appear verbatim both are the whole message.
    """
    idx = ctx.lower.find(task.title.lower())
    if idx < 0:
        return ctx.normalized, ctx.normalized
    end = idx + len(task.title)
    return ctx.normalized[end:], ctx.normalized[:idx] + ctx.normalized[end:]


# ── tag add / remove ──────────────────────────────────────────────────────

def _handle_tag_add(ctx: MessageContext) -> Optional[ChatResponse]:
    if not _TAG_ADD.search(ctx.lower):
        return None
    m = _TAG_ADD_PARTS.search(ctx.normalized)
    if not m:
        return ChatResponse(TAG_ADD_HELP, intent=Intent.TAG_ADD)

    new_tags = _split_tags(m.group(1))
    task_ref = m.group(2)
    task, reply = _resolve_tag_target(ctx, task_ref)
    if task is None:
        return ChatResponse(reply, intent=Intent.TAG_ADD)

    merged = normalize_tags(task.tags + new_tags)
    text = (
        f"🏷️ Added tag{'s' if len(new_tags) > 1 else ''} **{', '.join(new_tags)}** to **{task.title}**."
        f"\n\nCurrent tags: {_code_list(merged)}"
    )
    return ChatResponse(text, UpdateAction(task.id, {"tags": merged}), Intent.TAG_ADD)


def _handle_tag_remove(ctx: MessageContext) -> Optional[ChatResponse]:
    if not _TAG_REMOVE.search(ctx.lower):
        return None
    m = _TAG_REMOVE_PARTS.search(ctx.normalized)
    if not m:
        return ChatResponse(TAG_REMOVE_HELP, intent=Intent.TAG_REMOVE)

    to_remove = _split_tags(m.group(1))
    task_ref = m.group(2)
    task, reply = _resolve_tag_target(ctx, task_ref)
    if task is None:
        return ChatResponse(reply, intent=Intent.TAG_REMOVE)

    remaining = [t for t in task.tags if t not in to_remove]
    text = f"🏷️ Removed tag{'s' if len(to_remove) > 1 else ''} **{', '.join(to_remove)}** from **{task.title}**."
    text += f"\n\nRemaining tags: {_code_list(remaining)}" if remaining else "\n\nNo tags remaining."
    return ChatResponse(text, UpdateAction(task.id, {"tags": remaining}), Intent.TAG_REMOVE)


def _resolve_tag_target(ctx: MessageContext, task_ref: str):
    result = match_task(task_ref, ctx.tasks)
    if isinstance(result, Resolved):
        return result.task, ""
    if isinstance(result, Ambiguous):
        return None, f"Which task do you mean?\n\n{format_candidates(result.candidates)}"
    return None, f"❌ I couldn't find a task matching \"**{task_ref}**\". Please check the name and try again."


# ── create ────────────────────────────────────────────────────────────────

def extract_title(normalized: str) -> str:
    """Pull a task title out of a create command; empty string if none found."""
    m = _QUOTED.search(normalized)
    if m:
        return m.group(1)

    m = _CALLED.search(normalized)
    if m:
        return m.group(1).strip()

    m = _COLON_TITLE.search(normalized)
    if m:
        return m.group(1).strip()

    m = _NOUN_TITLE.search(normalized)
    if m:
        title = _LEADING_ARTICLE.sub("", m.group(1))
        return _LEADING_NAMING.sub("", title).strip()

    m = _DIRECT_TITLE.search(normalized)
    if m:
        candidate = _LEADING_NOUN.sub("", m.group(1))
        candidate = _LEADING_NAMING.sub("", candidate).strip()
        if candidate.lower() not in ("task", "a") and len(candidate) > 1:
            return candidate
    return ""


def _handle_create(ctx: MessageContext) -> Optional[ChatResponse]:
    if not _CREATE.search(ctx.lower) or _QUESTION.search(ctx.lower):
        return None

    title = extract_title(ctx.normalized)
    if not title:
        return ChatResponse(CREATE_HELP, intent=Intent.CREATE)

    title = _TITLE_LEAK.sub("", title).strip()
    title = _SURROUNDING_QUOTES.sub("", title).strip()
    if not title:
        return ChatResponse(CREATE_NO_TITLE, intent=Intent.CREATE)

    # Words inside the title ("Finish report", "Fix critical bug") are not options
    options = ctx.lower.replace(title.lower(), " ", 1)
    priority = resolve_priority(options) or Priority.MEDIUM
    column = resolve_column(options) or ColumnId.TODO

    due_date = None
    m = _DUE_CLAUSE.search(ctx.lower)
    if m:
        due_date = resolve_date(m.group(1).strip(), ctx.today)

    tags: List[str] = []
    m = _TAGS_CLAUSE.search(ctx.normalized)
    if m:
        tags = [t for t in _split_tags(m.group(1)) if t != "and"]

    description = ""
    m = _DESC_CLAUSE.search(ctx.normalized)
    if m:
        description = m.group(1).strip()

    parts = ["✅ **Task created!**\n", f"📋 **{title}**"]
    if description:
        parts.append(f"📝 {description}")
    parts.append(f"{PRIORITY_EMOJI[priority]} Priority: **{priority.value}**")
    parts.append(f"📂 Column: **{column.title}**")
    if due_date:
        parts.append(f"📅 Due: **{due_date.isoformat()}**")
    if tags:
        parts.append(f"🏷️ Tags: {_code_list(tags)}")

    action = CreateAction(
        column_id=column, title=title, description=description,
        priority=priority, due_date=due_date, tags=tags,
    )
    return ChatResponse("\n".join(parts), action, Intent.CREATE)


# ── move / complete / start ───────────────────────────────────────────────

def _destination(lower: str) -> Optional[ColumnId]:
    if _MOVE_TO_DONE.search(lower):
        return ColumnId.DONE
    if _MOVE_TO_PROGRESS.search(lower):
        return ColumnId.IN_PROGRESS
    # Prefer the words after the last "to"/"into"/"as" so column words in a title don't win
    m = _MOVE_DEST_TAIL.match(lower)
    if m:
        column = resolve_column(m.group(1))
        if column is not None:
            return column
    return resolve_column(lower)


def _task_listing(tasks: List[Task], with_column: bool = True) -> str:
    if with_column:
        return "\n".join(f"• **{t.title}** ({t.column_id.title})" for t in tasks[:NOT_FOUND_LIST_LIMIT])
    return "\n".join(f"• **{t.title}**" for t in tasks[:NOT_FOUND_LIST_LIMIT])


def _handle_move(ctx: MessageContext) -> Optional[ChatResponse]:
    if not _MOVE.search(ctx.lower):
        return None

    dest = _destination(ctx.lower)
    if dest is None:
        return ChatResponse(MOVE_WHERE, intent=Intent.MOVE)

    result = match_task(ctx.normalized, ctx.tasks)
    if isinstance(result, Ambiguous):
        return ChatResponse(
            f"Which task do you mean?\n\n{format_candidates(result.candidates)}\n\nPlease be more specific.",
            intent=Intent.MOVE,
        )
    if isinstance(result, NotFound):
        if not ctx.tasks:
            return ChatResponse("Your board is empty! Create some tasks first.", intent=Intent.MOVE)
        return ChatResponse(
            "❌ I couldn't find that task. Here are your current tasks:\n\n"
            f"{_task_listing(ctx.tasks)}\n\nPlease use the exact task name.",
            intent=Intent.MOVE,
        )

    task = result.task
    if task.column_id is dest:
        return ChatResponse(f"ℹ️ **{task.title}** is already in **{dest.title}**.", intent=Intent.MOVE)

    text = f"{MOVE_EMOJI[dest]} **{task.title}** moved from **{task.column_id.title}** → **{dest.title}**!"
    if dest.is_terminal:
        text += "\n\nGreat job completing this task! 🎊"
    return ChatResponse(text, MoveAction(task.id, task.column_id, dest), Intent.MOVE)


# ── field edit ────────────────────────────────────────────────────────────

def _detect_field(lower: str) -> Optional[str]:
    for name, pattern in _FIELD_RULES:
        if pattern.search(lower):
            return name
    return None


def _handle_edit(ctx: MessageContext) -> Optional[ChatResponse]:
    if not _EDIT.search(ctx.lower):
        return None

    field_name = _detect_field(ctx.lower)
    result = match_task(ctx.normalized, ctx.tasks)

    if field_name is None:
        if isinstance(result, Resolved):
            title = result.task.title
            return ChatResponse(
                f"What would you like to change about **{title}**?\n\n"
                f"• **\"Change priority of {title} to high\"**\n"
                f"• **\"Rename {title} to [new name]\"**\n"
                f"• **\"Set due date of {title} to tomorrow\"**\n"
                f"• **\"Set description of {title} to [text]\"**\n"
                f"• **\"Add tag frontend to {title}\"**",
                intent=Intent.EDIT,
            )
        if isinstance(result, Ambiguous):
            return ChatResponse(
                f"Which task do you want to edit?\n\n{format_candidates(result.candidates)}",
                intent=Intent.EDIT,
            )
        return ChatResponse(EDIT_MENU, intent=Intent.EDIT)

    if isinstance(result, Ambiguous):
        return ChatResponse(
            f"Which task do you mean?\n\n{format_candidates(result.candidates)}\n\nPlease be more specific.",
            intent=Intent.EDIT,
        )
    if isinstance(result, NotFound):
        if not ctx.tasks:
            return ChatResponse("Your board is empty! Create some tasks first.", intent=Intent.EDIT)
        return ChatResponse(
            "❌ I couldn't find that task. Please check the name and try again.\n\n"
            f"Your tasks:\n{_task_listing(ctx.tasks, with_column=False)}",
            intent=Intent.EDIT,
        )

    editors = {
        "priority": _edit_priority,
        "title": _edit_title,
        "due_date": _edit_due_date,
        "description": _edit_description,
    }
    return editors[field_name](ctx, result.task)


def _edit_priority(ctx: MessageContext, task: Task) -> ChatResponse:
    tail, rest = _around_title(ctx, task)
    new_priority = resolve_priority(tail) or resolve_priority(rest)
    if new_priority is None:
        return ChatResponse(
            f"What priority should I set for **{task.title}**? Options: **high**, **medium**, or **low**."
            f"\n\nCurrent priority: **{task.priority.value}**",
            intent=Intent.EDIT,
        )
    if new_priority is task.priority:
        return ChatResponse(
            f"ℹ️ **{task.title}** is already set to **{task.priority.value}** priority.", intent=Intent.EDIT
        )
    return ChatResponse(
        f"{PRIORITY_EMOJI[new_priority]} Updated **{task.title}** priority: "
        f"**{task.priority.value}** → **{new_priority.value}**",
        UpdateAction(task.id, {"priority": new_priority}),
        Intent.EDIT,
    )


def _edit_title(ctx: MessageContext, task: Task) -> ChatResponse:
    tail, rest = _around_title(ctx, task)
    m = _NEW_TITLE.search(tail) or _NEW_TITLE.search(rest)
    new_title = m.group(1).strip() if m else ""
    if not new_title:
        return ChatResponse(
            f"What should I rename **{task.title}** to?\n\nExample: **\"Rename {task.title} to [new name]\"**",
            intent=Intent.EDIT,
        )
    return ChatResponse(
        f"✏️ Renamed: **{task.title}** → **{new_title}**",
        UpdateAction(task.id, {"title": new_title}),
        Intent.EDIT,
    )


def _edit_due_date(ctx: MessageContext, task: Task) -> ChatResponse:
    current = task.due_date.isoformat() if task.due_date else None
    tail, rest = (part.lower() for part in _around_title(ctx, task))
    m = (
        _NEW_DUE.search(tail) or _NEW_DUE_KEYWORD.search(tail)
        or _NEW_DUE.search(rest) or _NEW_DUE_KEYWORD.search(rest)
    )
    if not m:
        return ChatResponse(
            f"When is **{task.title}** due?\n\n"
            "Examples: **tomorrow**, **next Friday**, **2025-01-15**, **in 3 days**\n\n"
            f"Current due date: **{current or 'not set'}**",
            intent=Intent.EDIT,
        )

    date_str = m.group(1).strip()
    if _CLEAR_DUE.match(date_str):
        return ChatResponse(
            f"📅 Cleared the due date for **{task.title}**.",
            UpdateAction(task.id, {"due_date": None}),
            Intent.EDIT,
        )

    parsed = resolve_date(date_str, ctx.today)
    if parsed is None:
        return ChatResponse(f"I couldn't parse \"**{date_str}**\" as a date. {DATE_HELP}", intent=Intent.EDIT)
    return ChatResponse(
        f"📅 Updated due date of **{task.title}**: **{current or 'none'}** → **{parsed.isoformat()}**",
        UpdateAction(task.id, {"due_date": parsed}),
        Intent.EDIT,
    )


def _edit_description(ctx: MessageContext, task: Task) -> ChatResponse:
    tail, rest = _around_title(ctx, task)
    m = (
        _NEW_DESC.search(tail) or _NEW_DESC_KEYWORD.search(tail)
        or _NEW_DESC.search(rest) or _NEW_DESC_KEYWORD.search(rest)
    )
    new_desc = m.group(1).strip() if m else ""
    if not new_desc:
        return ChatResponse(
            f"What should the description be for **{task.title}**?\n\n"
            f"Example: **\"Set description of {task.title} to [new description]\"**\n\n"
            f"Current: {task.description or '(empty)'}",
            intent=Intent.EDIT,
        )
    return ChatResponse(
        f"📝 Updated description for **{task.title}**:\n\"{new_desc}\"",
        UpdateAction(task.id, {"description": new_desc}),
        Intent.EDIT,
    )


# ── delete ────────────────────────────────────────────────────────────────

def _handle_delete(ctx: MessageContext) -> Optional[ChatResponse]:
    if not _DELETE.search(ctx.lower):
        return None
    if _TAG_REMOVE.search(ctx.lower):
        return ChatResponse(TAG_REMOVE_HELP, intent=Intent.TAG_REMOVE)

    result = match_task(ctx.normalized, ctx.tasks)
    if isinstance(result, Ambiguous):
        return ChatResponse(
            f"Which task do you want to delete?\n\n{format_candidates(result.candidates)}\n\n"
            "Please be more specific.",
            intent=Intent.DELETE,
        )
    if isinstance(result, NotFound):
        if not ctx.tasks:
            return ChatResponse("Your board is empty! There's nothing to delete.", intent=Intent.DELETE)
        return ChatResponse(
            f"❌ I couldn't find that task. Here are your current tasks:\n\n{_task_listing(ctx.tasks)}",
            intent=Intent.DELETE,
        )

    task = result.task
    return ChatResponse(
        f"🗑️ Deleted **{task.title}** from **{task.column_id.title}**.\n\n"
        "You can undo this with **undo**.",
        DeleteAction(task.id),
        Intent.DELETE,
    )


# ── read-only intents ─────────────────────────────────────────────────────

def _read_only(pattern: re.Pattern, intent: Intent, render: Callable[[MessageContext], str]):
    def handler(ctx: MessageContext) -> Optional[ChatResponse]:
        if not pattern.search(ctx.lower):
            return None
        return ChatResponse(render(ctx), intent=intent)
    handler.__name__ = f"_handle_{intent.value}"
    return handler


HANDLERS = [
    _handle_tag_add,
    _handle_tag_remove,
    _handle_create,
    _handle_move,
    _handle_edit,
    _handle_delete,
    _read_only(_GREETING, Intent.GREETING, lambda ctx: GREETING_TEXT),
    _read_only(_HELP, Intent.HELP, lambda ctx: HELP_TEXT),
    _read_only(_SUMMARY, Intent.SUMMARY, lambda ctx: insights.summary_text(ctx.snap)),
    _read_only(_OVERDUE, Intent.OVERDUE, lambda ctx: insights.overdue_text(ctx.snap)),
    _read_only(_PRIORITIZE, Intent.PRIORITIZE, lambda ctx: insights.prioritize_text(ctx.snap)),
    _read_only(_WORKLOAD, Intent.WORKLOAD, lambda ctx: insights.workload_text(ctx.snap)),
    _read_only(_TAG_REPORT, Intent.TAGS, lambda ctx: insights.tag_distribution_text(ctx.snap)),
    _read_only(_LIST, Intent.LIST, lambda ctx: insights.task_list_text(ctx.snap)),
    _read_only(_TIPS, Intent.TIPS, lambda ctx: insights.tips_text(ctx.rng)),
    _read_only(_STATS, Intent.STATS, lambda ctx: insights.stats_text(ctx.snap)),
    _read_only(_THANKS, Intent.THANKS, lambda ctx: THANKS_TEXT),
]


def process_message(message: str, board: Board, today=None,
                    rng: Optional[random.Random] = None) -> ChatResponse:
    """
    Classify one chat message against a board snapshot.

    Args:
        message: raw user text
        board: current board (read only)
        today: reference day for date phrases and overdue checks (default: local today)
        rng: random source for the tips reply

    Returns:
        ChatResponse with reply text and an optional action. Never raises.
    """
    day = as_day(today)
    normalized = normalize_message(message)
    ctx = MessageContext(
        raw=message or "",
        normalized=normalized,
        lower=normalized.lower(),
        board=board,
        snap=BoardSnapshot.of(board, day),
        today=day,
        rng=rng,
    )
    try:
        for handler in HANDLERS:
            response = handler(ctx)
            if response is not None:
                return response
    except Exception as e:
        logger.exception(f"Classifier failed on {message!r}: {e}")
    return ChatResponse(DEFAULT_TEXT, intent=Intent.FALLBACK)
