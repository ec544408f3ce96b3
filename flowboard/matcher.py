"""
Fuzzy task-name matching.

match_task() turns a free-text reference into exactly one of:
  Resolved(task)         - a single task is clearly meant
  Ambiguous(candidates)  - several tasks fit; up to 5, best first
  NotFound()             - nothing fits

Rules, first decision wins:
  1. quoted text ("..." or '...') compared against titles
  2. longest task title contained verbatim in the reference
  3. word-overlap scoring with command vocabulary stripped
"""
import re
from dataclasses import dataclass, field
from typing import List, Sequence, Union

from .schema import Task


MAX_CANDIDATES = 5
MIN_TITLE_LEN = 3

STOP_WORDS = frozenset([
    "create", "add", "make", "new", "task", "move", "delete", "remove",
    "change", "set", "update", "edit", "modify", "rename", "complete", "finish", "start", "begin",
    "the", "a", "an", "to", "from", "of", "for", "with", "in", "on", "at", "by",
    "priority", "high", "medium", "low", "due", "date", "tag", "tags", "title", "name",
    "description", "desc", "details", "column", "status", "todo", "progress", "done",
    "please", "can", "you", "could", "would", "want", "need", "like", "it", "its",
    "and", "or", "but", "is", "are", "was", "were", "be", "been", "being", "my", "this", "that",
])

_QUOTED = re.compile(r"[\"']([^\"']+)[\"']")


@dataclass(frozen=True)
class Resolved:
    task: Task


@dataclass(frozen=True)
class Ambiguous:
    candidates: List[Task] = field(default_factory=list)


@dataclass(frozen=True)
class NotFound:
    pass


MatchResult = Union[Resolved, Ambiguous, NotFound]


def match_task(reference: str, tasks: Sequence[Task]) -> MatchResult:
    """Find the task `reference` points at."""
    tasks = list(tasks)
    if not tasks or not reference:
        return NotFound()
    lower = reference.lower()

    quoted = _QUOTED.search(reference)
    if quoted:
        result = _match_quoted(quoted.group(1).lower(), tasks)
        if result is not None:
            return result

    result = _match_substring(lower, tasks)
    if result is not None:
        return result

    return _match_words(lower, tasks)


def _match_quoted(quoted: str, tasks: List[Task]):
    for task in tasks:
        if task.title.lower() == quoted:
            return Resolved(task)
    partial = [
        t for t in tasks
        if quoted in t.title.lower() or t.title.lower() in quoted
    ]
    if len(partial) == 1:
        return Resolved(partial[0])
    if partial:
        return Ambiguous(partial[:MAX_CANDIDATES])
    return None


def _match_substring(lower: str, tasks: List[Task]):
    # sorted() is stable, so equal-length titles keep board order
    by_length = sorted(tasks, key=lambda t: len(t.title), reverse=True)
    for task in by_length:
        title = task.title.lower()
        if len(title) >= MIN_TITLE_LEN and title in lower:
            extenders = [
                t for t in by_length
                if t is not task and len(t.title) > len(task.title) and title in t.title.lower()
            ]
            if extenders:
                return Ambiguous([task] + extenders[:MAX_CANDIDATES - 1])
            return Resolved(task)
    return None


def _match_words(lower: str, tasks: List[Task]) -> MatchResult:
    content_words = [w for w in lower.split() if len(w) > 1 and w not in STOP_WORDS]

    scored = []
    for task in tasks:
        title_words = [w for w in task.title.lower().split() if len(w) > 1]
        hits = 0
        for tw in title_words:
            if any(tw == mw or mw in tw or tw in mw for mw in content_words):
                hits += 1
        score = hits / len(title_words) if title_words else 0.0
        if score > 0.3 or hits >= 2:
            scored.append((score, hits, task))

    if not scored:
        return NotFound()
    if len(scored) == 1:
        return Resolved(scored[0][2])

    scored.sort(key=lambda s: (s[0], s[1]), reverse=True)
    top, runner_up = scored[0], scored[1]
    if top[0] >= 0.6 and top[0] > runner_up[0] * 1.2:
        return Resolved(top[2])
    return Ambiguous([s[2] for s in scored[:MAX_CANDIDATES]])
