"""
Loose text → canonical column / priority.

Rule-based, first match wins in the order the rules are listed.
"""
import re
from typing import Optional

from .schema import ColumnId, Priority


COLUMN_RULES = [
    (re.compile(r"\b(to[\s-]?do|todo|backlog)\b"), ColumnId.TODO),
    (re.compile(r"\b(in[\s-]?progress|doing|working|active|started|wip)\b"), ColumnId.IN_PROGRESS),
    (re.compile(r"\b(done|completed?|finished?)\b"), ColumnId.DONE),
]

PRIORITY_RULES = [
    (re.compile(r"\b(high|urgent|critical|important)\b"), Priority.HIGH),
    (re.compile(r"\b(medium|normal|moderate|med)\b"), Priority.MEDIUM),
    (re.compile(r"\b(low|minor|trivial)\b"), Priority.LOW),
]


def resolve_column(text: str) -> Optional[ColumnId]:
    """Find a column reference anywhere in `text`."""
    lower = (text or "").lower()
    for pattern, column in COLUMN_RULES:
        if pattern.search(lower):
            return column
    return None


def resolve_priority(text: str) -> Optional[Priority]:
    """Find a priority reference anywhere in `text`."""
    lower = (text or "").lower()
    for pattern, priority in PRIORITY_RULES:
        if pattern.search(lower):
            return priority
    return None
