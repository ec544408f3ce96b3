"""
Board store: the single owner of the live board.

Every mutation snapshots the current board onto the undo stack (bounded,
oldest dropped), clears the redo stack, then installs a new board value.
Installed boards are never mutated in place, so a snapshot is the exact
prior value and undo/redo are plain swaps.

Persistence is debounced: a save is scheduled `autosave_delay` seconds after
the last mutation. Reads of `board` never wait on it.

Mutations and undo/redo run under `lock` (re-entrant), so concurrent callers
such as a threaded web server never interleave history snapshots.
"""
import functools
import logging
import threading
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from .persistence import DEFAULT_KEY, load_board, save_board
from .schema import (
    Board, ColumnId, Priority, Task, make_task_id, normalize_tags, parse_date, utc_now,
)
from .seed import build_seed_board

logger = logging.getLogger(__name__)


HISTORY_LIMIT = 50
AUTOSAVE_DELAY = 0.3

UPDATABLE_FIELDS = ("title", "description", "priority", "due_date", "tags")


def _locked(method):
    """Run a store method while holding the store lock."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.lock:
            return method(self, *args, **kwargs)
    return wrapper


class BoardStore:
    """Owns the board, its undo/redo history and its persistence schedule."""

    def __init__(self, storage=None, board: Optional[Board] = None, *,
                 key: str = DEFAULT_KEY,
                 history_limit: int = HISTORY_LIMIT,
                 autosave_delay: Optional[float] = AUTOSAVE_DELAY,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            storage: key/value backend (get/set); None keeps the board in memory only
            board: initial board; loaded from storage (or seeded) when omitted
            key: storage key for the serialized board
            history_limit: maximum undo depth
            autosave_delay: seconds between the last mutation and the save;
                None disables autosave, 0 saves inline
            clock: returns the current aware datetime (tests pin it)
        """
        self.storage = storage
        self.key = key
        self.history_limit = history_limit
        self.autosave_delay = autosave_delay
        self.clock = clock or utc_now

        if board is None:
            board = load_board(storage, key) if storage is not None else build_seed_board()
        self._board = board
        self._history: List[Board] = []
        self._future: List[Board] = []

        # Held across every copy-mutate-commit and undo/redo
        self.lock = threading.RLock()
        self._timer_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    # -------------------- queries --------------------

    @property
    def board(self) -> Board:
        return self._board

    @property
    def can_undo(self) -> bool:
        return bool(self._history)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    @property
    def history_depth(self) -> int:
        return len(self._history)

    @property
    def redo_depth(self) -> int:
        return len(self._future)

    # -------------------- history --------------------

    def _commit(self, new_board: Board):
        """Install `new_board`, recording the current one for undo."""
        self._history.append(self._board)
        if len(self._history) > self.history_limit:
            while len(self._history) > self.history_limit:
                self._history.pop(0)
        self._future.clear()
        self._board = new_board
        self._schedule_save()

    @_locked
    def undo(self) -> bool:
        """Restore the previous board. Returns False if there is nothing to undo."""
        if not self._history:
            return False
        self._future.append(self._board)
        self._board = self._history.pop()
        self._schedule_save()
        return True

    @_locked
    def redo(self) -> bool:
        """Re-apply the last undone change. Returns False if there is nothing to redo."""
        if not self._future:
            return False
        self._history.append(self._board)
        self._board = self._future.pop()
        self._schedule_save()
        return True

    # -------------------- mutations --------------------

    @_locked
    def create(self, column_id: ColumnId, title: str, description: str = "",
               priority: Priority = Priority.MEDIUM, due_date: Optional[date] = None,
               tags: Optional[Iterable[str]] = None) -> str:
        """Append a new task to `column_id`. Returns the new task id."""
        title = (title or "").strip()
        if not title:
            raise ValueError("Task title must not be empty")
        column_id = ColumnId(column_id)

        now = self.clock()
        task = Task(
            id=make_task_id(),
            title=title,
            description=description or "",
            priority=_coerce("priority", priority),
            due_date=parse_date(due_date),
            tags=normalize_tags(tags),
            created_at=now,
            completed_at=now if column_id.is_terminal else None,
            column_id=column_id,
        )
        new_board = self._board.copy()
        new_board.tasks[task.id] = task
        new_board.columns[column_id].task_ids.append(task.id)
        self._commit(new_board)
        logger.info(f"Created {task.id} in {column_id.value}: {title}")
        return task.id

    @_locked
    def update(self, task_id: str, changes: Dict[str, Any]):
        """Merge `changes` into a task. Never touches id, created_at or column membership."""
        new_board = self._board.copy()
        task = new_board.tasks.get(task_id)
        if task is None:
            logger.warning(f"update: no task {task_id}, nothing changed")
        else:
            for name, value in changes.items():
                if name not in UPDATABLE_FIELDS:
                    logger.warning(f"update: ignoring field {name!r} for {task_id}")
                    continue
                if name == "title" and not str(value or "").strip():
                    logger.warning(f"update: refusing empty title for {task_id}")
                    continue
                setattr(task, name, _coerce(name, value))
        self._commit(new_board)

    @_locked
    def delete(self, task_id: str):
        """Remove a task and its column entry. Unknown ids leave the board unchanged."""
        new_board = self._board.copy()
        task = new_board.tasks.pop(task_id, None)
        if task is None:
            logger.warning(f"delete: no task {task_id}, nothing changed")
        else:
            new_board.columns[task.column_id].task_ids.remove(task_id)
            logger.info(f"Deleted {task_id}: {task.title}")
        self._commit(new_board)

    @_locked
    def move(self, task_id: str, source_column: ColumnId, dest_column: ColumnId, dest_index: int):
        """
        Move a task to position `dest_index` of `dest_column`.

        Within one column the removal happens before the index is applied.
        Entering the terminal column stamps completed_at (unless already set);
        any other destination clears it.
        """
        source_column, dest_column = ColumnId(source_column), ColumnId(dest_column)
        new_board = self._board.copy()
        task = new_board.tasks.get(task_id)
        if task is None:
            logger.warning(f"move: no task {task_id}, nothing changed")
            self._commit(new_board)
            return

        if task.column_id is not source_column:
            logger.warning(
                f"move: {task_id} is in {task.column_id.value}, not {source_column.value}; using its real column"
            )
            source_column = task.column_id

        new_board.columns[source_column].task_ids.remove(task_id)
        dest_ids = new_board.columns[dest_column].task_ids
        dest_index = max(0, min(int(dest_index), len(dest_ids)))
        dest_ids.insert(dest_index, task_id)

        task.column_id = dest_column
        if not dest_column.is_terminal:
            task.completed_at = None
        elif task.completed_at is None:
            task.completed_at = self.clock()
        self._commit(new_board)
        logger.info(f"Moved {task_id}: {source_column.value} → {dest_column.value}[{dest_index}]")

    @_locked
    def reset_board(self):
        """Replace everything with a fresh sample board and save it now."""
        self._commit(build_seed_board(now=self.clock()))
        self.save()

    @_locked
    def clear_board(self):
        """Remove every task, keeping the three empty columns, and save now."""
        self._commit(Board.empty())
        self.save()

    # -------------------- persistence --------------------

    def _schedule_save(self):
        if self.storage is None or self.autosave_delay is None:
            return
        if self.autosave_delay <= 0:
            self.save()
            return
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.autosave_delay, self.save)
            self._timer.daemon = True
            self._timer.start()

    def save(self) -> bool:
        """Write the current board now. Returns False if there is no storage or the write failed."""
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self.storage is None:
            return False
        ok = save_board(self.storage, self._board, self.key)
        if not ok:
            logger.error(f"Saving board under {self.key!r} failed; in-memory board is unchanged")
        return ok

    def close(self):
        """Cancel any pending save and flush the board."""
        if self.storage is not None:
            self.save()


def _coerce(name: str, value: Any) -> Any:
    if name == "priority":
        return value if isinstance(value, Priority) else Priority.from_str(value)
    if name == "due_date":
        return parse_date(value)
    if name == "tags":
        return normalize_tags(value)
    if name == "title":
        return str(value).strip()
    return "" if value is None else str(value)
