#!/usr/bin/env python3
"""
Quick verification that the FlowBoard engine works end-to-end:
chat commands → store → SQLite → reload.
"""
import os
import tempfile

from flowboard.driver import ConversationDriver
from flowboard.export import export_csv
from flowboard.persistence import SqliteStorage
from flowboard.schema import ColumnId
from flowboard.store import BoardStore


def main():
    print("=" * 60)
    print("FlowBoard Verification")
    print("=" * 60)

    db_path = os.path.join(tempfile.mkdtemp(prefix="flowboard-"), "board.db")

    print("\n[1/6] Opening SQLite store...")
    store = BoardStore(SqliteStorage(db_path), autosave_delay=0)
    print(f"✅ Store opened with {len(store.board.tasks)} sample tasks")

    driver = ConversationDriver(store)

    print("\n[2/6] Creating a task from chat...")
    reply = driver.handle('Add a high priority task "Ship verification script" due tomorrow tagged ops')
    print(reply.text)
    task = store.board.get(driver.last_task_id) if driver.last_task_id else None
    if task is None:
        print("❌ Task creation failed")
        return 1
    print(f"✅ Created {task.id} ({task.priority.value}, due {task.due_date})")

    print("\n[3/6] Moving it to done...")
    driver.handle("Move Ship verification script to done")
    task = store.board.get(task.id)
    if task.column_id is not ColumnId.DONE or task.completed_at is None:
        print("❌ Move failed")
        return 1
    print(f"✅ Done at {task.completed_at.isoformat()}")

    print("\n[4/6] Undo and redo...")
    store.undo()
    undone = store.board.get(task.id).column_id
    store.redo()
    redone = store.board.get(task.id).column_id
    print(f"✅ undo → {undone.value}, redo → {redone.value}")

    print("\n[5/6] Reloading from disk...")
    store.close()
    reloaded = BoardStore(SqliteStorage(db_path), autosave_delay=0)
    if reloaded.board.get(task.id) is None:
        print("❌ Task missing after reload")
        return 1
    print(f"✅ Reloaded {len(reloaded.board.tasks)} tasks from {db_path}")

    print("\n[6/6] Summary and export...")
    print(ConversationDriver(reloaded).handle("summary").text)
    print()
    print(export_csv(reloaded.board))

    print("=" * 60)
    print("✅ All checks passed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
