"""CSV export of the board, one row per task."""
import csv
import io
from datetime import date
from typing import Optional

from .schema import Board


CSV_HEADERS = ["Title", "Description", "Status", "Priority", "Due Date", "Tags", "Created At", "Completed At"]
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"


def export_csv(board: Board) -> str:
    """Render the board as CSV text. An empty board yields just the header row."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for task in board.all_tasks():
        writer.writerow([
            task.title,
            task.description,
            task.column_id.title,
            task.priority.value,
            task.due_date.isoformat() if task.due_date else "",
            ", ".join(task.tags),
            task.created_at.strftime(TIMESTAMP_FORMAT),
            task.completed_at.strftime(TIMESTAMP_FORMAT) if task.completed_at else "",
        ])
    return buf.getvalue()


def export_filename(today: Optional[date] = None) -> str:
    return f"flowboard-export-{(today or date.today()).isoformat()}.csv"
