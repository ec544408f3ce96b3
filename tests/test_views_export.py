"""
Tests for task filtering/sorting and CSV export.
"""
import csv
import io
from datetime import date, datetime, timedelta, timezone

import pytest

from flowboard.export import CSV_HEADERS, export_csv, export_filename
from flowboard.schema import Board, ColumnId, Priority
from flowboard.views import all_tags, filter_tasks
from conftest import NOW, TODAY, make_task


def ids(tasks):
    return [t.id for t in tasks]


class TestFilterTasks:

    def test_defaults_return_all_newest_first(self):
        board = Board.from_tasks([
            make_task("old", "Old", created=NOW - timedelta(days=2)),
            make_task("new", "New", created=NOW),
            make_task("mid", "Mid", created=NOW - timedelta(days=1)),
        ])
        assert ids(filter_tasks(board, today=TODAY)) == ["new", "mid", "old"]

    def test_column(self, sample_board):
        assert ids(filter_tasks(sample_board, column=ColumnId.TODO, today=TODAY)) == ["t1", "t2"]

    def test_search_title_description_and_tags(self, sample_board):
        assert ids(filter_tasks(sample_board, search="LOGIN", today=TODAY)) == ["t1"]
        assert ids(filter_tasks(sample_board, search="backend", today=TODAY)) == ["t3"]

    def test_search_description(self):
        board = Board.from_tasks([make_task("x", "Plain", description="mentions OAuth flow")])
        assert ids(filter_tasks(board, search="oauth", today=TODAY)) == ["x"]

    def test_priority(self, sample_board):
        assert set(ids(filter_tasks(sample_board, priority="high", today=TODAY))) == {"t1", "t4"}

    def test_overdue_only_before_today(self, sample_board):
        assert ids(filter_tasks(sample_board, due="overdue", today=TODAY)) == ["t1"]

    def test_due_today_and_this_week(self):
        board = Board.from_tasks([
            make_task("a", "Today", due=TODAY),
            make_task("b", "Sunday", due=date(2025, 3, 16)),
            make_task("c", "Next Monday", due=date(2025, 3, 17)),
            make_task("d", "Undated"),
        ])
        assert ids(filter_tasks(board, due="today", today=TODAY)) == ["a"]
        assert set(ids(filter_tasks(board, due="this-week", today=TODAY))) == {"a", "b"}
        assert ids(filter_tasks(board, due="no-date", today=TODAY)) == ["d"]

    def test_tag(self, sample_board):
        assert ids(filter_tasks(sample_board, tag="Docs", today=TODAY)) == ["t2"]

    def test_sort_by_due_date_undated_last(self, sample_board):
        assert ids(filter_tasks(sample_board, sort="dueDate", today=TODAY))[:2] == ["t1", "t3"]

    def test_sort_by_priority(self, sample_board):
        result = filter_tasks(sample_board, sort="priority", today=TODAY)
        assert [t.priority for t in result] == [
            Priority.HIGH, Priority.HIGH, Priority.MEDIUM, Priority.LOW,
        ]

    @pytest.mark.parametrize("kwargs", [
        {"due": "yesterday"}, {"sort": "title"}, {"priority": "extreme"},
    ])
    def test_unknown_values_raise(self, sample_board, kwargs):
        with pytest.raises(ValueError):
            filter_tasks(sample_board, today=TODAY, **kwargs)

    def test_all_tags(self, sample_board):
        assert all_tags(sample_board) == ["backend", "docs", "frontend", "urgent"]


class TestExportCsv:

    def test_empty_board_is_header_only(self):
        assert export_csv(Board.empty()) == ",".join(CSV_HEADERS) + "\n"

    def test_one_row_per_task(self, sample_board):
        rows = list(csv.reader(io.StringIO(export_csv(sample_board))))
        assert rows[0] == CSV_HEADERS
        assert len(rows) == 1 + len(sample_board.tasks)

    def test_row_content(self, sample_board):
        rows = list(csv.reader(io.StringIO(export_csv(sample_board))))
        first = dict(zip(CSV_HEADERS, rows[1]))
        assert first["Title"] == "Fix login bug"
        assert first["Status"] == "To Do"
        assert first["Priority"] == "high"
        assert first["Due Date"] == "2025-03-10"
        assert first["Tags"] == "frontend, urgent"
        assert first["Created At"] == "2025-03-12 09:30"
        assert first["Completed At"] == ""
        done = dict(zip(CSV_HEADERS, rows[4]))
        assert done["Status"] == "Done"
        assert done["Completed At"] == "2025-03-12 09:30"

    def test_quotes_commas_and_quotes(self):
        board = Board.from_tasks([make_task("q", 'Say "hi", then leave')])
        rows = list(csv.reader(io.StringIO(export_csv(board))))
        assert rows[1][0] == 'Say "hi", then leave'

    def test_filename(self):
        assert export_filename(date(2025, 3, 12)) == "flowboard-export-2025-03-12.csv"
