"""
Tests for snapshots: restore, export and import documents.
"""
import json
from datetime import datetime, timezone, date

import pytest
import yaml

from taskflow.board import Board
from taskflow.errors import ImportFormatError, ValidationError
from taskflow.schema import Stage, Category
from taskflow.serializer import snapshot, restore, parse_snapshot, export_document, parse_document


def build_board(n):
    board = Board()
    for i in range(n):
        board.add_task(f"task {i}", priority="high" if i % 2 else "low", due_date="2030-01-0%d" % (i % 9 + 1))
    if n >= 2:
        board.change_progress(board.all_tasks()[0].id, 10)
    if n >= 3:
        board.move_to(board.tasks_in(Stage.TODO)[-1].id, Stage.DONE)
    return board


def view(board):
    return {
        stage.value: [(t.id, t.text, t.priority, t.category, t.due_date, t.progress, t.position)
                      for t in board.columns[stage]]
        for stage in board.columns
    }


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Snapshot / restore
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.mark.parametrize("n", [0, 1, 5])
def test_snapshot_restore_preserves_board(n):
    original = build_board(n)
    data = json.loads(json.dumps(snapshot(original)))
    copy = restore(Board(), data)
    assert view(copy) == view(original)
    assert copy.last_updated == original.last_updated


def test_snapshot_shape():
    board = build_board(1)
    data = snapshot(board)
    assert set(data) == {"todo", "in_progress", "done", "lastUpdated"}
    assert data["todo"][0]["dueDate"] == "2030-01-01"


def test_restore_is_total_replacement():
    board = build_board(3)
    restore(board, {"todo": [], "in_progress": [{"id": 50, "text": "only"}], "done": []})
    assert [t.id for t in board.all_tasks()] == [50]


def test_import_scenario_opaque_id_and_string_progress():
    board = build_board(2)
    restore(board, {"todo": [], "in_progress": [{"id": "x", "text": "Demo", "progress": "50", "category": "work"}], "done": []})
    (task,) = board.all_tasks()
    assert task.id == "x"
    assert task.progress == 50
    assert task.stage == Stage.IN_PROGRESS
    assert task.category == Category.WORK


def test_restore_advances_sequence_and_fills_missing_ids():
    board = Board()
    restore(board, {"todo": [{"id": 41, "text": "a"}, {"text": "no id"}], "in_progress": [], "done": []})
    ids = [t.id for t in board.all_tasks()]
    assert ids[0] == 41
    assert ids[1] == 42
    assert board.add_task("next").id == 43


def test_restore_legacy_columns_format():
    legacy = {
        "columns": {
            "to-do": {"tasks": [{"id": 1, "text": "old todo"}]},
            "in-progress": {"tasks": [{"id": 2, "text": "old wip", "progress": 40}]},
            "done": {"tasks": []},
        },
        "timestamp": "2024-01-05T08:00:00.000Z",
    }
    board = restore(Board(), legacy)
    assert [t.text for t in board.tasks_in(Stage.TODO)] == ["old todo"]
    assert [t.progress for t in board.tasks_in(Stage.IN_PROGRESS)] == [40]
    assert board.last_updated == datetime(2024, 1, 5, 8, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("bad", [
    [],
    {"something": "else"},
    {"todo": "not a list"},
    {"todo": [{"id": 1, "text": "a"}, {"id": 1, "text": "b"}]},
    {"todo": [{"id": 1, "text": ""}]},
])
def test_bad_snapshot_leaves_board_untouched(bad):
    board = build_board(3)
    before = view(board)
    with pytest.raises(ImportFormatError):
        restore(board, bad)
    assert view(board) == before


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Export / import documents
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestExport:
    """Downloadable board documents."""

    NOW = datetime(2024, 2, 29, 15, 30, tzinfo=timezone.utc)

    def test_json_export(self):
        filename, text = export_document(build_board(2), "alice", now=self.NOW)
        assert filename == "kanban_board_alice_2024-02-29.json"
        data = json.loads(text)
        assert data["user"] == "alice"
        assert data["exportedAt"] == self.NOW.isoformat()
        assert len(data["todo"]) + len(data["in_progress"]) == 2

    def test_yaml_export_round_trips(self):
        board = build_board(3)
        filename, text = export_document(board, "bob", fmt="yml", now=self.NOW)
        assert filename.endswith(".yaml")
        copy = restore(Board(), parse_document(text, filename))
        assert view(copy) == view(board)

    def test_unsafe_username_in_filename(self):
        filename, _ = export_document(Board(), "a/b c", now=self.NOW)
        assert filename == "kanban_board_a_b_c_2024-02-29.json"

    def test_unknown_format(self):
        with pytest.raises(ValidationError):
            export_document(Board(), "alice", fmt="csv")


class TestParseDocument:
    """Import file parsing."""

    def test_json_bytes_with_bom(self):
        content = "\ufeff" + json.dumps({"todo": []})
        assert parse_document(content.encode("utf-8"), "board.json") == {"todo": []}

    def test_yaml_by_extension(self):
        assert parse_document(yaml.safe_dump({"done": []}), "board.YML") == {"done": []}

    @pytest.mark.parametrize("content", ["", "   ", "{not json", "[1, 2]"])
    def test_invalid_json(self, content):
        with pytest.raises(ImportFormatError):
            parse_document(content, "board.json")

    def test_invalid_yaml(self):
        with pytest.raises(ImportFormatError):
            parse_document("todo: [unclosed", "board.yaml")

    def test_parse_snapshot_reports_due_dates(self):
        columns, _ = parse_snapshot({"todo": [{"id": 1, "text": "a", "dueDate": "2024-03-01"}]})
        assert columns[Stage.TODO][0].due_date == date(2024, 3, 1)
