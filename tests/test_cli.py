#!/usr/bin/env python3
"""
Unit tests for the todo CLI (src/taskmd/cli.py).
"""

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from taskmd.cli import build_parser, lint_cmd, main, query_cmd
from taskmd.config import Settings
from taskmd.parser import parse_file


# --- test fixtures ---

class Args:
    """Minimal args namespace for testing CLI functions."""
    def __init__(self, **kwargs):
        for k, v in kwargs.items():
            setattr(self, k, v)


TASKS = (
    "# Plan\n"
    "\n"
    "## TODO\n"
    "- A #urgent \"Fix login\" weight: 3 id: fix001\n"
    "- [x] B \"Write docs\" id: doc001\n"
)


@pytest.fixture
def tasks_file(tmp_path):
    path = tmp_path / "TASKS.md"
    path.write_text(TASKS, encoding='utf-8')
    return path


# ============================================================
# lint
# ============================================================

class TestLint:
    def test_clean_file(self, tasks_file, capsys):
        main(["lint", str(tasks_file)])
        assert capsys.readouterr().out.strip() == "No lint issues found."

    def test_errors_exit_1(self, tmp_path, capsys):
        path = tmp_path / "bad.md"
        path.write_text("- A Unquoted title due: 2025\n  - \"ok\"\n   - \"bad\"\n", encoding='utf-8')
        with pytest.raises(SystemExit) as excinfo:
            main(["lint", str(path)])
        assert excinfo.value.code == 1
        out = capsys.readouterr().out.splitlines()
        assert out[0].startswith(f"{path}:1 ERROR: strings need to be quoted")
        assert any(line.startswith(f"{path}:3 ERROR: Indentation 3") for line in out)

    def test_warnings_only_exit_0(self, tmp_path, capsys):
        path = tmp_path / "warn.md"
        path.write_text("- \"Task\"\n  note: two words\n", encoding='utf-8')
        main(["lint", str(path)])
        assert "WARN" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit):
            lint_cmd(Args(file=str(tmp_path / "nope.md"), settings=Settings()))
        assert "File not found" in capsys.readouterr().err

    def test_indent_size_flag(self, tmp_path, capsys):
        path = tmp_path / "four.md"
        path.write_text("- \"Parent\"\n    - \"Child\"\n", encoding='utf-8')
        main(["--indent-size", "4", "lint", str(path)])
        assert capsys.readouterr().out.strip() == "No lint issues found."


# ============================================================
# query
# ============================================================

class TestQuery:
    def test_select_json(self, tasks_file, capsys):
        main(["query", "-o", "json", f"SELECT title FROM \"{tasks_file}\" WHERE completed = false"])
        rows = json.loads(capsys.readouterr().out)
        assert rows == [{"id": "fix001", "parent": None, "title": "Fix login"}]

    def test_select_table(self, tasks_file, capsys):
        main(["query", f"SELECT title FROM \"{tasks_file}\" ORDER BY priority DESC"])
        out = capsys.readouterr().out.splitlines()
        assert out[0] == "| id     | parent | title      |"
        assert out[2].startswith("| doc001 |")

    def test_update(self, tasks_file, capsys):
        main(["query", f"UPDATE \"{tasks_file}\" SET priority = 'C' WHERE id = 'fix001'"])
        assert capsys.readouterr().out.strip() == f"Updated 1 tasks in {tasks_file}"
        assert parse_file(tasks_file).find_by_id("fix001").data["priority"] == "C"

    def test_invalid_assignment(self, tasks_file, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["query", f"UPDATE \"{tasks_file}\" SET tags = 'two words'"])
        assert excinfo.value.code == 1
        assert "Invalid tag name 'two words'" in capsys.readouterr().err
        assert tasks_file.read_text(encoding='utf-8') == TASKS

    def test_parse_error(self, capsys):
        with pytest.raises(SystemExit):
            main(["query", "SELECT * FORM x.md"])
        assert capsys.readouterr().err.startswith("Error: ")

    def test_lint_errors_block_query(self, tmp_path, capsys):
        path = tmp_path / "bad.md"
        path.write_text("- A Unquoted title due: 2025\n", encoding='utf-8')
        with pytest.raises(SystemExit):
            query_cmd(Args(query=f"SELECT * FROM \"{path}\"", format="table", settings=Settings()))
        err = capsys.readouterr().err
        assert "has lint errors" in err
        assert f"{path}:1 ERROR:" in err

    def test_missing_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit):
            main(["query", f"SELECT * FROM \"{tmp_path / 'missing.md'}\""])
        assert "Error:" in capsys.readouterr().err


# ============================================================
# parser and help
# ============================================================

def test_help(capsys):
    main(["help"])
    out = capsys.readouterr().out
    assert "Task syntax:" in out
    assert "INSERT INTO" in out


def test_no_command_exits_1(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 1


def test_build_parser_defaults():
    args = build_parser().parse_args(["query", "SELECT * FROM a.md"])
    assert args.format == "table"
    assert args.func is query_cmd
    assert args.indent_size is None
