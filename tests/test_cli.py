"""Tests for the marg CLI."""

import argparse
import json
import os
import subprocess
import sys
from pathlib import Path

import marginalia
from marginalia.adapters.fs_store import FsNoteStore
from marginalia.cli import cmd_search
from marginalia.core.ports import StoreError
from marginalia.runtime import build_runtime

SRC = Path(__file__).resolve().parents[1] / "src"


def marg(vault, *args, stdin=None, cwd=None):
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(p for p in (str(SRC), env.get("PYTHONPATH", "")) if p)
    env["PYTHONIOENCODING"] = "utf-8"
    return subprocess.run(
        [sys.executable, "-m", "marginalia.cli", "--vault", str(vault), "--width", "60", *args],
        capture_output=True,
        text=True,
        encoding="utf-8",
        input=stdin,
        env=env,
        cwd=cwd or vault,
    )


def test_version_module():
    """Test that version is accessible from module."""
    parts = marginalia.__version__.split(".")
    assert len(parts) >= 2


def test_show_note(vault):
    """Test previewing a single note."""
    result = marg(vault, "show", "alpha")

    assert result.returncode == 0
    assert "# Alpha" in result.stdout
    assert "╭─ Alpha " in result.stdout
    assert "># Alpha" in result.stdout
    assert "title: Alpha" not in result.stdout


def test_show_missing_note(vault):
    """Test that a missing note is an error."""
    result = marg(vault, "show", "nope")

    assert result.returncode == 1
    assert "Error: Note nope not found" in result.stderr


def test_search_json(vault):
    """Test machine-readable output."""
    result = marg(vault, "--json", "search", "#idea")

    assert result.returncode == 0
    data = json.loads(result.stdout)
    assert data["variant"] == "card_list"
    assert data["card_count"] == 2


def test_date_preview(vault):
    """Test the day view."""
    result = marg(vault, "date", "2024-03-05")

    assert result.returncode == 0
    assert "Tuesday, March 5 2024" in result.stdout
    assert "L04: - [ ] write tests @2024-03-05" in result.stdout

    result = marg(vault, "date", "yesterday")
    assert result.returncode == 1
    assert "Invalid date" in result.stderr


def test_pick_and_compose(vault):
    """Test the pick and compose commands."""
    result = marg(vault, "pick", "idea", "--no-done")
    assert result.returncode == 0
    assert "L03: Gamma mentions #idea here" in result.stdout
    assert "finished thing" not in result.stdout

    result = marg(vault, "compose", "alpha")
    assert result.returncode == 0
    assert "## Beta" in result.stdout


def test_browse_toggles_todo(vault):
    """Test driving the browser from stdin and editing a line."""
    result = marg(vault, "-q", "browse", stdin="show alpha\nj\nj\nj\nx\nq\n")

    assert result.returncode == 0
    assert "- [x] write tests @2024-03-05" in (vault / "alpha.md").read_text()
    assert "[x] write tests" in result.stdout


def test_browse_unknown_command(vault):
    """Test that unknown browser commands are reported and skipped."""
    result = marg(vault, "browse", stdin="wat\nshow alpha\nq\n")

    assert result.returncode == 0
    assert "Unknown command: wat" in result.stderr
    assert "# Alpha" in result.stdout


class BrokenSearch(FsNoteStore):
    def search(self, query, options):
        raise StoreError("index unavailable")


def test_search_failure_exit_code(vault, tmp_path, monkeypatch, capsys):
    """Test that a failed search reports the error and exits non-zero."""
    monkeypatch.chdir(tmp_path)
    rt = build_runtime(vault_path=vault)
    rt.store = BrokenSearch(vault)
    args = argparse.Namespace(query="#idea", width=60, json=False, quiet=True)

    assert cmd_search(args, rt) == 1
    assert "Search failed: index unavailable" in capsys.readouterr().err

    rt.store = FsNoteStore(vault)
    assert cmd_search(args, rt) == 0
