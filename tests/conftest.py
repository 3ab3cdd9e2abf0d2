"""Shared fixtures: a small vault on disk and sessions over it."""

from pathlib import Path

import pytest

from marginalia.adapters.fs_store import FsNoteStore
from marginalia.adapters.line_renderer import PlainLineRenderer
from marginalia.preview.session import PreviewSession

ALPHA = """---
title: Alpha
tags: [project]
created: 2024-03-01
---
# Alpha

First line with [[Beta]] link.
- [ ] write tests @2024-03-05
Second paragraph https://example.com/page
"""

BETA = """---
title: Beta
parent: alpha
order: 1
---
Beta body line #idea
"""

GAMMA = """# Gamma

Gamma mentions #idea here
- [x] finished thing #idea
"""


def write_vault(root: Path) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "alpha.md").write_text(ALPHA, encoding="utf-8")
    (root / "beta.md").write_text(BETA, encoding="utf-8")
    (root / "gamma.md").write_text(GAMMA, encoding="utf-8")
    return root


class Recorder:
    """Collects the calls made to it; stands in for the URL opener and the editor runner."""

    def __init__(self, code: int = 0):
        self.calls: list = []
        self.code = code

    def __call__(self, arg):
        self.calls.append(arg)
        return self.code


@pytest.fixture
def vault(tmp_path):
    return write_vault(tmp_path / "vault")


@pytest.fixture
def store(vault):
    return FsNoteStore(vault)


@pytest.fixture
def opener():
    return Recorder()


@pytest.fixture
def runner():
    return Recorder()


@pytest.fixture
def session(store, opener, runner):
    return PreviewSession(
        store,
        PlainLineRenderer(),
        width=60,
        opener=opener,
        runner=runner,
        editor="myedit --wait",
    )


@pytest.fixture
def memory_session(tmp_path, opener, runner):
    """Session over an empty vault, for previews built from in-memory notes."""
    return PreviewSession(
        FsNoteStore(tmp_path / "empty"),
        PlainLineRenderer(),
        width=60,
        opener=opener,
        runner=runner,
    )
