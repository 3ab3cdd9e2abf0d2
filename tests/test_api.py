"""Tests for API functionality."""

import pytest
from fastapi.testclient import TestClient

from marginalia.api.app import create_app, generate_token
from marginalia.runtime import build_runtime


@pytest.fixture
def runtime(vault, tmp_path, monkeypatch):
    """Create a runtime over the test vault."""
    monkeypatch.chdir(tmp_path)
    return build_runtime(vault_path=vault)


@pytest.fixture
def client(runtime):
    return TestClient(create_app(runtime, token=None, width=60))


def test_health_endpoint(client):
    """Test /health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_auth_required(runtime):
    """Test that endpoints require authentication when token is set."""
    token = generate_token()
    client = TestClient(create_app(runtime, token=token))

    response = client.get("/health")
    assert response.status_code == 401

    response = client.get("/health", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200

    response = client.get("/preview", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401


def test_open_and_move(client):
    """Test opening a note and moving the cursor."""
    response = client.post("/preview/open/alpha")
    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Alpha"
    assert data["cursor_line"] == 1
    assert data["card_line_ranges"] == [[0, 7]]

    data = client.post("/preview/actions/move_down").json()
    assert data["cursor_line"] == 2

    target = client.get("/preview/target").json()["target"]
    assert target["note_id"] == "alpha"
    assert target["line_num"] == 2


def test_open_missing_note(client):
    """Test /preview/open with nonexistent note."""
    response = client.post("/preview/open/nonexistent")
    assert response.status_code == 404


def test_unknown_action(client):
    """Test that unknown actions are rejected."""
    response = client.post("/preview/actions/explode")
    assert response.status_code == 404


def test_search_and_history(client):
    """Test search, history listing and selecting an entry."""
    client.post("/preview/open/alpha")
    data = client.post("/preview/search", json={"query": "#idea"}).json()
    assert data["variant"] == "card_list"
    assert data["card_count"] == 2

    history = client.get("/preview/history").json()
    assert [h["title"] for h in history] == ["#idea", "Alpha"]
    assert history[0]["current"] is True

    data = client.post("/preview/history/0").json()
    assert data["title"] == "Alpha"

    data = client.post("/preview/actions/forward").json()
    assert data["title"] == "#idea"


def test_line_edit_endpoints(client, vault):
    """Test toggling a todo and a tag through the API."""
    client.post("/preview/open/alpha")
    client.post("/preview/click", json={"line": 4})

    data = client.post("/preview/actions/toggle_todo").json()
    assert data["lines"][4]["text"] == "[x] write tests @2024-03-05"
    assert "- [x] write tests" in (vault / "alpha.md").read_text()

    client.post("/preview/lines/tag", json={"tag": "urgent"})
    assert "@2024-03-05 #urgent" in (vault / "alpha.md").read_text()


def test_date_endpoint(client):
    """Test the date preview and its bad-input handling."""
    data = client.post("/preview/date", json={"date": "2024-03-05"}).json()
    assert data["variant"] == "date_preview"
    assert data["header_lines"] == [0, 4, 10]

    response = client.post("/preview/date", json={"date": "not-a-date"})
    assert response.status_code == 400


def test_pick_and_compose_endpoints(client):
    """Test the pick and compose views."""
    data = client.post("/preview/pick", json={"tags": ["idea"], "any_tag": True}).json()
    assert data["variant"] == "pick_results"
    assert data["card_count"] == 2

    data = client.post("/preview/compose", json={"parent_id": "alpha"}).json()
    assert data["variant"] == "compose"
    assert any(line["text"] == "## Beta" for line in data["lines"])

    response = client.post("/preview/compose", json={"parent_id": "missing"})
    assert response.status_code == 404
