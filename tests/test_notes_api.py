"""HTTP tests for /notes."""

from unittest.mock import AsyncMock, patch

import pytest


@pytest.fixture(autouse=True)
def categorize():
    with patch(
        "recall.routers.notes.categorize_note", new=AsyncMock(return_value="Linear algebra")
    ) as mock:
        yield mock


def test_create_note(client, categorize):
    res = client.post(
        "/notes/",
        json={"content": "Eigenvectors keep their direction", "tags": ["la"]},
    )
    assert res.status_code == 201
    data = res.json()
    assert data["category"] == "Linear algebra"
    assert data["current_interval"] == 1
    assert data["easiness_factor"] == 2.5
    assert data["status"] == "active"
    assert data["tags"] == ["la"]
    categorize.assert_awaited_once_with("Eigenvectors keep their direction")


@pytest.mark.parametrize("body", [{}, {"content": ""}, {"content": "   "}])
def test_create_note_requires_content(client, categorize, body):
    res = client.post("/notes/", json=body)
    assert res.status_code == 422
    categorize.assert_not_awaited()


def test_get_update_delete_note(client):
    note_id = client.post("/notes/", json={"content": "x"}).json()["id"]

    assert client.get(f"/notes/{note_id}").json()["content"] == "x"

    res = client.patch(f"/notes/{note_id}", json={"status": "suspended", "content": "y"})
    assert res.status_code == 200
    assert res.json()["status"] == "suspended"
    assert res.json()["content"] == "y"

    assert client.delete(f"/notes/{note_id}").status_code == 204
    assert client.get(f"/notes/{note_id}").status_code == 404
    assert client.delete(f"/notes/{note_id}").status_code == 404


def test_update_rejects_blank_content_and_bad_status(client):
    note_id = client.post("/notes/", json={"content": "x"}).json()["id"]

    assert client.patch(f"/notes/{note_id}", json={"content": " "}).status_code == 400
    assert client.patch(f"/notes/{note_id}", json={"status": "deleted"}).status_code == 422
    assert client.patch("/notes/999", json={"content": "z"}).status_code == 404


def test_list_notes(client):
    for text in ("a", "b", "c"):
        client.post("/notes/", json={"content": text})

    res = client.get("/notes/", params={"limit": 2})
    data = res.json()
    assert data["total"] == 3
    assert len(data["items"]) == 2

    assert client.get("/notes/", params={"status": "archived"}).json()["total"] == 0
