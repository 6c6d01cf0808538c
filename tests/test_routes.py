from __future__ import annotations

import inspect

import pytest
from fastapi.testclient import TestClient

from leadnotes.config import Settings
from leadnotes.kv import MemoryKVStore, RestKVStore
from leadnotes.web import create_app


@pytest.fixture
def store():
    return MemoryKVStore()


@pytest.fixture
def client(store):
    app = create_app(Settings(store_backend="memory", poll_seconds=15), store=store)
    return TestClient(app)


def _assert_cors(resp):
    assert resp.headers["access-control-allow-origin"] == "*"
    assert resp.headers["access-control-allow-methods"] == "GET,POST,DELETE,OPTIONS"
    assert resp.headers["access-control-allow-headers"] == "content-type"


def test_index_redirects_to_notes(client):
    resp = client.get("/", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/notes"


# --- /api/notes ---

def test_preflight(client):
    resp = client.options("/api/notes")
    assert resp.status_code == 200
    assert resp.json() == {}
    _assert_cors(resp)


def test_list_empty(client):
    resp = client.get("/api/notes")
    assert resp.status_code == 200
    assert resp.json() == []
    _assert_cors(resp)


def test_note_lifecycle(client):
    resp = client.post(
        "/api/notes", json={"placeId": "ChIJ123", "name": "Cafe Sol", "status": "contacted"}
    )
    assert resp.status_code == 200
    _assert_cors(resp)
    saved = resp.json()
    updated_at = saved.pop("updatedAt")
    assert updated_at.endswith("Z")
    assert saved == {
        "placeId": "ChIJ123",
        "name": "Cafe Sol",
        "address": "",
        "note": "",
        "status": "contacted",
    }

    resp = client.get("/api/notes", params={"placeId": "ChIJ123"})
    assert resp.json() == {**saved, "updatedAt": updated_at}

    resp = client.get("/api/notes")
    assert [n["placeId"] for n in resp.json()] == ["ChIJ123"]

    resp = client.delete("/api/notes", params={"placeId": "ChIJ123"})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    _assert_cors(resp)

    resp = client.get("/api/notes", params={"placeId": "ChIJ123"})
    assert resp.json() == {}
    assert client.get("/api/notes").json() == []


def test_overwrite_keeps_single_record(client):
    client.post("/api/notes", json={"placeId": "p1", "note": "first"})
    client.post("/api/notes", json={"placeId": "p1", "note": "second"})
    notes = client.get("/api/notes").json()
    assert len(notes) == 1
    assert notes[0]["note"] == "second"
    assert client.get("/api/notes", params={"placeId": "p1"}).json()["note"] == "second"


def test_post_without_place_id(client, store):
    resp = client.post("/api/notes", json={"name": "Nameless"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "placeId is required"}
    _assert_cors(resp)
    assert store.values == {}
    assert store.sets == {}


def test_post_invalid_json(client):
    resp = client.post(
        "/api/notes", content="not json", headers={"content-type": "application/json"}
    )
    assert resp.status_code == 400


def test_delete_without_place_id(client, store):
    store.set("note:p1", '{"placeId": "p1"}')
    store.sadd("notes:index", "p1")
    resp = client.delete("/api/notes")
    assert resp.status_code == 400
    assert resp.json() == {"error": "placeId is required"}
    assert "note:p1" in store.values
    assert store.smembers("notes:index") == ["p1"]


def test_delete_unknown_is_ok(client):
    resp = client.delete("/api/notes", params={"placeId": "ghost"})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


@pytest.mark.parametrize("method", ["PUT", "PATCH", "TRACE"])
def test_unsupported_method(client, store, method):
    resp = client.request(method, "/api/notes", json={"placeId": "p1"})
    assert resp.status_code == 405
    assert resp.json() == {"error": "Method not allowed"}
    _assert_cors(resp)
    assert store.values == {}


def test_missing_kv_config_is_500():
    app = create_app(Settings(), store=RestKVStore("", ""))
    client = TestClient(app)
    resp = client.get("/api/notes")
    assert resp.status_code == 500
    assert "KV_REST_API_URL" in resp.json()["error"]
    _assert_cors(resp)


def test_store_error_is_500(client, store, monkeypatch):
    def boom(key):
        raise ConnectionError("kv unreachable")

    monkeypatch.setattr(store, "smembers", boom)
    resp = client.get("/api/notes")
    assert resp.status_code == 500
    assert resp.json() == {"error": "kv unreachable"}


# --- notes page ---

def test_notes_page_empty(client):
    resp = client.get("/notes")
    assert resp.status_code == 200
    assert "No notes yet" in resp.text
    assert 'hx-trigger="every 15s"' in resp.text


def test_save_note_from_form(client):
    resp = client.post(
        "/notes",
        data={"placeId": "p1", "name": "Cafe Sol", "address": "1 Main St", "note": "hi", "status": "won"},
        follow_redirects=False,
    )
    assert resp.status_code == 303
    assert resp.headers["location"] == "/notes"

    resp = client.get("/notes")
    assert "Cafe Sol" in resp.text
    assert "1 Main St" in resp.text


def test_save_note_from_form_without_place_id(client, store):
    resp = client.post("/notes", data={"name": "Cafe Sol"})
    assert resp.status_code == 400
    assert "placeId is required" in resp.text
    assert store.values == {}


def test_edit_prefill(client):
    client.post("/api/notes", json={"placeId": "p1", "name": "Cafe Sol", "note": "ring at 9"})
    resp = client.get("/notes", params={"placeId": "p1"})
    assert "ring at 9" in resp.text

    resp = client.get("/notes", params={"placeId": "new-one", "name": "Fresh Bakery"})
    assert 'value="Fresh Bakery"' in resp.text


def test_notes_filtering(client):
    client.post("/api/notes", json={"placeId": "p1", "name": "Cafe Sol", "status": "won"})
    client.post("/api/notes", json={"placeId": "p2", "name": "Book Nook", "status": "lost"})

    resp = client.get("/notes/table", params={"status": "won"})
    assert resp.status_code == 200
    assert "Cafe Sol" in resp.text
    assert "Book Nook" not in resp.text

    resp = client.get("/notes/table", params={"search": "nook"})
    assert "Book Nook" in resp.text
    assert "Cafe Sol" not in resp.text


def test_delete_from_page(client):
    client.post("/api/notes", json={"placeId": "p1", "name": "Cafe Sol"})
    resp = client.delete("/notes/p1")
    assert resp.status_code == 200
    assert resp.headers["hx-redirect"] == "/notes"
    assert client.get("/api/notes").json() == []


def test_export_csv(client):
    client.post("/api/notes", json={"placeId": "p1", "name": "Cafe, Sol", "note": "x"})
    resp = client.get("/notes/export.csv")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "attachment" in resp.headers["content-disposition"]
    lines = resp.text.splitlines()
    assert lines[0] == "Place ID,Name,Address,Status,Updated,Note"
    assert lines[1].startswith('p1,"Cafe, Sol",,new,')


def test_list_with_corrupt_value_still_200(client, store):
    client.post("/api/notes", json={"placeId": "p1"})
    store.set("note:broken", "{oops")
    store.sadd("notes:index", "broken")
    resp = client.get("/api/notes")
    assert resp.status_code == 200
    assert [n["placeId"] for n in resp.json()] == ["p1"]


def test_page_query_string_is_encoded(client):
    resp = client.get("/notes", params={"status": "won&x=1", "sort": "name"})
    assert resp.status_code == 200
    assert "status=won%26x%3D1" in resp.text
    assert "status=won&amp;x=1" not in resp.text


def test_store_handlers_run_in_threadpool():
    from leadnotes.routes import api, notes

    for fn in (api.get_notes, api.delete_note, notes.list_notes, notes.save_note, notes.export_csv):
        assert not inspect.iscoroutinefunction(fn)
