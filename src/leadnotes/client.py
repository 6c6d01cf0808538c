from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import urlsplit

import httpx

from leadnotes.config import Settings
from leadnotes.errors import NotesClientError, ParseError, ValidationError
from leadnotes.models import INDEX_KEY, normalize_note, note_key
from leadnotes.storage import JsonFileArea, KeyValueArea

logger = logging.getLogger(__name__)

API_PATH = "/api/notes"
LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}


class NotesBackend:
    """list / get / upsert / delete over note records."""

    def list_notes(self) -> list[dict]:
        raise NotImplementedError

    def get_note(self, place_id: str) -> dict:
        raise NotImplementedError

    def upsert_note(self, data: dict) -> dict:
        raise NotImplementedError

    def delete_note(self, place_id: str) -> dict:
        raise NotImplementedError


class LocalNotesBackend(NotesBackend):
    """Notes kept in a local key/value area; the index is a JSON array."""

    def __init__(self, area: KeyValueArea) -> None:
        self.area = area

    def _index(self) -> list[str]:
        raw = self.area.get_item(INDEX_KEY)
        try:
            ids = json.loads(raw or "[]")
        except ValueError:
            logger.warning("Local notes index is corrupt; treating it as empty")
            return []
        return [str(i) for i in ids] if isinstance(ids, list) else []

    def _set_index(self, ids: list[str]) -> None:
        self.area.set_item(INDEX_KEY, json.dumps(ids))

    @staticmethod
    def _parse(place_id: str, raw: str) -> dict:
        try:
            value = json.loads(raw)
        except ValueError as exc:
            raise ParseError(f"stored note {place_id} is not valid JSON") from exc
        if not isinstance(value, dict) or not value:
            raise ParseError(f"stored note {place_id} is not a JSON object")
        return value

    def list_notes(self) -> list[dict]:
        notes = []
        for place_id in self._index():
            raw = self.area.get_item(note_key(place_id))
            if not raw:
                continue
            try:
                notes.append(self._parse(place_id, raw))
            except ParseError:
                logger.warning("Skipping unreadable local note %s", place_id)
        return notes

    def get_note(self, place_id: str) -> dict:
        raw = self.area.get_item(note_key(place_id))
        return self._parse(place_id, raw) if raw else {}

    def upsert_note(self, data: dict) -> dict:
        record = normalize_note(data).to_dict()
        place_id = record["placeId"]
        self.area.set_item(note_key(place_id), json.dumps(record))
        ids = self._index()
        if place_id not in ids:
            ids.append(place_id)
        self._set_index(ids)
        return record

    def delete_note(self, place_id: str) -> dict:
        if not place_id:
            raise ValidationError("placeId is required")
        self.area.remove_item(note_key(place_id))
        self._set_index([i for i in self._index() if i != place_id])
        return {"ok": True}


class RemoteNotesBackend(NotesBackend):
    """Talks to the notes API over HTTP.

    A successful response that is not JSON (the API route is not being
    served) is answered by ``fallback`` for that call only.
    """

    def __init__(
        self,
        api_url: str,
        fallback: LocalNotesBackend,
        *,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.fallback = fallback
        self._client = client or httpx.Client(timeout=timeout)

    def _request(self, method: str, **kwargs: Any) -> tuple[bool, Any]:
        try:
            resp = self._client.request(
                method,
                self.api_url + API_PATH,
                headers={"Content-Type": "application/json"},
                **kwargs,
            )
        except httpx.HTTPError as exc:
            raise NotesClientError(f"notes API request failed: {exc}") from exc

        if not resp.is_success:
            raise NotesClientError(resp.text or f"notes API returned HTTP {resp.status_code}")
        if "application/json" not in resp.headers.get("content-type", ""):
            logger.info("Notes API answered without JSON; using local notes for this call")
            return False, None
        try:
            return True, resp.json()
        except ValueError as exc:
            raise NotesClientError(f"notes API returned invalid JSON: {exc}") from exc

    def list_notes(self) -> list[dict]:
        ok, data = self._request("GET")
        return data if ok else self.fallback.list_notes()

    def get_note(self, place_id: str) -> dict:
        ok, data = self._request("GET", params={"placeId": place_id})
        return data if ok else self.fallback.get_note(place_id)

    def upsert_note(self, data: dict) -> dict:
        ok, record = self._request("POST", content=json.dumps(data))
        return record if ok else self.fallback.upsert_note(data)

    def delete_note(self, place_id: str) -> dict:
        ok, data = self._request("DELETE", params={"placeId": place_id})
        return data if ok else self.fallback.delete_note(place_id)


def resolve_mode(settings: Settings) -> str:
    if settings.client_mode != "auto":
        return settings.client_mode
    host = urlsplit(settings.api_url).hostname or ""
    return "local" if host in LOCAL_HOSTS else "remote"


def create_backend(settings: Settings, area: KeyValueArea | None = None) -> NotesBackend:
    """Pick the notes backend once, from configuration."""
    local = LocalNotesBackend(area or JsonFileArea(settings.local_path))
    mode = resolve_mode(settings)
    logger.debug("Notes client mode: %s", mode)
    if mode == "local":
        return local
    return RemoteNotesBackend(settings.api_url, local)
