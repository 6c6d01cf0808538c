from __future__ import annotations

import json
import logging
from typing import Any

from leadnotes.errors import NotesError, StoreError, ValidationError
from leadnotes.kv import KeyValueStore
from leadnotes.models import INDEX_KEY, normalize_note, note_key

logger = logging.getLogger(__name__)


class NoteRepository:
    """Note records over a key-value store.

    Layout: ``note:<placeId>`` holds the JSON record, ``notes:index`` is the
    set of known ids. Writes and deletes touch the record first and the index
    second; the pair is not atomic.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def _run(self, op: str, fn, *args):
        try:
            return fn(*args)
        except NotesError:
            raise
        except Exception as exc:
            logger.exception("Store operation %s failed", op)
            raise StoreError(str(exc) or exc.__class__.__name__) from exc

    @staticmethod
    def _decode(raw: Any) -> dict | None:
        if raw is None or raw == "":
            return None
        if isinstance(raw, dict):
            return raw
        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise StoreError(f"stored note is not valid JSON: {exc}") from exc
        return value if isinstance(value, dict) and value else None

    def list_notes(self) -> list[dict]:
        ids = self._run("smembers", self.store.smembers, INDEX_KEY)
        if not ids:
            return []

        values = self._run("mget", self.store.mget, [note_key(i) for i in ids])
        notes = []
        for place_id, raw in zip(ids, values):
            try:
                record = self._decode(raw)
            except StoreError as exc:
                logger.warning("Skipping unreadable note %s: %s", place_id, exc.message)
                continue
            if record is None:
                logger.warning("Index entry %s has no stored note; skipping", place_id)
                continue
            notes.append(record)
        return notes

    def get_note(self, place_id: str) -> dict:
        raw = self._run("get", self.store.get, note_key(place_id))
        return self._decode(raw) or {}

    def upsert_note(self, data: Any) -> dict:
        record = normalize_note(data).to_dict()
        place_id = record["placeId"]
        self._run("set", self.store.set, note_key(place_id), json.dumps(record))
        self._run("sadd", self.store.sadd, INDEX_KEY, place_id)
        logger.info("Saved note %s (%s)", place_id, record["status"])
        return record

    def delete_note(self, place_id: str | None) -> dict:
        if not place_id:
            raise ValidationError("placeId is required")
        self._run("delete", self.store.delete, note_key(place_id))
        self._run("srem", self.store.srem, INDEX_KEY, place_id)
        logger.info("Deleted note %s", place_id)
        return {"ok": True}
