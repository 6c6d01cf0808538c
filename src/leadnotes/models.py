from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from leadnotes.errors import ValidationError

STATUSES = ("new", "contacted", "follow_up", "won", "lost")
DEFAULT_STATUS = "new"

INDEX_KEY = "notes:index"


def note_key(place_id: str) -> str:
    return f"note:{place_id}"


def utc_now_iso() -> str:
    """Current UTC time as ``2026-01-31T09:15:00.123Z``."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class NoteRecord:
    place_id: str
    name: str = ""
    address: str = ""
    note: str = ""
    status: str = DEFAULT_STATUS
    updated_at: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "placeId": self.place_id,
            "name": self.name,
            "address": self.address,
            "note": self.note,
            "status": self.status,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NoteRecord:
        return cls(
            place_id=str(data.get("placeId") or ""),
            name=str(data.get("name") or ""),
            address=str(data.get("address") or ""),
            note=str(data.get("note") or ""),
            status=str(data.get("status") or DEFAULT_STATUS),
            updated_at=str(data.get("updatedAt") or ""),
        )


def normalize_note(data: Any, now: str | None = None) -> NoteRecord:
    """Build the record to store from an incoming payload.

    Missing text fields become ``""``, a missing status becomes ``new`` and
    ``updatedAt`` is always replaced with the write time.
    """
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    if not data.get("placeId"):
        raise ValidationError("placeId is required")

    status = data.get("status") or DEFAULT_STATUS
    if status not in STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")

    record = NoteRecord.from_dict(data)
    record.status = status
    record.updated_at = now or utc_now_iso()
    return record
