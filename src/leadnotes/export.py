from __future__ import annotations

import csv
import io
from datetime import datetime, timezone

from leadnotes.models import DEFAULT_STATUS

CSV_HEADERS = ["Place ID", "Name", "Address", "Status", "Updated", "Note"]
SORT_FIELDS = ("updated", "name", "status")

_EPOCH = datetime.fromtimestamp(0, timezone.utc)


def _parse_ts(value: str | None) -> datetime:
    if not value:
        return _EPOCH
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def filter_notes(
    notes: list[dict],
    search: str = "",
    status: str = "all",
    sort_by: str = "updated",
    ascending: bool = False,
) -> list[dict]:
    """Search, status-filter and sort notes the way the notes table shows them."""
    result = list(notes)

    if search:
        q = search.lower()
        result = [
            n
            for n in result
            if any(
                q in (n.get(field) or "").lower()
                for field in ("name", "address", "placeId", "note")
            )
        ]

    if status and status != "all":
        result = [n for n in result if (n.get("status") or DEFAULT_STATUS) == status]

    def key(n: dict):
        if sort_by == "name":
            return (n.get("name") or "").lower()
        if sort_by == "status":
            return (n.get("status") or DEFAULT_STATUS).lower()
        return _parse_ts(n.get("updatedAt"))

    result.sort(key=key, reverse=not ascending)
    return result


def notes_to_csv(notes: list[dict]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for n in notes:
        writer.writerow(
            [
                n.get("placeId") or "",
                n.get("name") or "",
                n.get("address") or "",
                n.get("status") or DEFAULT_STATUS,
                n.get("updatedAt") or "",
                n.get("note") or "",
            ]
        )
    return buf.getvalue()
