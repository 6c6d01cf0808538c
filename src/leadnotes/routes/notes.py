from __future__ import annotations

from html import escape

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from leadnotes.errors import NotesError
from leadnotes.export import SORT_FIELDS, filter_notes, notes_to_csv
from leadnotes.models import DEFAULT_STATUS, STATUSES

router = APIRouter(prefix="/notes", tags=["notes"])


def _templates(request: Request):
    return request.app.state.templates


def _filtered(request: Request, search: str, status: str, sort: str, asc: bool) -> list[dict]:
    if sort not in SORT_FIELDS:
        sort = "updated"
    notes = request.app.state.notes.list_notes()
    return filter_notes(notes, search=search, status=status, sort_by=sort, ascending=asc)


def _page(request: Request, current: dict, error: str | None = None, status_code: int = 200, **filters):
    search = filters.get("search", "")
    status = filters.get("status", "all")
    sort = filters.get("sort", "updated")
    asc = filters.get("asc", False)
    try:
        notes = _filtered(request, search, status, sort, asc)
    except NotesError as exc:
        notes = []
        error = error or exc.message
        status_code = exc.status_code
    return _templates(request).TemplateResponse(
        request,
        "notes/list.html",
        {
            "notes": notes,
            "current": current,
            "error": error,
            "statuses": STATUSES,
            "search": search,
            "status": status,
            "sort": sort,
            "asc": asc,
            "poll_seconds": request.app.state.settings.poll_seconds,
            "active": "notes",
        },
        status_code=status_code,
    )


@router.get("", response_class=HTMLResponse)
def list_notes(
    request: Request,
    search: str = "",
    status: str = "all",
    sort: str = "updated",
    asc: bool = False,
    placeId: str = "",
    name: str = "",
    address: str = "",
):
    current = {"placeId": placeId, "name": name, "address": address, "note": "", "status": DEFAULT_STATUS}
    error = None
    if placeId:
        # Editing an existing note; fall back to the prefill from the search results.
        try:
            current = request.app.state.notes.get_note(placeId) or current
        except NotesError as exc:
            error = exc.message
    return _page(request, current, error, search=search, status=status, sort=sort, asc=asc)


@router.get("/table", response_class=HTMLResponse)
def notes_table(
    request: Request, search: str = "", status: str = "all", sort: str = "updated", asc: bool = False
):
    try:
        notes = _filtered(request, search, status, sort, asc)
    except NotesError as exc:
        return HTMLResponse(f'<div class="error" role="alert">{escape(exc.message)}</div>', status_code=exc.status_code)
    return _templates(request).TemplateResponse(request, "notes/_table.html", {"notes": notes})


@router.get("/export.csv")
def export_csv(
    request: Request, search: str = "", status: str = "all", sort: str = "updated", asc: bool = False
):
    notes = _filtered(request, search, status, sort, asc)
    return Response(
        notes_to_csv(notes),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="notes.csv"'},
    )


@router.post("")
def save_note(
    request: Request,
    placeId: str = Form(""),
    name: str = Form(""),
    address: str = Form(""),
    note: str = Form(""),
    status: str = Form(DEFAULT_STATUS),
):
    data = {"placeId": placeId, "name": name, "address": address, "note": note, "status": status}
    try:
        request.app.state.notes.upsert_note(data)
    except NotesError as exc:
        return _page(request, data, exc.message, status_code=exc.status_code)
    return RedirectResponse(url="/notes", status_code=303)


@router.delete("/{place_id}")
def delete_note(request: Request, place_id: str):
    try:
        request.app.state.notes.delete_note(place_id)
    except NotesError as exc:
        return HTMLResponse(f'<div class="error" role="alert">{escape(exc.message)}</div>', status_code=exc.status_code)
    return HTMLResponse(headers={"HX-Redirect": "/notes"})
