from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from leadnotes.errors import MethodNotAllowed, NotesError, ValidationError
from leadnotes.repository import NoteRepository

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,DELETE,OPTIONS",
    "Access-Control-Allow-Headers": "content-type",
}

router = APIRouter(prefix="/api/notes", tags=["api"])


def _repo(request: Request) -> NoteRepository:
    return request.app.state.notes


def _json(status_code: int, data) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=data, headers=CORS_HEADERS)


async def notes_error_handler(request: Request, exc: NotesError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _json(exc.status_code, {"error": exc.message})


async def api_http_error_handler(request: Request, exc: StarletteHTTPException):
    """Keep the JSON + CORS shape for framework errors under /api."""
    if not request.url.path.startswith("/api/"):
        return await http_exception_handler(request, exc)
    if exc.status_code == 405:
        return _json(405, {"error": "Method not allowed"})
    return _json(exc.status_code, {"error": str(exc.detail)})


@router.options("")
def preflight():
    return _json(200, {})


@router.get("")
def get_notes(request: Request, placeId: str | None = None):
    if placeId:
        return _json(200, _repo(request).get_note(placeId))
    return _json(200, _repo(request).list_notes())


@router.post("")
async def upsert_note(request: Request):
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValidationError("request body must be valid JSON") from exc
    record = await run_in_threadpool(_repo(request).upsert_note, body)
    return _json(200, record)


@router.delete("")
def delete_note(request: Request, placeId: str | None = None):
    return _json(200, _repo(request).delete_note(placeId))


@router.api_route("", methods=["PUT", "PATCH"])
def unsupported(request: Request):
    raise MethodNotAllowed("Method not allowed")
