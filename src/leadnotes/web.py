from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from leadnotes.config import Settings, load_settings
from leadnotes.errors import NotesError
from leadnotes.kv import KeyValueStore, create_store
from leadnotes.repository import NoteRepository
from leadnotes.routes import api, notes

BASE_DIR = Path(__file__).resolve().parent


def create_app(settings: Settings | None = None, store: KeyValueStore | None = None) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(title="Lead Notes")
    app.mount("/static", StaticFiles(directory=BASE_DIR / "static"), name="static")

    templates = Jinja2Templates(directory=BASE_DIR / "templates")
    app.state.templates = templates
    app.state.settings = settings
    app.state.notes = NoteRepository(store or create_store(settings))

    app.add_exception_handler(NotesError, api.notes_error_handler)
    app.add_exception_handler(StarletteHTTPException, api.api_http_error_handler)

    app.include_router(api.router)
    app.include_router(notes.router)

    @app.get("/")
    async def index(request: Request):
        return RedirectResponse(url="/notes", status_code=302)

    return app
