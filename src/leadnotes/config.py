from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DATA_DIR = Path.home() / ".leadnotes"
DEFAULT_LOCAL_PATH = DATA_DIR / "notes.json"

STORE_BACKENDS = ("rest", "redis", "memory")
CLIENT_MODES = ("remote", "local", "auto")


def _getenv_str(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _getenv_int(name: str, default: int) -> int:
    v = os.getenv(name, str(default)).strip()
    try:
        return int(v)
    except ValueError as err:
        raise ValueError(f"Environment variable {name} must be an integer; got {v!r}") from err


def _getenv_float(name: str, default: float) -> float:
    v = os.getenv(name, str(default)).strip()
    try:
        return float(v)
    except ValueError as err:
        raise ValueError(f"Environment variable {name} must be a number; got {v!r}") from err


def _getenv_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    v = os.getenv(name, default).strip().lower() or default
    if v not in choices:
        raise ValueError(
            f"Environment variable {name} must be one of {', '.join(choices)}; got {v!r}"
        )
    return v


@dataclass(frozen=True)
class Settings:
    # Server-side key-value store
    kv_rest_api_url: str = ""
    kv_rest_api_token: str = ""
    kv_url: str = ""
    kv_timeout_seconds: float = 10.0
    store_backend: str = "rest"

    # Client side
    client_mode: str = "auto"
    api_url: str = "http://127.0.0.1:8000"
    local_path: Path = DEFAULT_LOCAL_PATH

    # Notes page table refresh; 0 disables polling
    poll_seconds: int = 30


def load_settings() -> Settings:
    """Read settings from the environment (call after ``load_dotenv``)."""
    local_path = _getenv_str("NOTES_LOCAL_PATH")
    return Settings(
        kv_rest_api_url=_getenv_str("KV_REST_API_URL").rstrip("/"),
        kv_rest_api_token=_getenv_str("KV_REST_API_TOKEN"),
        kv_url=_getenv_str("KV_URL"),
        kv_timeout_seconds=_getenv_float("KV_TIMEOUT_SECONDS", 10.0),
        store_backend=_getenv_choice("NOTES_STORE_BACKEND", "rest", STORE_BACKENDS),
        client_mode=_getenv_choice("NOTES_CLIENT_MODE", "auto", CLIENT_MODES),
        api_url=_getenv_str("NOTES_API_URL", "http://127.0.0.1:8000").rstrip("/"),
        local_path=Path(local_path).expanduser() if local_path else DEFAULT_LOCAL_PATH,
        poll_seconds=max(0, _getenv_int("NOTES_POLL_SECONDS", 30)),
    )
