from __future__ import annotations

import logging
from typing import Any

import httpx
from redis import Redis
from redis.exceptions import RedisError

from leadnotes.config import Settings
from leadnotes.errors import ConfigurationError, StoreError

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Operations the notes server needs from a key-value store.

    Values are strings; each call is atomic on its own.
    """

    def get(self, key: str) -> str | None:
        raise NotImplementedError

    def mget(self, keys: list[str]) -> list[str | None]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def smembers(self, key: str) -> list[str]:
        raise NotImplementedError

    def sadd(self, key: str, member: str) -> None:
        raise NotImplementedError

    def srem(self, key: str, member: str) -> None:
        raise NotImplementedError


class RestKVStore(KeyValueStore):
    """Upstash-compatible REST store: one JSON command array per request."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url
        self.token = token
        self.timeout = timeout
        self._client = client

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def command(self, *args: str) -> Any:
        if not self.base_url or not self.token:
            raise ConfigurationError("KV_REST_API_URL and KV_REST_API_TOKEN must be set")

        try:
            resp = self._http().post(
                self.base_url,
                json=list(args),
                headers={"Authorization": f"Bearer {self.token}"},
            )
        except httpx.HTTPError as exc:
            raise StoreError(f"{args[0]} failed: {exc}") from exc

        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if resp.status_code >= 400 or not isinstance(payload, dict):
            detail = payload.get("error") if isinstance(payload, dict) else resp.text
            raise StoreError(detail or f"{args[0]} failed with HTTP {resp.status_code}")
        if "error" in payload:
            raise StoreError(str(payload["error"]))
        return payload.get("result")

    def get(self, key: str) -> str | None:
        return self.command("GET", key)

    def mget(self, keys: list[str]) -> list[str | None]:
        return list(self.command("MGET", *keys) or [])

    def set(self, key: str, value: str) -> None:
        self.command("SET", key, value)

    def delete(self, key: str) -> None:
        self.command("DEL", key)

    def smembers(self, key: str) -> list[str]:
        return list(self.command("SMEMBERS", key) or [])

    def sadd(self, key: str, member: str) -> None:
        self.command("SADD", key, member)

    def srem(self, key: str, member: str) -> None:
        self.command("SREM", key, member)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()


class RedisKVStore(KeyValueStore):
    """Native redis client; responses are decoded to ``str``."""

    def __init__(self, url: str = "", client: Redis | None = None) -> None:
        self.url = url
        self._client = client

    @property
    def client(self) -> Redis:
        if self._client is None:
            if not self.url:
                raise ConfigurationError("KV_URL must be set for the redis backend")
            self._client = Redis.from_url(self.url, decode_responses=True)
        return self._client

    def _call(self, name: str, *args: Any) -> Any:
        client = self.client
        try:
            return getattr(client, name)(*args)
        except RedisError as exc:
            raise StoreError(f"{name.upper()} failed: {exc}") from exc

    def get(self, key: str) -> str | None:
        return self._call("get", key)

    def mget(self, keys: list[str]) -> list[str | None]:
        return list(self._call("mget", keys))

    def set(self, key: str, value: str) -> None:
        self._call("set", key, value)

    def delete(self, key: str) -> None:
        self._call("delete", key)

    def smembers(self, key: str) -> list[str]:
        return list(self._call("smembers", key))

    def sadd(self, key: str, member: str) -> None:
        self._call("sadd", key, member)

    def srem(self, key: str, member: str) -> None:
        self._call("srem", key, member)


class MemoryKVStore(KeyValueStore):
    """In-process store for local development and tests."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def mget(self, keys: list[str]) -> list[str | None]:
        return [self.values.get(k) for k in keys]

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def delete(self, key: str) -> None:
        self.values.pop(key, None)

    def smembers(self, key: str) -> list[str]:
        return list(self.sets.get(key, ()))

    def sadd(self, key: str, member: str) -> None:
        self.sets.setdefault(key, set()).add(member)

    def srem(self, key: str, member: str) -> None:
        self.sets.get(key, set()).discard(member)


def create_store(settings: Settings) -> KeyValueStore:
    if settings.store_backend == "memory":
        logger.warning("Using in-memory note store; notes are lost on restart")
        return MemoryKVStore()
    if settings.store_backend == "redis":
        return RedisKVStore(settings.kv_url)
    return RestKVStore(
        settings.kv_rest_api_url,
        settings.kv_rest_api_token,
        timeout=settings.kv_timeout_seconds,
    )
