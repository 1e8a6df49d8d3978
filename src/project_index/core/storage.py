"""Key-value storage for preferences and the recency list.

All values are strings. ``update`` is the one read-modify-write primitive:
each backend runs it atomically against its own key space so concurrent
callers never lose updates.
"""

import asyncio
import json
import os
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from redis.asyncio import Redis
from redis.exceptions import WatchError

from src.project_index.core.config import get_settings
from src.project_index.core.logging import get_logger
from src.project_index.core.redis import get_redis

logger = get_logger(__name__)

# Returning None from an updater means "leave the stored value alone"
Updater = Callable[[str | None], str | None]

# WATCH conflicts tolerated before RedisStore.update gives up
MAX_UPDATE_ATTEMPTS = 10


class KeyValueStore(Protocol):
    """Minimal string key-value storage used by the client core."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def update(self, key: str, fn: Updater) -> str | None:
        """Atomically apply ``fn`` to the current value and store the result.

        Returns the value stored under ``key`` once the call completes.
        """
        ...


class MemoryStore:
    """In-process store. Used in tests and as the ephemeral fallback."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = asyncio.Lock()
        self.writes = 0

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            self._data[key] = value
            self.writes += 1

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def update(self, key: str, fn: Updater) -> str | None:
        async with self._lock:
            current = self._data.get(key)
            new = fn(current)
            if new is None:
                return current
            self._data[key] = new
            self.writes += 1
            return new


class JsonFileStore:
    """All keys kept in one JSON object file.

    A missing or corrupt file reads as empty; the next write replaces it.
    File I/O runs in a worker thread.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = asyncio.Lock()

    def _load(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning(
                "State file unreadable, treating as empty", path=str(self.path), error=str(e)
            )
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("State file is not valid JSON, treating as empty", path=str(self.path))
            return {}
        if not isinstance(data, dict):
            logger.warning(
                "State file is not a JSON object, treating as empty", path=str(self.path)
            )
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.path)

    async def get(self, key: str) -> str | None:
        async with self._lock:
            data = await asyncio.to_thread(self._load)
            return data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._load)
            data[key] = value
            await asyncio.to_thread(self._dump, data)

    async def delete(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._load)
            if data.pop(key, None) is not None:
                await asyncio.to_thread(self._dump, data)

    async def update(self, key: str, fn: Updater) -> str | None:
        async with self._lock:
            data = await asyncio.to_thread(self._load)
            current = data.get(key)
            new = fn(current)
            if new is None:
                return current
            data[key] = new
            await asyncio.to_thread(self._dump, data)
            return new


class RedisStore:
    """Store backed by Redis, with keys namespaced under a prefix."""

    def __init__(
        self,
        redis: Redis,
        prefix: str = "project_index",
        max_update_attempts: int = MAX_UPDATE_ATTEMPTS,
    ) -> None:
        self._redis = redis
        self.prefix = prefix
        self.max_update_attempts = max_update_attempts

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get(self, key: str) -> str | None:
        return await self._redis.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        await self._redis.set(self._key(key), value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(self._key(key))

    async def update(self, key: str, fn: Updater) -> str | None:
        """Optimistic WATCH/MULTI transaction, retried on concurrent writes.

        Raises:
            WatchError: If the key kept changing for ``max_update_attempts`` tries.
        """
        redis_key = self._key(key)
        async with self._redis.pipeline(transaction=True) as pipe:
            for attempt in range(1, self.max_update_attempts + 1):
                try:
                    await pipe.watch(redis_key)
                    current = await pipe.get(redis_key)
                    new = fn(current)
                    if new is None:
                        await pipe.unwatch()
                        return current
                    pipe.multi()
                    pipe.set(redis_key, new)
                    await pipe.execute()
                    return new
                except WatchError:
                    if attempt == self.max_update_attempts:
                        logger.error("Update abandoned after repeated conflicts", key=key)
                        raise
                    logger.debug("Concurrent write detected, retrying update", key=key)
        raise WatchError(f"Update of {key!r} was never attempted")


async def get_store() -> KeyValueStore:
    """Get the configured store: Redis when reachable, else the JSON state file."""
    redis = await get_redis()
    if redis is not None:
        return RedisStore(redis)
    settings = get_settings()
    return JsonFileStore(settings.state_file_path)
