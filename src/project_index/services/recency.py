"""Recently opened project IDs, persisted as a JSON array under one key."""

import json
from collections.abc import Callable, Collection

from src.project_index.core.logging import get_logger
from src.project_index.core.storage import KeyValueStore

logger = get_logger(__name__)

RECENCY_KEY = "recent-project-ids"
MAX_RECENT = 10  # Stored; the display count is usually smaller


def decode_recent_ids(raw: str | None) -> list[str]:
    """Decode the stored list. Absent or corrupt data reads as empty."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Recency list is not valid JSON, ignoring it")
        return []
    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        logger.warning("Recency list has unexpected shape, ignoring it")
        return []
    return data


def encode_recent_ids(ids: list[str]) -> str:
    return json.dumps(ids)


class RecencyStore:
    """Most-recent-first, deduplicated, capped list of project IDs.

    ``add`` and ``prune`` each run as a single atomic read-modify-write in the
    backing store, so concurrent callers can't lose each other's updates.
    """

    def __init__(
        self, store: KeyValueStore, key: str = RECENCY_KEY, capacity: int = MAX_RECENT
    ) -> None:
        self.store = store
        self.key = key
        self.capacity = capacity

    async def get(self) -> list[str]:
        return decode_recent_ids(await self.store.get(self.key))

    async def add(self, project_id: str) -> list[str]:
        """Move ``project_id`` to the front and persist. Returns the new list."""

        def _push(raw: str | None) -> str:
            current = decode_recent_ids(raw)
            updated = [project_id, *(i for i in current if i != project_id)][: self.capacity]
            return encode_recent_ids(updated)

        stored = await self.store.update(self.key, _push)
        return decode_recent_ids(stored)

    async def prune(
        self,
        valid_ids: Collection[str],
        *,
        still_current: Callable[[], bool] | None = None,
    ) -> list[str]:
        """Drop IDs not in ``valid_ids``. Writes only when something was removed.

        ``still_current`` is checked inside the atomic update; when it returns
        False the stored list is left untouched.
        """
        valid = set(valid_ids)
        removed: list[str] = []

        def _prune(raw: str | None) -> str | None:
            if still_current is not None and not still_current():
                return None
            current = decode_recent_ids(raw)
            kept = [i for i in current if i in valid]
            if len(kept) == len(current):
                return None
            removed[:] = [i for i in current if i not in valid]
            return encode_recent_ids(kept)

        stored = await self.store.update(self.key, _prune)
        if removed:
            logger.info("Pruned stale recent projects", removed=len(removed))
        return decode_recent_ids(stored)

    async def clear(self) -> None:
        await self.store.delete(self.key)
