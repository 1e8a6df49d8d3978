"""Endpoint resolution: config file first, then the stored preference."""

import asyncio
import json
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from src.project_index.core.errors import NotConfiguredError
from src.project_index.core.logging import get_logger
from src.project_index.core.storage import KeyValueStore
from src.project_index.core.validators import validate_base_url
from src.project_index.models.enums import EndpointSource
from src.project_index.schemas.endpoint import ConfigArtifact, EndpointInfo

logger = get_logger(__name__)


class ResolverStrategy(Protocol):
    """One source of a base URL. Returns None when it has nothing to offer."""

    async def resolve(self) -> EndpointInfo | None: ...


class ConfigFileStrategy:
    """Reads the indexer's ``api-url.json``.

    Every failure (missing file, unreadable, bad JSON, bad URL) is a miss,
    never an error.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    async def resolve(self) -> EndpointInfo | None:
        try:
            raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            artifact = ConfigArtifact.model_validate(json.loads(raw))
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            logger.debug("Ignoring unusable config file", path=str(self.path), error=str(e))
            return None
        return EndpointInfo(url=artifact.url, source=EndpointSource.AUTO)


class PreferenceStrategy:
    """Reads the user's stored fallback URL."""

    def __init__(self, store: KeyValueStore, key: str) -> None:
        self.store = store
        self.key = key

    async def resolve(self) -> EndpointInfo | None:
        value = await self.store.get(self.key)
        if value is None or not value.strip():
            return None
        return EndpointInfo(url=value.strip(), source=EndpointSource.PREFERENCE)


class EndpointResolver:
    """Tries each strategy in order and returns the first hit.

    Nothing is cached: every call resolves afresh, so edits to the config
    file or the preference take effect on the next operation.
    """

    def __init__(
        self,
        strategies: Sequence[ResolverStrategy],
        store: KeyValueStore | None = None,
        preference_key: str = "api-url",
    ) -> None:
        self.strategies = list(strategies)
        self.store = store
        self.preference_key = preference_key

    @classmethod
    def default(
        cls, store: KeyValueStore, config_path: Path, preference_key: str
    ) -> "EndpointResolver":
        """Config file (auto-discovery) first, then the stored preference."""
        return cls(
            [ConfigFileStrategy(config_path), PreferenceStrategy(store, preference_key)],
            store=store,
            preference_key=preference_key,
        )

    async def resolve(self) -> EndpointInfo:
        """Resolve the effective base URL.

        Raises:
            NotConfiguredError: If no strategy produced a URL.
        """
        for strategy in self.strategies:
            endpoint = await strategy.resolve()
            if endpoint is not None:
                logger.debug("Endpoint resolved", url=endpoint.url, source=endpoint.source.value)
                return endpoint
        raise NotConfiguredError()

    async def resolve_optional(self) -> EndpointInfo | None:
        """Non-throwing variant for display-only contexts.

        Storage failures are logged and read as "not configured".
        """
        try:
            return await self.resolve()
        except NotConfiguredError:
            return None
        except Exception as e:
            logger.warning("Endpoint resolution failed", error=str(e))
            return None

    async def set_preference(self, url: str) -> str:
        """Validate and store the fallback URL. Returns the stored value.

        Raises:
            InvalidURLError: If the URL is malformed.
        """
        url = validate_base_url(url)
        await self._require_store().set(self.preference_key, url)
        logger.info("Preference URL stored", url=url)
        return url

    async def clear_preference(self) -> None:
        await self._require_store().delete(self.preference_key)
        logger.info("Preference URL cleared")

    def _require_store(self) -> KeyValueStore:
        if self.store is None:
            raise NotConfiguredError("No preference storage configured")
        return self.store
