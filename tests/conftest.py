"""Root test fixtures shared across all test types."""

import os

os.environ.setdefault("PROJECT_INDEX_APP_ENV", "testing")
# Never read the developer's real indexer config or state during tests
os.environ.setdefault("PROJECT_INDEX_CONFIG_FILE_PATH", "/nonexistent/api-url.json")
os.environ.setdefault("PROJECT_INDEX_STATE_FILE_PATH", "/nonexistent/state.json")

# ruff: noqa: E402 - Imports must be after env var setup
import json
from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest
from fakeredis import aioredis as fakeredis_aio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from redis.asyncio import Redis

from src.project_index.core import redis as redis_core
from src.project_index.core.config import get_settings
from src.project_index.core.storage import MemoryStore
from src.project_index.main import build_browser, create_app
from tests.helpers import RecordingBackend, json_response, make_index_client

get_settings.cache_clear()


# --- Storage Fixtures ---


@pytest.fixture
def memory_store() -> MemoryStore:
    """Fresh in-process key-value store."""
    return MemoryStore()


@pytest.fixture
async def fake_redis() -> AsyncGenerator[Redis]:
    """Provides a fakeredis client for testing.

    Returns an in-memory Redis implementation that behaves like
    a real Redis server but doesn't require external dependencies.
    """
    client = fakeredis_aio.FakeRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
async def mock_redis(fake_redis: Redis, monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[Redis]:
    """Patches get_redis() to return the fakeredis client."""
    redis_core.reset_redis_state()

    async def _get_fake_redis() -> Redis:
        return fake_redis

    monkeypatch.setattr("src.project_index.core.redis.get_redis", _get_fake_redis)
    monkeypatch.setattr("src.project_index.core.storage.get_redis", _get_fake_redis)
    yield fake_redis
    redis_core.reset_redis_state()


@pytest.fixture
async def mock_redis_unavailable(monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[None]:
    """Patches get_redis() to return None (simulates Redis unavailable)."""
    redis_core.reset_redis_state()

    async def _get_none() -> None:
        return None

    monkeypatch.setattr("src.project_index.core.redis.get_redis", _get_none)
    monkeypatch.setattr("src.project_index.core.storage.get_redis", _get_none)
    yield
    redis_core.reset_redis_state()


# --- Endpoint Fixtures ---


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Location of the indexer config file (not created)."""
    return tmp_path / ".chatgpt-indexer" / "api-url.json"


@pytest.fixture
def write_config(config_path: Path) -> Callable[[object], Path]:
    """Write a JSON value (or raw text) to the config file."""

    def _write(content: object) -> Path:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        text = content if isinstance(content, str) else json.dumps(content)
        config_path.write_text(text, encoding="utf-8")
        return config_path

    return _write


# --- API Fixtures ---

API_URL = "https://api.example.com"


@pytest.fixture
def index_backend() -> RecordingBackend:
    """Stub custom API backend with two projects and a /meta route."""
    return RecordingBackend(
        {
            ("GET", "/meta"): lambda request: json_response(
                {"version": "1.4.0", "name": "Test Index", "project_count": 2}
            ),
            ("GET", "/projects"): lambda request: json_response(
                {
                    "projects": [
                        {
                            "id": "p1",
                            "name": "Billing Q3",
                            "open_url": "https://chatgpt.com/g/p-p1",
                        },
                        {
                            "id": "p2",
                            "name": "Marketing",
                            "description": "campaign planning",
                            "open_url": "https://chatgpt.com/g/p-p2",
                        },
                    ]
                }
            ),
        }
    )


@pytest.fixture
async def api_app(
    index_backend: RecordingBackend, memory_store: MemoryStore
) -> AsyncGenerator[FastAPI]:
    """App wired to the stub backend, with the preference URL already set."""
    await memory_store.set(get_settings().preference_key, API_URL)
    index_client = make_index_client(index_backend)
    app = create_app()
    app.state.browser = build_browser(get_settings(), memory_store, index_client)
    yield app
    await app.state.browser.aclose()
    await index_client.aclose()


@pytest.fixture
async def client(api_app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """HTTP client for the app (lifespan is not run; the browser is pre-wired)."""
    async with AsyncClient(transport=ASGITransport(app=api_app), base_url="http://test") as ac:
        yield ac
