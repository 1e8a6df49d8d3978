"""Tests for the browsing session (src/project_index/services/browser.py)."""

import asyncio
from collections.abc import AsyncGenerator, Sequence

import httpx
import pytest

from src.project_index.core.errors import HttpError, NotConfiguredError, ProjectNotFoundError
from src.project_index.core.storage import MemoryStore, Updater
from src.project_index.models.enums import BackendFlavor, EndpointSource
from src.project_index.schemas.project import Project
from src.project_index.services.browser import ProjectBrowser
from src.project_index.services.endpoint_resolver import EndpointResolver, PreferenceStrategy
from src.project_index.services.recency import RecencyStore
from tests.helpers import RecordingBackend, json_response, make_index_client

pytestmark = pytest.mark.unit

API_URL = "https://api.example.com"


def record(project_id: str, name: str) -> dict[str, str]:
    return {"id": project_id, "name": name, "open_url": f"https://chatgpt.com/g/p-{project_id}"}


def projects_route(*records: dict[str, str]):
    return lambda request: json_response({"projects": list(records)})


class FakeIndexer:
    def __init__(self) -> None:
        self.indexed: list[list[str]] = []

    def index_projects(self, projects: Sequence[Project]) -> None:
        self.indexed.append([p.id for p in projects])

    def remove_project(self, project_id: str) -> None:
        pass

    def remove_all(self) -> None:
        self.indexed.clear()


class GatedStore(MemoryStore):
    """MemoryStore whose updates wait for ``gate`` before running."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        super().__init__(initial)
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()

    async def update(self, key: str, fn: Updater) -> str | None:
        self.entered.set()
        await self.gate.wait()
        return await super().update(key, fn)


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend(
        {
            ("GET", "/projects"): projects_route(
                record("p1", "Billing Q3"), record("p2", "Marketing")
            )
        }
    )


@pytest.fixture
async def browser(
    backend: RecordingBackend, memory_store: MemoryStore
) -> AsyncGenerator[ProjectBrowser]:
    await memory_store.set("api-url", API_URL)
    resolver = EndpointResolver([PreferenceStrategy(memory_store, "api-url")], store=memory_store)
    client = make_index_client(backend)
    browser = ProjectBrowser(resolver, client, RecencyStore(memory_store), recent_count=2)
    yield browser
    await browser.aclose()
    await client.aclose()


class TestRefresh:
    """Resolve, fetch, prune, publish."""

    async def test_publishes_projects(self, browser: ProjectBrowser) -> None:
        assert not browser.is_loaded

        projects = await browser.refresh()

        assert projects is not None
        assert [p.id for p in projects] == ["p1", "p2"]
        assert browser.projects == projects
        assert browser.is_loaded
        assert browser.flavor is BackendFlavor.CUSTOM_API
        assert browser.endpoint is not None
        assert browser.endpoint.source is EndpointSource.PREFERENCE

    async def test_prunes_stale_recency(
        self, browser: ProjectBrowser, memory_store: MemoryStore
    ) -> None:
        await browser.recency.add("p1")
        await browser.recency.add("deleted")

        await browser.refresh()

        assert await browser.recency.get() == ["p1"]

    async def test_notifies_indexer(self, browser: ProjectBrowser) -> None:
        indexer = FakeIndexer()
        browser.indexer = indexer

        await browser.refresh()

        assert indexer.indexed == [["p1", "p2"]]

    async def test_failure_keeps_previous_projects(
        self, browser: ProjectBrowser, backend: RecordingBackend
    ) -> None:
        await browser.refresh()
        backend.routes[("GET", "/projects")] = lambda request: httpx.Response(500)

        with pytest.raises(HttpError):
            await browser.refresh()

        assert [p.id for p in browser.projects] == ["p1", "p2"]
        assert isinstance(browser.error, HttpError)

    async def test_success_clears_error(
        self, browser: ProjectBrowser, backend: RecordingBackend
    ) -> None:
        route = backend.routes[("GET", "/projects")]
        backend.routes[("GET", "/projects")] = lambda request: httpx.Response(502)
        with pytest.raises(HttpError):
            await browser.refresh()

        backend.routes[("GET", "/projects")] = route
        await browser.refresh()

        assert browser.error is None

    async def test_not_configured(self, memory_store: MemoryStore) -> None:
        resolver = EndpointResolver([PreferenceStrategy(memory_store, "api-url")])
        backend = RecordingBackend()
        browser = ProjectBrowser(resolver, make_index_client(backend), RecencyStore(memory_store))

        with pytest.raises(NotConfiguredError):
            await browser.refresh()

        assert isinstance(browser.error, NotConfiguredError)
        assert backend.requests == []

    async def test_ensure_loaded_fetches_once(
        self, browser: ProjectBrowser, backend: RecordingBackend
    ) -> None:
        await browser.ensure_loaded()
        await browser.ensure_loaded()
        assert len(backend.requests) == 1


class TestSupersededFetch:
    """Only the latest fetch may publish."""

    async def test_second_refresh_cancels_first(
        self, browser: ProjectBrowser, backend: RecordingBackend
    ) -> None:
        started = asyncio.Event()
        never = asyncio.Event()

        async def slow(request: httpx.Request) -> httpx.Response:
            started.set()
            await never.wait()
            return json_response({"projects": [record("old", "Old")]})

        backend.routes[("GET", "/projects")] = slow
        first = asyncio.create_task(browser.refresh())
        await started.wait()
        assert browser.is_loading

        backend.routes[("GET", "/projects")] = projects_route(record("new", "New"))
        second = await browser.refresh()

        assert await first is None
        assert second is not None
        assert [p.id for p in second] == ["new"]
        assert [p.id for p in browser.projects] == ["new"]
        assert not browser.is_loading

    async def test_cancel_discards_result(
        self, browser: ProjectBrowser, backend: RecordingBackend
    ) -> None:
        started = asyncio.Event()
        never = asyncio.Event()

        async def slow(request: httpx.Request) -> httpx.Response:
            started.set()
            await never.wait()
            return json_response({"projects": []})

        backend.routes[("GET", "/projects")] = slow
        pending = asyncio.create_task(browser.refresh())
        await started.wait()

        browser.cancel()

        assert await pending is None
        assert not browser.is_loaded
        assert browser.error is None

    async def test_load_follows_superseding_refresh(
        self, browser: ProjectBrowser, backend: RecordingBackend
    ) -> None:
        """A replaced load returns what the replacing refresh published."""
        started = asyncio.Event()
        never = asyncio.Event()

        async def slow(request: httpx.Request) -> httpx.Response:
            started.set()
            await never.wait()
            return json_response({"projects": [record("old", "Old")]})

        backend.routes[("GET", "/projects")] = slow
        first = asyncio.create_task(browser.load())
        await started.wait()

        backend.routes[("GET", "/projects")] = projects_route(record("new", "New"))
        await browser.refresh()

        assert [p.id for p in await first] == ["new"]

    async def test_load_raises_when_replacing_refresh_fails(
        self, browser: ProjectBrowser, backend: RecordingBackend
    ) -> None:
        started = asyncio.Event()
        never = asyncio.Event()

        async def slow(request: httpx.Request) -> httpx.Response:
            started.set()
            await never.wait()
            return json_response({"projects": []})

        backend.routes[("GET", "/projects")] = slow
        first = asyncio.create_task(browser.load())
        await started.wait()

        backend.routes[("GET", "/projects")] = httpx.Response(500)
        with pytest.raises(HttpError):
            await browser.refresh()

        with pytest.raises(HttpError):
            await first
        assert not browser.is_loaded

    async def test_ensure_loaded_joins_refresh_in_flight(
        self, browser: ProjectBrowser, backend: RecordingBackend
    ) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def gated(request: httpx.Request) -> httpx.Response:
            started.set()
            await release.wait()
            return json_response({"projects": [record("p1", "Billing Q3")]})

        backend.routes[("GET", "/projects")] = gated
        refreshing = asyncio.create_task(browser.refresh())
        await started.wait()
        assert browser.is_refreshing

        joining = asyncio.create_task(browser.ensure_loaded())
        await asyncio.sleep(0)
        release.set()

        assert [p.id for p in await joining] == ["p1"]
        assert await refreshing == await joining
        assert len(backend.requests) == 1
        assert not browser.is_refreshing

    async def test_cancel_releases_followers(
        self, browser: ProjectBrowser, backend: RecordingBackend
    ) -> None:
        started = asyncio.Event()
        never = asyncio.Event()

        async def slow(request: httpx.Request) -> httpx.Response:
            started.set()
            await never.wait()
            return json_response({"projects": []})

        backend.routes[("GET", "/projects")] = slow
        pending = asyncio.create_task(browser.refresh())
        await started.wait()
        joining = asyncio.create_task(browser.ensure_loaded())
        await asyncio.sleep(0)

        browser.cancel()

        assert await joining == ()
        assert await pending is None

    async def test_superseded_during_prune_leaves_recency(
        self, backend: RecordingBackend, memory_store: MemoryStore
    ) -> None:
        """A fetch replaced while pruning does not rewrite the recent list."""
        await memory_store.set("api-url", API_URL)
        recent_store = GatedStore({"recent-project-ids": '["gone", "p1"]'})
        resolver = EndpointResolver([PreferenceStrategy(memory_store, "api-url")])
        client = make_index_client(backend)
        browser = ProjectBrowser(resolver, client, RecencyStore(recent_store))

        pending = asyncio.create_task(browser.refresh())
        await recent_store.entered.wait()
        browser.cancel()
        recent_store.gate.set()

        assert await pending is None
        assert await browser.recency.get() == ["gone", "p1"]
        assert recent_store.writes == 0
        await browser.aclose()
        await client.aclose()


class TestOpenProject:
    async def test_returns_url_and_records_recency(self, browser: ProjectBrowser) -> None:
        await browser.refresh()

        url = browser.open_project("p2")
        await browser.wait_for_background()

        assert url == "https://chatgpt.com/g/p-p2"
        assert await browser.recency.get() == ["p2"]

    async def test_opened_project_shows_in_recent_section(self, browser: ProjectBrowser) -> None:
        await browser.refresh()
        browser.open_project("p2")
        await browser.wait_for_background()

        sections = await browser.sections()

        assert [p.id for p in sections.recent] == ["p2"]
        assert [p.id for p in sections.projects] == ["p1"]

    async def test_unknown_project(self, browser: ProjectBrowser) -> None:
        await browser.refresh()
        with pytest.raises(ProjectNotFoundError) as exc_info:
            browser.open_project("nope")
        assert exc_info.value.message == "Project nope not found"

    async def test_recency_failure_does_not_break_navigation(
        self, browser: ProjectBrowser, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        await browser.refresh()

        async def broken_add(project_id: str) -> list[str]:
            raise RuntimeError("disk full")

        monkeypatch.setattr(browser.recency, "add", broken_add)

        assert browser.open_project("p1") == "https://chatgpt.com/g/p-p1"
        await browser.wait_for_background()


class TestSections:
    async def test_search(self, browser: ProjectBrowser) -> None:
        await browser.refresh()

        sections = await browser.sections("billing")

        assert sections.searching
        assert [p.id for p in sections.projects] == ["p1"]


class TestValidateAndTouch:
    async def test_validate_uses_resolved_endpoint(
        self, browser: ProjectBrowser, backend: RecordingBackend
    ) -> None:
        backend.routes[("GET", "/meta")] = lambda request: json_response({"version": "3.1"})

        endpoint, meta = await browser.validate()

        assert endpoint.url == API_URL
        assert meta.version == "3.1"

    async def test_touch_on_custom_api_is_noop(self, browser: ProjectBrowser) -> None:
        assert await browser.touch_project("p1") is False
