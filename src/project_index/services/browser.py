"""A browsing session over the project index.

Ties the pieces together the way a list screen uses them: resolve the
endpoint, fetch, prune recency, then rank for display. Only one fetch is
live at a time; starting a new one cancels the previous, and a superseded
fetch never touches session state.
"""

import asyncio
from collections.abc import Sequence
from typing import Protocol

from src.project_index.core.errors import IndexClientError, ProjectNotFoundError
from src.project_index.core.logging import bind_endpoint_context, get_logger
from src.project_index.models.enums import BackendFlavor
from src.project_index.schemas.endpoint import EndpointInfo
from src.project_index.schemas.meta import MetaInfo
from src.project_index.schemas.project import Project, ProjectSections
from src.project_index.services.endpoint_resolver import EndpointResolver
from src.project_index.services.flavor import detect_flavor
from src.project_index.services.index_client import IndexClient
from src.project_index.services.recency import RecencyStore
from src.project_index.services.search import (
    DEFAULT_RECENT_COUNT,
    DEFAULT_THRESHOLD,
    display_sections,
)

logger = get_logger(__name__)


class SearchIndexer(Protocol):
    """OS search-index collaborator (e.g. Spotlight), keyed by project id."""

    def index_projects(self, projects: Sequence[Project]) -> None: ...

    def remove_project(self, project_id: str) -> None: ...

    def remove_all(self) -> None: ...


class ProjectBrowser:
    """Session state for one project list view."""

    def __init__(
        self,
        resolver: EndpointResolver,
        client: IndexClient,
        recency: RecencyStore,
        *,
        indexer: SearchIndexer | None = None,
        recent_count: int = DEFAULT_RECENT_COUNT,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        self.resolver = resolver
        self.client = client
        self.recency = recency
        self.indexer = indexer
        self.recent_count = recent_count
        self.threshold = threshold

        self.endpoint: EndpointInfo | None = None
        self.flavor: BackendFlavor | None = None
        self.error: IndexClientError | None = None
        self._projects: tuple[Project, ...] = ()
        self._loaded = False

        self._generation = 0
        self._fetch_task: asyncio.Task[tuple[EndpointInfo, list[Project]]] | None = None
        self._settled: asyncio.Event | None = None
        self._background: set[asyncio.Task[None]] = set()

    @property
    def projects(self) -> tuple[Project, ...]:
        return self._projects

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def is_loading(self) -> bool:
        return self._fetch_task is not None and not self._fetch_task.done()

    @property
    def is_refreshing(self) -> bool:
        """True until the latest ``refresh`` settles."""
        return self._settled is not None and not self._settled.is_set()

    def cancel(self) -> None:
        """Cancel the outstanding fetch, if any. Its result will be discarded."""
        if self._fetch_task is not None and not self._fetch_task.done():
            logger.debug("Cancelling outstanding fetch")
            self._fetch_task.cancel()
        # Bumping the generation marks any in-flight completion as stale
        self._generation += 1
        if self._settled is not None:
            self._settled.set()

    async def refresh(self) -> tuple[Project, ...] | None:
        """Fetch a fresh project list and publish it.

        Returns the new projects, or None if this fetch was superseded by a
        later ``refresh``/``cancel``. On failure the previous projects are
        kept, ``error`` is set and the error is raised.

        Raises:
            IndexClientError: Resolution or fetch failed.
        """
        self.cancel()
        generation = self._generation
        settled = self._settled = asyncio.Event()
        task = asyncio.create_task(self._load())
        self._fetch_task = task
        try:
            return await self._publish(generation, task)
        finally:
            settled.set()

    async def _publish(
        self, generation: int, task: asyncio.Task[tuple[EndpointInfo, list[Project]]]
    ) -> tuple[Project, ...] | None:
        try:
            endpoint, projects = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.debug("Superseded fetch discarded")
                return None
            raise
        except IndexClientError as e:
            if generation != self._generation:
                return None
            self.error = e
            raise

        if generation != self._generation:
            return None
        ids = {p.id for p in projects}
        await self.recency.prune(ids, still_current=lambda: generation == self._generation)
        if generation != self._generation:
            logger.debug("Superseded fetch discarded after pruning")
            return None

        self.endpoint = endpoint
        self.flavor = detect_flavor(endpoint.url)
        self._projects = tuple(projects)
        self._loaded = True
        self.error = None
        if self.indexer is not None:
            self.indexer.index_projects(self._projects)
        return self._projects

    async def load(self) -> tuple[Project, ...]:
        """Refresh, following any later refresh that supersedes this one.

        Unlike ``refresh`` this never returns early with nothing: callers get
        whatever the latest refresh published.

        Raises:
            IndexClientError: The latest refresh failed.
        """
        projects = await self.refresh()
        if projects is None:
            return await self._follow()
        return projects

    async def ensure_loaded(self) -> tuple[Project, ...]:
        """Load once; later calls reuse the published list.

        A refresh already in flight is joined rather than restarted.
        """
        if self._loaded:
            return self._projects
        if self.is_refreshing:
            return await self._follow()
        return await self.load()

    async def _follow(self) -> tuple[Project, ...]:
        while self._settled is not None and not self._settled.is_set():
            await self._settled.wait()
        if self.error is not None:
            raise self.error
        return self._projects

    async def _load(self) -> tuple[EndpointInfo, list[Project]]:
        endpoint = await self.resolver.resolve()
        flavor = detect_flavor(endpoint.url)
        bind_endpoint_context(endpoint.url, flavor.value, endpoint.source.value)
        projects = await self.client.fetch_projects(endpoint.url)
        return endpoint, projects

    async def validate(self) -> tuple[EndpointInfo, MetaInfo]:
        """Resolve the endpoint and run its meta-probe."""
        endpoint = await self.resolver.resolve()
        meta = await self.client.validate(endpoint.url)
        return endpoint, meta

    async def sections(self, query: str = "") -> ProjectSections:
        """Display view of the current projects for ``query``."""
        recent_ids = await self.recency.get()
        return display_sections(
            self._projects,
            query,
            recent_ids,
            recent_count=self.recent_count,
            threshold=self.threshold,
        )

    def get_project(self, project_id: str) -> Project:
        for project in self._projects:
            if project.id == project_id:
                return project
        raise ProjectNotFoundError(project_id)

    def open_project(self, project_id: str) -> str:
        """Record the open in the background and return the URL to navigate to.

        Navigation never waits on the recency write.
        """
        project = self.get_project(project_id)
        task = asyncio.create_task(self._record_open(project.id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return project.open_url

    async def _record_open(self, project_id: str) -> None:
        try:
            await self.recency.add(project_id)
        except Exception as e:
            logger.error("Failed to record recent project", project_id=project_id, error=str(e))

    async def touch_project(self, project_id: str) -> bool:
        """Ask the backend to move a project to the top of its index."""
        endpoint = await self.resolver.resolve()
        return await self.client.touch_project(endpoint.url, project_id)

    async def wait_for_background(self) -> None:
        """Wait for pending recency writes (shutdown and tests)."""
        if self._background:
            await asyncio.gather(*self._background)

    async def aclose(self) -> None:
        self.cancel()
        await self.wait_for_background()
