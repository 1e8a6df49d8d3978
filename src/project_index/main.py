from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from asgi_correlation_id import CorrelationIdMiddleware, correlation_id
from fastapi import FastAPI, Request, Response
from starlette.middleware.base import RequestResponseEndpoint

from src.project_index.api.v1.router import api_router
from src.project_index.core.config import Settings, get_settings
from src.project_index.core.exceptions import setup_exception_handlers
from src.project_index.core.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)
from src.project_index.core.redis import close_redis
from src.project_index.core.storage import KeyValueStore, get_store
from src.project_index.services.browser import ProjectBrowser
from src.project_index.services.endpoint_resolver import EndpointResolver
from src.project_index.services.index_client import IndexClient
from src.project_index.services.recency import RecencyStore

logger = get_logger(__name__)


def build_browser(settings: Settings, store: KeyValueStore, client: IndexClient) -> ProjectBrowser:
    """Wire the client core from settings."""
    resolver = EndpointResolver.default(
        store,
        config_path=settings.config_file_path,
        preference_key=settings.preference_key,
    )
    recency = RecencyStore(store, key=settings.recency_key, capacity=settings.recency_capacity)
    return ProjectBrowser(
        resolver,
        client,
        recency,
        recent_count=settings.recent_display_count,
        threshold=settings.search_threshold,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan - startup and shutdown."""
    settings = get_settings()
    setup_logging(settings.debug)
    logger.info(f"Starting {settings.app_name}")

    client = IndexClient.from_settings(settings)
    # Tests may install their own browser before startup
    if getattr(app.state, "browser", None) is None:
        store = await get_store()
        app.state.browser = build_browser(settings, store, client)

    yield

    logger.info("Closing connections...")
    await app.state.browser.aclose()
    await client.aclose()
    await close_redis()
    logger.info("Shutdown complete")


OPENAPI_TAGS = [
    {"name": "endpoint", "description": "Endpoint resolution and validation"},
    {"name": "projects", "description": "Browse, search and open projects"},
]


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Local API over a personal ChatGPT project index",
        version="0.1.0",
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
    )

    setup_exception_handlers(app)

    @app.middleware("http")
    async def logging_context_middleware(
        request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Bind request_id to log context for all requests."""
        clear_request_context()
        bind_request_context(correlation_id.get())
        try:
            response = await call_next(request)
            return response
        finally:
            clear_request_context()

    # Added last so it is outermost and the id is set before logging binds it
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(api_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()


def run() -> None:
    """Serve the local API (console script entry point)."""
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
