"""Project list endpoints: browse, search, open and touch."""

from typing import Annotated

from fastapi import APIRouter, Query

from src.project_index.api.dependencies import Browser
from src.project_index.core.errors import IndexClientError
from src.project_index.core.logging import get_logger
from src.project_index.schemas.project import OpenProjectRead, ProjectListRead

logger = get_logger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get(
    "",
    response_model=ProjectListRead,
    summary="List projects",
    description=(
        "Recent projects followed by the rest when `q` is empty; a single ranked "
        "list of fuzzy matches otherwise."
    ),
    responses={
        200: {"description": "Display list (may carry the error of a failed refresh)"},
        502: {"description": "Backend unreachable and nothing loaded yet"},
        503: {"description": "No endpoint configured"},
    },
)
async def list_projects(
    browser: Browser,
    q: Annotated[str, Query(description="Search query")] = "",
    refresh: Annotated[bool, Query(description="Refetch from the backend")] = False,
) -> ProjectListRead:
    error: str | None = None
    try:
        if refresh:
            await browser.load()
        else:
            await browser.ensure_loaded()
    except IndexClientError as e:
        # Nothing to fall back to on first load
        if not browser.is_loaded:
            raise
        logger.warning("Refresh failed, serving previous projects", error=e.message)
        error = e.message

    sections = await browser.sections(q)
    return ProjectListRead(
        recent=sections.recent,
        projects=sections.projects,
        searching=sections.searching,
        total=len(browser.projects),
        flavor=browser.flavor.value if browser.flavor else None,
        flavor_label=browser.flavor.label if browser.flavor else None,
        error=error,
    )


@router.post(
    "/{project_id}/open",
    response_model=OpenProjectRead,
    summary="Open project",
    description="Record the project as recently opened and return the URL to navigate to.",
    responses={
        200: {"description": "URL to open"},
        404: {"description": "Project not in the loaded list"},
    },
)
async def open_project(project_id: str, browser: Browser) -> OpenProjectRead:
    await browser.ensure_loaded()
    open_url = browser.open_project(project_id)
    return OpenProjectRead(id=project_id, open_url=open_url)


@router.post(
    "/{project_id}/touch",
    summary="Touch project",
    description="Queue a touch so the backend moves the project to the top (Supabase only).",
    responses={
        200: {"description": "Whether the backend accepted a touch"},
        503: {"description": "No endpoint or API key configured"},
    },
)
async def touch_project(project_id: str, browser: Browser) -> dict[str, bool]:
    touched = await browser.touch_project(project_id)
    return {"touched": touched}
