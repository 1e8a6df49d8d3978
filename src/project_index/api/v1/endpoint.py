"""Endpoint settings: which backend this session talks to."""

from fastapi import APIRouter

from src.project_index.api.dependencies import Browser
from src.project_index.schemas.endpoint import EndpointInfo, EndpointRead, EndpointUpdate
from src.project_index.schemas.meta import MetaRead
from src.project_index.services.flavor import detect_flavor

router = APIRouter(tags=["endpoint"])


def _endpoint_read(endpoint: EndpointInfo) -> EndpointRead:
    flavor = detect_flavor(endpoint.url)
    return EndpointRead(
        url=endpoint.url,
        source=endpoint.source,
        flavor=flavor.value,
        flavor_label=flavor.label,
    )


@router.get(
    "/endpoint",
    response_model=EndpointRead | None,
    summary="Get resolved endpoint",
    description="The effective base URL and its source, or null when nothing is configured.",
)
async def get_endpoint(browser: Browser) -> EndpointRead | None:
    """Resolve without raising: display only."""
    endpoint = await browser.resolver.resolve_optional()
    return _endpoint_read(endpoint) if endpoint else None


@router.put(
    "/endpoint",
    response_model=EndpointRead,
    summary="Set preference URL",
    description=(
        "Store the fallback base URL. The config file, when present, still takes "
        "precedence; the response shows the endpoint that is now effective."
    ),
    responses={
        200: {"description": "Preference stored"},
        400: {"description": "Malformed URL"},
    },
)
async def set_endpoint(request: EndpointUpdate, browser: Browser) -> EndpointRead:
    await browser.resolver.set_preference(request.url)
    endpoint = await browser.resolver.resolve()
    return _endpoint_read(endpoint)


@router.get(
    "/meta",
    response_model=MetaRead,
    summary="Validate endpoint",
    description="Run the meta-probe against the resolved endpoint.",
    responses={
        200: {"description": "Endpoint is reachable and compatible"},
        502: {"description": "Endpoint unreachable or incompatible"},
        503: {"description": "No endpoint configured"},
    },
)
async def validate_endpoint(browser: Browser) -> MetaRead:
    endpoint, meta = await browser.validate()
    return MetaRead.from_meta(meta, detect_flavor(endpoint.url).value)
