"""Backend flavor detection from a base URL."""

from urllib.parse import urlsplit

from src.project_index.models.enums import BackendFlavor

EDGE_FUNCTION_PATH = "/functions/v1"
SUPABASE_REST_PATH = "/rest/v1"

# Checked in order, first match wins
_PATH_MARKERS: tuple[tuple[str, BackendFlavor], ...] = (
    (EDGE_FUNCTION_PATH, BackendFlavor.SUPABASE_EDGE_FUNCTION),
    (SUPABASE_REST_PATH, BackendFlavor.SUPABASE_REST),
)


def detect_flavor(base_url: str) -> BackendFlavor:
    """Classify a base URL as one of the three backend flavors.

    Never raises: anything that doesn't carry a Supabase path marker,
    including strings that don't parse as URLs, is a custom API.
    """
    try:
        path = urlsplit(base_url).path
    except (AttributeError, TypeError, ValueError):
        return BackendFlavor.CUSTOM_API

    for marker, flavor in _PATH_MARKERS:
        if marker in path:
            return flavor
    return BackendFlavor.CUSTOM_API
