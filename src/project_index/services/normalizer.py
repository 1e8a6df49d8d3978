"""Mapping of flavor-specific wire records to the canonical Project.

One normalizer per backend flavor, looked up once through ``NORMALIZERS``.
Normalizers never raise on bad records: a record that can't produce a valid
Project is dropped and its siblings are kept. Only a payload whose envelope
has the wrong shape is an error (``unwrap_envelope``).
"""

from collections.abc import Callable, Iterable
from typing import Any

from pydantic import ValidationError

from src.project_index.core.errors import DecodingError
from src.project_index.core.logging import get_logger
from src.project_index.core.validators import is_absolute_url, parse_timestamp
from src.project_index.models.enums import BackendFlavor
from src.project_index.schemas.project import CustomAPIProject, Project, SupabaseProject

logger = get_logger(__name__)

CHATGPT_PROJECT_URL_BASE = "https://chatgpt.com/g/p-"

Normalizer = Callable[[Any, str], Project | None]


def build_project_url(project_id: str, url_base: str = CHATGPT_PROJECT_URL_BASE) -> str:
    """Derive the ChatGPT project URL for backends that don't store one."""
    return f"{url_base}{project_id}"


def normalize_custom_api(record: Any, url_base: str = CHATGPT_PROJECT_URL_BASE) -> Project | None:
    """Custom API / Edge Function record -> Project, with passthrough URL."""
    try:
        wire = CustomAPIProject.model_validate(record)
        return Project(
            id=wire.id,
            name=wire.name,
            open_url=wire.open_url,
            description=wire.description,
            created_at=parse_timestamp(wire.created_at),
            updated_at=parse_timestamp(wire.updated_at),
        )
    except ValidationError as e:
        logger.debug(
            "Dropping malformed project record", flavor="custom_api", errors=e.error_count()
        )
        return None


def normalize_supabase(record: Any, url_base: str = CHATGPT_PROJECT_URL_BASE) -> Project | None:
    """Supabase row -> Project.

    A stored ``url`` is used when it is absolute; otherwise the URL is
    constructed from the id. ``updated_at`` falls back to
    ``last_confirmed_at`` for the older schema.
    """
    try:
        wire = SupabaseProject.model_validate(record)
        if wire.url and is_absolute_url(wire.url):
            open_url = wire.url
        else:
            open_url = build_project_url(wire.id, url_base)
        return Project(
            id=wire.id,
            name=wire.title,
            open_url=open_url,
            created_at=parse_timestamp(wire.created_at),
            updated_at=parse_timestamp(wire.updated_at or wire.last_confirmed_at),
        )
    except ValidationError as e:
        logger.debug(
            "Dropping malformed project record", flavor="supabase_rest", errors=e.error_count()
        )
        return None


NORMALIZERS: dict[BackendFlavor, Normalizer] = {
    BackendFlavor.CUSTOM_API: normalize_custom_api,
    BackendFlavor.SUPABASE_REST: normalize_supabase,
    BackendFlavor.SUPABASE_EDGE_FUNCTION: normalize_custom_api,
}


def unwrap_envelope(flavor: BackendFlavor, payload: Any) -> list[Any]:
    """Extract the record list from a decoded response body.

    The custom API wraps records as ``{"projects": [...]}``; both Supabase
    flavors return a bare array.

    Raises:
        DecodingError: If the payload is not the flavor's envelope shape.
    """
    if flavor is BackendFlavor.CUSTOM_API:
        if not isinstance(payload, dict):
            raise DecodingError("expected an object with a 'projects' array")
        records = payload.get("projects")
        if not isinstance(records, list):
            raise DecodingError("'projects' is missing or not an array")
        return records

    if not isinstance(payload, list):
        raise DecodingError("expected an array of projects")
    return payload


def normalize_records(
    flavor: BackendFlavor,
    records: Iterable[Any],
    url_base: str = CHATGPT_PROJECT_URL_BASE,
) -> list[Project]:
    """Normalize every record, keeping wire order and dropping bad records."""
    normalize = NORMALIZERS[flavor]
    records = list(records)
    projects = [p for p in (normalize(r, url_base) for r in records) if p is not None]
    dropped = len(records) - len(projects)
    if dropped:
        logger.info(
            "Dropped malformed project records",
            flavor=flavor.value,
            dropped=dropped,
            kept=len(projects),
        )
    return projects
