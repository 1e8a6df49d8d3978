"""HTTP client for the project index backends.

One code path per backend flavor, chosen once by ``detect_flavor``. Every
failure surfaces as an ``IndexClientError`` subclass; nothing is retried
here, retry policy belongs to the caller.
"""

from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Any, Self
from urllib.parse import urlsplit, urlunsplit

import httpx

from src.project_index.core.config import Settings
from src.project_index.core.errors import (
    DecodingError,
    HttpError,
    InvalidResponseError,
    InvalidURLError,
    MissingRequiredFieldsError,
    NetworkError,
    NotConfiguredError,
)
from src.project_index.core.logging import get_logger
from src.project_index.core.validators import validate_base_url
from src.project_index.models.enums import BackendFlavor
from src.project_index.schemas.meta import APIMetaResponse, MetaInfo
from src.project_index.schemas.project import Project
from src.project_index.services.flavor import detect_flavor
from src.project_index.services.normalizer import (
    CHATGPT_PROJECT_URL_BASE,
    normalize_records,
    unwrap_envelope,
)

logger = get_logger(__name__)

VALIDATE_TIMEOUT_SECONDS = 10.0
FETCH_TIMEOUT_SECONDS = 30.0

SUPABASE_SELECT_COLUMNS = "id,title,created_at,last_confirmed_at"
SUPABASE_ORDER = "title.asc"
TOUCH_QUEUE_SEGMENT = "touch_queue"

# Supabase has no meta endpoint; a successful count probe stands in for one
SUPABASE_META_VERSION = "1.0.0"
SUPABASE_META_NAME = "Supabase Project Index"
EDGE_FUNCTION_META_NAME = "Supabase Edge Function"


def append_path_segment(base_url: str, segment: str) -> str:
    """Append ``/segment`` to the URL path unless it already ends with it.

    An existing trailing slash is reused rather than doubled, and any query
    string on the base URL is preserved.
    """
    parts = urlsplit(base_url)
    path = parts.path
    if not path.endswith(f"/{segment}"):
        path = f"{path}{segment}" if path.endswith("/") else f"{path}/{segment}"
    return urlunsplit(parts._replace(path=path))


def parse_content_range_total(header: str | None) -> int:
    """Total item count from a ``Content-Range: <range>/<total>`` header.

    Raises:
        InvalidResponseError: If the header is missing or has no numeric total.
    """
    if not header or "/" not in header:
        raise InvalidResponseError("Missing or malformed Content-Range header")
    total = header.rsplit("/", 1)[1].strip()
    if not total.isdigit():
        raise InvalidResponseError(f"Content-Range has no total count: {header!r}")
    return int(total)


class IndexClient:
    """Fetches and validates a project index over HTTP.

    Pass an ``httpx.AsyncClient`` to control transport (tests use
    ``httpx.MockTransport``); otherwise the client owns one and closes it in
    ``aclose``.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        api_key: str | None = None,
        project_url_base: str = CHATGPT_PROJECT_URL_BASE,
        supabase_select_columns: str = SUPABASE_SELECT_COLUMNS,
        validate_timeout: float = VALIDATE_TIMEOUT_SECONDS,
        fetch_timeout: float = FETCH_TIMEOUT_SECONDS,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()
        self.api_key = api_key
        self.project_url_base = project_url_base
        self.supabase_select_columns = supabase_select_columns
        self.validate_timeout = validate_timeout
        self.fetch_timeout = fetch_timeout

        self._validators: dict[BackendFlavor, Callable[[str], Awaitable[MetaInfo]]] = {
            BackendFlavor.CUSTOM_API: self._validate_custom_api,
            BackendFlavor.SUPABASE_REST: self._validate_supabase,
            BackendFlavor.SUPABASE_EDGE_FUNCTION: self._validate_edge_function,
        }
        self._fetchers: dict[BackendFlavor, Callable[[str], Awaitable[list[Project]]]] = {
            BackendFlavor.CUSTOM_API: self._fetch_custom_api,
            BackendFlavor.SUPABASE_REST: self._fetch_supabase,
            BackendFlavor.SUPABASE_EDGE_FUNCTION: self._fetch_edge_function,
        }

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.AsyncClient | None = None
    ) -> Self:
        return cls(
            http_client,
            api_key=settings.api_key,
            project_url_base=settings.chatgpt_project_url_base,
            supabase_select_columns=settings.supabase_select_columns,
            validate_timeout=settings.validate_timeout_seconds,
            fetch_timeout=settings.fetch_timeout_seconds,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- Public operations ---

    async def validate(self, base_url: str) -> MetaInfo:
        """Probe the endpoint and confirm it is a compatible project index.

        Raises:
            InvalidURLError, NetworkError, HttpError, InvalidResponseError,
            DecodingError, MissingRequiredFieldsError
        """
        base_url = validate_base_url(base_url)
        flavor = detect_flavor(base_url)
        meta = await self._validators[flavor](base_url)
        logger.info("Endpoint validated", flavor=flavor.value, version=meta.version)
        return meta

    async def fetch_projects(self, base_url: str) -> list[Project]:
        """Fetch and normalize the full project list.

        Raises:
            InvalidURLError, NetworkError, HttpError, InvalidResponseError,
            DecodingError
        """
        base_url = validate_base_url(base_url)
        flavor = detect_flavor(base_url)
        projects = await self._fetchers[flavor](base_url)
        logger.info("Projects fetched", flavor=flavor.value, count=len(projects))
        return projects

    async def touch_project(self, base_url: str, project_id: str) -> bool:
        """Queue a "touch" so the project moves to the top of the index.

        Only the Supabase REST backend has a touch queue; for other flavors
        this is a no-op returning False.

        Raises:
            NotConfiguredError: If no API key is configured.
            InvalidURLError, NetworkError, HttpError
        """
        base_url = validate_base_url(base_url)
        flavor = detect_flavor(base_url)
        if flavor is not BackendFlavor.SUPABASE_REST:
            logger.info(
                "Touch not supported by backend", flavor=flavor.value, project_id=project_id
            )
            return False
        if not self.api_key:
            raise NotConfiguredError("An API key is required to touch projects")

        await self._request(
            "POST",
            append_path_segment(base_url, TOUCH_QUEUE_SEGMENT),
            flavor=flavor,
            timeout=self.validate_timeout,
            headers={"Prefer": "return=minimal"},
            json={"project_id": project_id},
        )
        logger.info("Project touched", project_id=project_id)
        return True

    # --- Validation per flavor ---

    async def _validate_custom_api(self, base_url: str) -> MetaInfo:
        response = await self._request(
            "GET",
            append_path_segment(base_url, "meta"),
            flavor=BackendFlavor.CUSTOM_API,
            timeout=self.validate_timeout,
        )
        payload = self._decode_json(response)
        if not isinstance(payload, dict):
            raise DecodingError("expected a JSON object from /meta")

        meta = APIMetaResponse.model_validate(payload)
        missing = meta.missing_fields()
        if missing:
            raise MissingRequiredFieldsError(missing)
        return MetaInfo(version=meta.version, name=meta.name, project_count=meta.project_count)

    async def _validate_supabase(self, base_url: str) -> MetaInfo:
        response = await self._request(
            "HEAD",
            append_path_segment(base_url, "projects"),
            flavor=BackendFlavor.SUPABASE_REST,
            timeout=self.validate_timeout,
            params={"select": "count"},
            headers={"Prefer": "count=exact"},
        )
        total = parse_content_range_total(response.headers.get("content-range"))
        return MetaInfo(
            version=SUPABASE_META_VERSION,
            name=SUPABASE_META_NAME,
            project_count=total,
        )

    async def _validate_edge_function(self, base_url: str) -> MetaInfo:
        # No probe: edge functions expose only the projects route
        return MetaInfo(version=SUPABASE_META_VERSION, name=EDGE_FUNCTION_META_NAME)

    # --- Fetching per flavor ---

    async def _fetch_custom_api(self, base_url: str) -> list[Project]:
        return await self._fetch_and_normalize(base_url, BackendFlavor.CUSTOM_API)

    async def _fetch_supabase(self, base_url: str) -> list[Project]:
        return await self._fetch_and_normalize(
            base_url,
            BackendFlavor.SUPABASE_REST,
            params={"select": self.supabase_select_columns, "order": SUPABASE_ORDER},
        )

    async def _fetch_edge_function(self, base_url: str) -> list[Project]:
        return await self._fetch_and_normalize(base_url, BackendFlavor.SUPABASE_EDGE_FUNCTION)

    async def _fetch_and_normalize(
        self,
        base_url: str,
        flavor: BackendFlavor,
        params: dict[str, str] | None = None,
    ) -> list[Project]:
        response = await self._request(
            "GET",
            append_path_segment(base_url, "projects"),
            flavor=flavor,
            timeout=self.fetch_timeout,
            params=params,
        )
        records = unwrap_envelope(flavor, self._decode_json(response))
        return normalize_records(flavor, records, self.project_url_base)

    # --- Transport ---

    def _headers(self, flavor: BackendFlavor, extra: dict[str, str] | None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key and flavor is not BackendFlavor.CUSTOM_API:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        *,
        flavor: BackendFlavor,
        timeout: float,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                headers=self._headers(flavor, headers),
                json=json,
                timeout=timeout,
            )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise InvalidURLError() from e
        except httpx.RequestError as e:
            logger.warning("Request to project index failed", method=method, url=url, error=str(e))
            raise NetworkError(e) from e

        if not response.is_success:
            logger.warning(
                "Project index returned an error status",
                method=method,
                url=url,
                status=response.status_code,
            )
            raise HttpError(response.status_code)
        return response

    @staticmethod
    def _decode_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise InvalidResponseError() from e
