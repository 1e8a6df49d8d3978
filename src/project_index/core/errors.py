"""Error taxonomy surfaced by endpoint resolution and the index client.

Every error carries a human-readable message (``str(exc)``) that callers show
to the user verbatim, plus a stable ``code`` for programmatic handling.
"""


class IndexClientError(Exception):
    """Base class for all project index client errors."""

    code = "index_client_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# --- Configuration ---


class NotConfiguredError(IndexClientError):
    """No endpoint could be resolved (or a required setting is missing)."""

    code = "not_configured"

    def __init__(
        self,
        message: str = "API URL not configured. Set a preference URL or create the config file.",
    ) -> None:
        super().__init__(message)


# --- Input ---


class InvalidURLError(IndexClientError):
    """The base URL is malformed."""

    code = "invalid_url"

    def __init__(self, message: str = "Invalid API URL") -> None:
        super().__init__(message)


# --- Transport ---


class NetworkError(IndexClientError):
    """Transport failure, including timeouts. Wraps the underlying cause."""

    code = "network_error"

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Network error: {str(cause) or type(cause).__name__}")
        self.cause = cause


class HttpError(IndexClientError):
    """The backend answered with a non-2xx status."""

    code = "http_error"

    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP error: {status_code}")
        self.status_code = status_code


# --- Contract ---


class InvalidResponseError(IndexClientError):
    """The response could not be interpreted at all."""

    code = "invalid_response"

    def __init__(self, message: str = "Invalid response from server") -> None:
        super().__init__(message)


class DecodingError(IndexClientError):
    """The payload parsed but does not have the expected envelope shape."""

    code = "decoding_error"

    def __init__(self, detail: str) -> None:
        super().__init__(f"Failed to decode response: {detail}")
        self.detail = detail


class MissingRequiredFieldsError(IndexClientError):
    """The meta probe answered without the fields required for compatibility."""

    code = "missing_required_fields"

    def __init__(self, fields: list[str]) -> None:
        super().__init__(f"Missing required fields: {', '.join(fields)}")
        self.fields = list(fields)


# --- Lookup ---


class ProjectNotFoundError(IndexClientError):
    """The project isn't in the currently loaded list."""

    code = "project_not_found"

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id
