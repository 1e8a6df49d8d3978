from datetime import datetime
from urllib.parse import urlsplit

from src.project_index.core.errors import InvalidURLError

ALLOWED_SCHEMES = ("http", "https")


def validate_base_url(url: str) -> str:
    """Validate a base URL's format without making a network request.

    Returns the stripped URL.

    Raises:
        InvalidURLError: With a message suitable for showing to the user.
    """
    url = (url or "").strip()
    if not url:
        raise InvalidURLError("URL cannot be empty")
    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise InvalidURLError("Invalid URL format") from e
    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidURLError("URL must start with http:// or https://")
    if not parts.hostname:
        raise InvalidURLError("URL must include a host")
    return url


def is_absolute_url(url: str) -> bool:
    try:
        validate_base_url(url)
    except InvalidURLError:
        return False
    return True


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp, or None if absent or unparseable."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
