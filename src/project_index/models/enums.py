"""Shared enums for models."""

from enum import Enum


class BackendFlavor(str, Enum):
    """Which backend API shape a base URL implements."""

    CUSTOM_API = "custom_api"
    SUPABASE_REST = "supabase_rest"
    SUPABASE_EDGE_FUNCTION = "supabase_edge_function"

    @property
    def label(self) -> str:
        """Short label shown next to the project count."""
        return _FLAVOR_LABELS[self]


_FLAVOR_LABELS = {
    BackendFlavor.CUSTOM_API: "Custom API",
    BackendFlavor.SUPABASE_REST: "Supabase",
    BackendFlavor.SUPABASE_EDGE_FUNCTION: "Supabase Edge Function",
}


class EndpointSource(str, Enum):
    """Where the effective base URL came from."""

    AUTO = "auto"
    PREFERENCE = "preference"
