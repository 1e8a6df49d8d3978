"""Project schemas: the canonical entity and the per-flavor wire records."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.project_index.core.validators import is_absolute_url


def _strip_required(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip()
    return v


def _optional_text(v: Any) -> str | None:
    """Non-string or blank optional text reads as absent."""
    if not isinstance(v, str):
        return None
    v = v.strip()
    return v or None


class Project(BaseModel):
    """Canonical project consumed by search, ranking and display."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    open_url: str
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("open_url")
    @classmethod
    def validate_open_url(cls, v: str) -> str:
        if not is_absolute_url(v):
            raise ValueError(f"open_url must be an absolute http(s) URL: {v!r}")
        return v


class CustomAPIProject(BaseModel):
    """Record served by the custom REST API and the Edge Function."""

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    open_url: str = Field(min_length=1)
    description: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @field_validator("id", "name", "open_url", mode="before")
    @classmethod
    def strip_required(cls, v: Any) -> Any:
        return _strip_required(v)

    @field_validator("description", "created_at", "updated_at", mode="before")
    @classmethod
    def lenient_optional(cls, v: Any) -> str | None:
        return _optional_text(v)


class SupabaseProject(BaseModel):
    """Row from the Supabase ``projects`` table.

    Two schema generations exist: one stores ``url`` and ``updated_at``, the
    other stores neither and carries ``last_confirmed_at`` instead.
    """

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    last_confirmed_at: str | None = None

    @field_validator("id", "title", mode="before")
    @classmethod
    def strip_required(cls, v: Any) -> Any:
        return _strip_required(v)

    @field_validator("url", "created_at", "updated_at", "last_confirmed_at", mode="before")
    @classmethod
    def lenient_optional(cls, v: Any) -> str | None:
        return _optional_text(v)


class ProjectSections(BaseModel):
    """Ordered display view of the project list."""

    recent: list[Project] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    searching: bool = False


class ProjectListRead(ProjectSections):
    """Display view plus where it came from."""

    total: int
    flavor: str | None = None
    flavor_label: str | None = None
    error: str | None = None


class OpenProjectRead(BaseModel):
    """Response for the open action: where to navigate."""

    id: str
    open_url: str
