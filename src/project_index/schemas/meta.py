"""Meta-probe schemas."""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class APIMetaResponse(BaseModel):
    """Body of the custom API's ``/meta`` endpoint, before validation."""

    model_config = ConfigDict(extra="ignore")

    version: str | None = None
    name: str | None = None
    project_count: int | None = None

    # Required for the endpoint to be considered compatible
    required_fields: ClassVar[tuple[str, ...]] = ("version",)

    @field_validator("version", "name", mode="before")
    @classmethod
    def lenient_text(cls, v: Any) -> str | None:
        if v is None:
            return None
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v if isinstance(v, str) else None

    @field_validator("project_count", mode="before")
    @classmethod
    def lenient_count(cls, v: Any) -> int | None:
        if isinstance(v, bool) or not isinstance(v, int):
            return None
        return v

    def missing_fields(self) -> list[str]:
        return [name for name in self.required_fields if not (getattr(self, name) or "").strip()]


class MetaInfo(BaseModel):
    """Validated probe result: the endpoint is reachable and compatible."""

    model_config = ConfigDict(frozen=True)

    version: str = Field(min_length=1)
    name: str | None = None
    project_count: int | None = None

    @property
    def display_description(self) -> str:
        """Human-readable one-liner, e.g. ``"My Index • v1.2.0 • 42 projects"``."""
        parts: list[str] = []
        if self.name:
            parts.append(self.name)
        parts.append(f"v{self.version}")
        if self.project_count is not None:
            parts.append(f"{self.project_count} projects")
        return " • ".join(parts)


class MetaRead(BaseModel):
    """API response for the validation probe."""

    version: str
    name: str | None
    project_count: int | None
    description: str
    flavor: str

    @classmethod
    def from_meta(cls, meta: MetaInfo, flavor: str) -> "MetaRead":
        return cls(
            version=meta.version,
            name=meta.name,
            project_count=meta.project_count,
            description=meta.display_description,
            flavor=flavor,
        )
