"""Endpoint schemas."""

from pydantic import BaseModel, ConfigDict, field_validator

from src.project_index.core.errors import InvalidURLError
from src.project_index.core.validators import validate_base_url
from src.project_index.models.enums import EndpointSource


class EndpointInfo(BaseModel):
    """The effective base URL for this resolution and where it came from."""

    model_config = ConfigDict(frozen=True)

    url: str
    source: EndpointSource


class ConfigArtifact(BaseModel):
    """The external config file written by the indexer (``api-url.json``)."""

    model_config = ConfigDict(extra="ignore")

    url: str

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        try:
            return validate_base_url(v)
        except InvalidURLError as e:
            raise ValueError(e.message) from e


class EndpointRead(BaseModel):
    """Resolved endpoint as shown in settings screens."""

    url: str
    source: EndpointSource
    flavor: str
    flavor_label: str


class EndpointUpdate(BaseModel):
    """Schema for storing the preference URL."""

    url: str
