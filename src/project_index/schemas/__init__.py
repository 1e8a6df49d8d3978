from src.project_index.schemas.endpoint import ConfigArtifact, EndpointInfo
from src.project_index.schemas.meta import APIMetaResponse, MetaInfo
from src.project_index.schemas.project import (
    CustomAPIProject,
    Project,
    ProjectSections,
    SupabaseProject,
)

__all__ = [
    "APIMetaResponse",
    "ConfigArtifact",
    "CustomAPIProject",
    "EndpointInfo",
    "MetaInfo",
    "Project",
    "ProjectSections",
    "SupabaseProject",
]
