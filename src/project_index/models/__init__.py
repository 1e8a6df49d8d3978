from src.project_index.models.enums import BackendFlavor, EndpointSource

__all__ = ["BackendFlavor", "EndpointSource"]
