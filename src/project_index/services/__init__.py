from src.project_index.services.browser import ProjectBrowser, SearchIndexer
from src.project_index.services.endpoint_resolver import EndpointResolver
from src.project_index.services.flavor import detect_flavor
from src.project_index.services.index_client import IndexClient
from src.project_index.services.recency import RecencyStore

__all__ = [
    "EndpointResolver",
    "IndexClient",
    "ProjectBrowser",
    "RecencyStore",
    "SearchIndexer",
    "detect_flavor",
]
