from fastapi import APIRouter

from src.project_index.api.v1 import endpoint, projects

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(endpoint.router)
api_router.include_router(projects.router)
