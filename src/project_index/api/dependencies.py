"""Request dependencies."""

from typing import Annotated

from fastapi import Depends, Request

from src.project_index.services.browser import ProjectBrowser


def get_browser(request: Request) -> ProjectBrowser:
    """The session's project browser, built during app startup."""
    return request.app.state.browser


Browser = Annotated[ProjectBrowser, Depends(get_browser)]
