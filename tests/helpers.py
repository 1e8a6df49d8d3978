"""Test helpers for stubbing project index backends."""

import json
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from src.project_index.services.index_client import IndexClient

Handler = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]


def json_response(
    payload: Any,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """A JSON response as a backend would send it."""
    return httpx.Response(status_code, json=payload, headers=headers)


class RecordingBackend:
    """MockTransport handler that records every request it serves.

    Routes are keyed by (method, path); unmatched requests get a 404.
    """

    def __init__(
        self, routes: dict[tuple[str, str], httpx.Response | Handler] | None = None
    ) -> None:
        self.routes = dict(routes or {})
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"detail": "not found"})
        if isinstance(route, httpx.Response):
            return route
        response = route(request)
        if isinstance(response, httpx.Response):
            return response
        return await response

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last_request.content)


def make_index_client(handler: Handler, **kwargs: Any) -> IndexClient:
    """IndexClient whose HTTP traffic goes to ``handler``."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return IndexClient(http_client, **kwargs)
