"""
Named-attribute views over Starlette requests and responses.
The document builder only sees these views, never the framework objects.
"""

import json
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qsl

from starlette.requests import Request
from starlette.responses import Response


def _original_url(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


_REQUEST_READERS: Dict[str, Callable[[Request], Any]] = {
    "http_version": lambda r: r.scope.get("http_version"),
    "headers": lambda r: dict(r.headers),
    "method": lambda r: r.method,
    "original_url": _original_url,
    "url": lambda r: str(r.url),
    "path": lambda r: r.url.path,
    "query": lambda r: dict(r.query_params),
    "ip": lambda r: r.client.host if r.client else None,
    "params": lambda r: dict(r.path_params),
    "cookies": lambda r: dict(r.cookies),
}

_RESPONSE_READERS: Dict[str, Callable[[Response], Any]] = {
    "status_code": lambda r: r.status_code,
    "headers": lambda r: dict(r.headers),
    "media_type": lambda r: r.media_type,
}


def parse_body(raw: bytes, content_type: Optional[str]) -> Any:
    """
    Decode a captured request body for logging.
    JSON and urlencoded forms become Python objects; anything else is text.
    """
    if not raw:
        return None
    media_type = (content_type or "").split(";")[0].strip().lower()
    if media_type == "application/json" or media_type.endswith("+json"):
        return json.loads(raw)
    if media_type == "application/x-www-form-urlencoded":
        return dict(parse_qsl(raw.decode("latin-1"), keep_blank_values=True))
    return raw.decode("utf-8", errors="replace")


class StarletteRequestView:
    """Exposes request attributes by name; unknown names fall back to getattr."""

    def __init__(self, request: Request, body: Any = None) -> None:
        self._request = request
        self._body = body

    def read(self, name: str) -> Any:
        if name == "body":
            return self._body
        reader = _REQUEST_READERS.get(name)
        if reader is not None:
            return reader(self._request)
        return getattr(self._request, name, None)

    @property
    def raw_path(self) -> str:
        return self._request.url.path

    @property
    def route_path(self) -> Optional[str]:
        """Declared path pattern of the matched route, when routing matched one."""
        route = self._request.scope.get("route")
        path = getattr(route, "path", None)
        return path if isinstance(path, str) else None


class StarletteResponseView:
    """
    Exposes response attributes by name.
    A missing response means the downstream app raised; it reads as a 500.
    """

    def __init__(
        self, response: Optional[Response], error: Optional[BaseException] = None
    ) -> None:
        self._response = response
        self.error = error

    def read(self, name: str) -> Any:
        if self._response is None:
            return 500 if name == "status_code" else None
        reader = _RESPONSE_READERS.get(name)
        if reader is not None:
            return reader(self._response)
        return getattr(self._response, name, None)
