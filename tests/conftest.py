import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.requests import Request as StarletteRequest

from request_audit.core.config import get_settings
from request_audit.main import install_request_audit
from request_audit.middleware.error_capture import attach_error
from request_audit.services.dispatch_service import DocumentSink


class RecordingIndexer:
    """In-memory stand-in for the Elasticsearch indexer."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.error = error

    async def index(self, *, index: str, document: Dict[str, Any], document_type: str) -> Any:
        self.calls.append({"index": index, "document": document, "document_type": document_type})
        if self.error is not None:
            raise self.error
        return {"_id": str(len(self.calls)), "result": "created"}

    @property
    def documents(self) -> List[Dict[str, Any]]:
        return [call["document"] for call in self.calls]


class CodedError(Exception):
    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


class TeapotError(Exception):
    pass


def build_app(sink_holder: Dict[str, DocumentSink], indexer: RecordingIndexer, config: Dict[str, Any]) -> FastAPI:
    app = FastAPI()

    @app.get("/users/{user_id}")
    async def get_user(user_id: int) -> Dict[str, int]:
        return {"id": user_id}

    @app.get("/slow")
    async def slow() -> Dict[str, bool]:
        await asyncio.sleep(0.05)
        return {"ok": True}

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/login")
    async def login(request: Request) -> Dict[str, Any]:
        payload = await request.json()
        return {"user": payload.get("username")}

    @app.get("/boom")
    async def boom() -> None:
        raise CodedError("exploded", code="E_FOO")

    @app.get("/teapot")
    async def teapot() -> None:
        raise TeapotError("short and stout")

    @app.exception_handler(TeapotError)
    async def teapot_handler(request: Request, exc: TeapotError) -> JSONResponse:
        attach_error(exc, request)
        return JSONResponse(status_code=418, content={"detail": str(exc)})

    sink_holder["sink"] = install_request_audit(app, config, client=indexer)
    return app


@pytest.fixture
def indexer() -> RecordingIndexer:
    return RecordingIndexer()


@pytest.fixture
def app_factory(indexer: RecordingIndexer) -> Callable[..., Any]:
    """Returns (app, sink) for the given audit options."""

    def factory(config: Optional[Dict[str, Any]] = None, client: Optional[RecordingIndexer] = None):
        holder: Dict[str, DocumentSink] = {}
        app = build_app(holder, client or indexer, config or {})
        return app, holder["sink"]

    return factory


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("STAGE_ENV", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_request(path: str = "/items", method: str = "GET", query: bytes = b"") -> StarletteRequest:
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": query,
        "headers": [(b"host", b"testserver"), (b"user-agent", b"pytest")],
        "client": ("10.0.0.7", 51000),
        "server": ("testserver", 80),
    }
    return StarletteRequest(scope)
