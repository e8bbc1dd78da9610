"""
Application wiring for the request audit logger.
Mounts the audit middleware with the error capture middleware directly inside
it, and exposes the shutdown step the host application's lifespan awaits.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Mapping, Union

import structlog
from elasticsearch import AsyncElasticsearch
from fastapi import FastAPI

from request_audit.db.elasticsearch_client import DocumentIndexer, ElasticsearchIndexer
from request_audit.middleware.audit_log import AuditLogMiddleware, build_sink
from request_audit.middleware.error_capture import ErrorCaptureMiddleware
from request_audit.schemas.schemas import AuditConfig
from request_audit.services.config_resolver import resolve_config
from request_audit.services.dispatch_service import DocumentSink

logger = structlog.get_logger(__name__)


def install_request_audit(
    app: FastAPI,
    config: Union[AuditConfig, Mapping[str, Any], None] = None,
    client: Union[DocumentIndexer, AsyncElasticsearch, None] = None,
) -> DocumentSink:
    """
    Add both audit middlewares to `app`.

    Call it after every other add_middleware() call so the audit middleware
    ends up outermost, with ErrorCaptureMiddleware directly inside it. Errors
    that inner middlewares or exception handlers turn into responses never
    reach the capture middleware; report those with attach_error().

    The sink is stored on app.state.request_audit_sink. Await
    shutdown_request_audit(app) from the application's lifespan, or pass
    request_audit_lifespan as the lifespan, so pending documents are flushed.

    Returns:
        The DocumentSink shared by every request of this application.
    """
    resolved = config if isinstance(config, AuditConfig) else resolve_config(config)
    sink = build_sink(resolved, client)

    app.add_middleware(ErrorCaptureMiddleware)
    app.add_middleware(AuditLogMiddleware, config=resolved, sink=sink)
    app.state.request_audit_sink = sink
    app.state.request_audit_owns_client = client is None

    logger.info(
        "Request audit installed",
        index=resolved.index,
        document_type=resolved.document_type,
        session_id=resolved.session_id,
    )
    return sink


async def shutdown_request_audit(app: FastAPI) -> None:
    """Wait for pending deliveries, then close the client if it was created here."""
    sink = getattr(app.state, "request_audit_sink", None)
    if sink is None:
        return

    pending = sink.pending
    await sink.flush()
    indexer = sink.client
    if getattr(app.state, "request_audit_owns_client", False) and isinstance(
        indexer, ElasticsearchIndexer
    ):
        await indexer.close()
    logger.info("Request audit shut down", flushed=pending)


@asynccontextmanager
async def request_audit_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    yield
    await shutdown_request_audit(app)
