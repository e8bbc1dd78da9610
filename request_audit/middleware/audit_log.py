"""
Request audit middleware: records start markers when a request enters,
builds one log document once the response has been sent or the exchange was
cut short, and hands it to the document sink without delaying the client.
Mount it outermost so timing covers the whole handler chain.
"""

from functools import partial
from typing import Any, Mapping, Optional, Union

import structlog
from elasticsearch import AsyncElasticsearch
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import ClientDisconnect, Request
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from request_audit.core.safety import constant, recover
from request_audit.db.elasticsearch_client import DocumentIndexer, ElasticsearchIndexer
from request_audit.middleware.request_context import STATE_ATTRIBUTE, RequestContext
from request_audit.middleware.views import (
    StarletteRequestView,
    StarletteResponseView,
    parse_body,
)
from request_audit.schemas.schemas import AuditConfig
from request_audit.services.config_resolver import resolve_config
from request_audit.services.dispatch_service import DocumentSink
from request_audit.services.document_builder import LogDocumentBuilder

logger = structlog.get_logger(__name__)


def build_sink(
    config: AuditConfig,
    client: Union[DocumentIndexer, AsyncElasticsearch, None] = None,
) -> DocumentSink:
    """Wrap a supplied client, or create one from the configuration's client options."""
    if client is None:
        indexer: DocumentIndexer = ElasticsearchIndexer.from_options(config.client_options)
    elif isinstance(client, AsyncElasticsearch):
        indexer = ElasticsearchIndexer(client)
    else:
        indexer = client
    return DocumentSink(indexer, config)


class AuditLogMiddleware(BaseHTTPMiddleware):
    """
    Per request: ENTERED -> (downstream) -> FINISHED -> SKIPPED | EMITTED.
    FINISHED runs at most once per request: after the response body is sent,
    when sending it fails (client gone), or when the downstream app raises.

    Control passes downstream immediately unless "body" is in the request
    whitelist. In that case the whole body is buffered first so it can be
    parsed and censored; downstream handlers then read the cached copy.
    """

    def __init__(
        self,
        app: ASGIApp,
        config: Union[AuditConfig, Mapping[str, Any], None] = None,
        client: Union[DocumentIndexer, AsyncElasticsearch, None] = None,
        *,
        sink: Optional[DocumentSink] = None,
        builder: Optional[LogDocumentBuilder] = None,
    ) -> None:
        super().__init__(app)
        self.config = config if isinstance(config, AuditConfig) else resolve_config(config)
        self.sink = sink or build_sink(self.config, client)
        self.builder = builder or LogDocumentBuilder(self.config)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await super().__call__(scope, receive, send)
            return

        context = RequestContext.begin()
        scope.setdefault("state", {})[STATE_ATTRIBUTE] = context
        try:
            await super().__call__(scope, receive, send)
        finally:
            # Also reached when the client goes away mid-response
            await self.finish(Request(scope), context.response, context, context.body)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        context: RequestContext = getattr(request.state, STATE_ATTRIBUTE)
        context.body = await self._capture_body(request)

        try:
            response = await call_next(request)
        except Exception as exc:
            context.attach_error(exc)
            raise

        context.response = response
        return response

    async def finish(
        self,
        request: Request,
        response: Optional[Response],
        context: RequestContext,
        body: Any = None,
    ) -> None:
        """Build, optionally skip, and dispatch the document for one request."""
        if not context.consume_finish():
            return

        try:
            document = self.builder.build(
                StarletteRequestView(request, body),
                StarletteResponseView(response, context.error),
                context,
            )
        except Exception:
            logger.exception("Failed to build request log document", path=request.url.path)
            return

        if self.config.debug:
            logger.info("Request log document", document=document)

        if self._should_skip(request, response):
            logger.debug("Request log skipped", path=request.url.path)
            return

        self.sink.send(document)

    def _should_skip(self, request: Request, response: Optional[Response]) -> bool:
        predicate = self.config.should_skip
        if predicate is None:
            return False
        # A failing predicate means "log it"
        return recover(
            lambda: bool(predicate(request, response)),
            constant(False),
            event="should_skip predicate failed",
        )

    async def _capture_body(self, request: Request) -> Any:
        if "body" not in self.config.whitelist.request:
            return None
        try:
            raw = await request.body()
        except ClientDisconnect:
            return None
        return recover(
            partial(parse_body, raw, request.headers.get("content-type")),
            constant(None),
            event="Request body not decodable",
        )
