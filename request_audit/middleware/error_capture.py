"""
Error capture middleware.
Exposes downstream exceptions to the audit middleware's document builder and
re-raises them unchanged, so the application's own error handling still runs.
Mount it directly inside AuditLogMiddleware (install_request_audit does this).
Errors converted to responses below it, by other middlewares or exception
handlers, must be reported with attach_error().
"""

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from request_audit.middleware.request_context import STATE_ATTRIBUTE, RequestContext

logger = structlog.get_logger(__name__)


def attach_error(error: BaseException, request: Request) -> None:
    """
    Record `error` on the request's audit context for the log document.
    Call it from exception handlers for errors handled before they reach the
    middleware stack. Does nothing when the audit middleware is not mounted.
    """
    context = getattr(request.state, STATE_ATTRIBUTE, None)
    if not isinstance(context, RequestContext):
        logger.debug(
            "Error not attached: request has no audit context",
            exc_type=type(error).__name__,
        )
        return
    context.attach_error(error)


class ErrorCaptureMiddleware(BaseHTTPMiddleware):
    """Observes exceptions raised by the app; never absorbs them."""

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            attach_error(exc, request)
            raise
