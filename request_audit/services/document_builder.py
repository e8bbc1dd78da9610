"""
Request log document construction.
Turns one finished request/response exchange into the document shape indexed
by the sink: timing, whitelisted request/response attributes, censored body
fields, route pattern, captured error, backend labels and host metrics.
"""

import traceback
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, Iterable, Mapping, MutableMapping, Optional, Protocol

from request_audit.core.config import Settings, get_settings
from request_audit.core.safety import constant, recover
from request_audit.middleware.request_context import RequestContext
from request_audit.schemas.schemas import AuditConfig
from request_audit.services.metrics_service import HostMetrics

CENSORED = "**CENSORED**"


class AttributeSource(Protocol):
    def read(self, name: str) -> Any: ...


class RequestSource(AttributeSource, Protocol):
    @property
    def raw_path(self) -> str: ...

    @property
    def route_path(self) -> Optional[str]: ...


class ResponseSource(AttributeSource, Protocol):
    error: Optional[BaseException]


def copy_value(value: Any) -> Any:
    """Shallow copy of composite values; nested objects stay shared."""
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (list, set)):
        return list(value)
    return value


def _read_copy(source: AttributeSource, key: str) -> Any:
    return copy_value(source.read(key))


def extract_attributes(source: AttributeSource, keys: Iterable[str]) -> Dict[str, Any]:
    """
    Read every whitelisted key from `source`.
    A key whose access raises is recorded as None; the others are unaffected.
    """
    return {
        key: recover(
            partial(_read_copy, source, key),
            constant(None),
            event="Whitelisted attribute unreadable",
            attribute=key,
        )
        for key in keys
    }


def censor_body(body: MutableMapping[str, Any], fields: Iterable[str]) -> MutableMapping[str, Any]:
    """Replace every listed field present in `body`, whatever its value."""
    for field in fields:
        if field in body:
            body[field] = CENSORED
    return body


def serialize_error(error: BaseException) -> Dict[str, Any]:
    """
    Flatten an exception into a mapping: name, message, stack, args and every
    instance attribute, so subclass diagnostics such as `code` are kept.
    """
    serialized: Dict[str, Any] = {
        "name": type(error).__name__,
        "message": str(error),
        "stack": "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        ),
        "args": list(error.args),
    }
    serialized.update(getattr(error, "__dict__", {}))
    return serialized


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


class LogDocumentBuilder:
    """
    Builds request log documents for one AuditConfig.
    Never raises for a single bad attribute or a failing metrics source.
    """

    def __init__(
        self,
        config: AuditConfig,
        metrics: Optional[HostMetrics] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._config = config
        self._metrics = metrics or HostMetrics()
        self._settings = settings

    def build(
        self,
        request: RequestSource,
        response: ResponseSource,
        context: RequestContext,
    ) -> Dict[str, Any]:
        """
        Produce the log document for a completed exchange.

        Args:
            request: Named-attribute view of the request.
            response: Named-attribute view of the response, carrying any attached error.
            context: Start markers recorded when the request entered the middleware.

        Returns:
            The document as a plain dict, ready for indexing.
        """
        duration = context.elapsed_ms()
        settings = self._settings or get_settings()
        started_at = context.start_wall_clock or datetime.now(timezone.utc)

        document: Dict[str, Any] = {
            "@timestamp": format_timestamp(started_at),
            "duration": duration,
            "request": extract_attributes(request, self._config.whitelist.request),
            "response": extract_attributes(response, self._config.whitelist.response),
            "backend": {
                "env": settings.APP_ENV,
                "stage": settings.STAGE_ENV,
                "sessionId": self._config.session_id,
            },
            "os": self._metrics.capture(),
            "process": {"memory": self._metrics.process_memory()},
        }

        body = document["request"].get("body")
        if isinstance(body, MutableMapping) and self._config.censor:
            censor_body(body, self._config.censor)

        route_path = recover(
            lambda: request.route_path,
            constant(None),
            event="Route pattern unreadable",
        )
        if route_path and route_path != request.raw_path:
            document["request"]["path"] = route_path

        if response.error is not None:
            document["error"] = serialize_error(response.error)

        return document
