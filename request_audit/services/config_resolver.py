"""
Configuration resolver for the audit middleware.
Deep-merges user supplied options over built-in defaults and freezes the
result into an AuditConfig.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import structlog

from request_audit.core.identifiers import generate_session_id
from request_audit.schemas.schemas import AuditConfig, WhitelistConfig

logger = structlog.get_logger(__name__)

DEFAULT_REQUEST_WHITELIST = (
    "http_version",
    "headers",
    "method",
    "original_url",
    "path",
    "query",
    "ip",
    "params",
)
DEFAULT_RESPONSE_WHITELIST = ("status_code", "headers")
DEFAULT_DOCUMENT_TYPE = "request"

# Options understood by the middleware; every other key goes to the sink client
RECOGNIZED_OPTIONS = frozenset(
    {"index", "type", "whitelist", "censor", "debug", "should_skip", "session_id"}
)


def default_index_name(now: Optional[datetime] = None) -> str:
    """Monthly index name, e.g. log_2024-05."""
    moment = now or datetime.now(timezone.utc)
    return f"log_{moment.strftime('%Y-%m')}"


def default_options(id_generator: Optional[Callable[[], str]] = None) -> Dict[str, Any]:
    """Built-in option tree. A fresh session id is drawn on every call."""
    return {
        "index": default_index_name(),
        "type": DEFAULT_DOCUMENT_TYPE,
        "whitelist": {
            "request": list(DEFAULT_REQUEST_WHITELIST),
            "response": list(DEFAULT_RESPONSE_WHITELIST),
        },
        "censor": [],
        "debug": False,
        "session_id": (id_generator or generate_session_id)(),
    }


def _field_names(value: Any) -> Tuple[str, ...]:
    # A bare string names one field, not a sequence of characters
    if isinstance(value, str):
        return (value,)
    return tuple(value or ())


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Merge `overrides` over `base` without mutating either.

    Mapping values are merged key by key (into an empty mapping when `base`
    has no mapping under that key); any other override value, lists included,
    replaces the base value outright. A None override is treated as unset and
    keeps the base value.
    """
    merged: Dict[str, Any] = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            current = merged.get(key)
            merged[key] = deep_merge(current if isinstance(current, Mapping) else {}, value)
        else:
            merged[key] = value
    return merged


def resolve_config(
    user_config: Optional[Mapping[str, Any]] = None,
    id_generator: Optional[Callable[[], str]] = None,
) -> AuditConfig:
    """
    Produce the immutable effective configuration for one middleware instance.

    Args:
        user_config: Options such as index, type, whitelist.request,
            whitelist.response, censor, debug and should_skip. Unknown keys
            are kept as Elasticsearch client options.
        id_generator: Zero-argument callable producing the session id.

    Returns:
        A frozen AuditConfig.
    """
    merged = deep_merge(default_options(id_generator), user_config or {})
    whitelist = merged["whitelist"]

    config = AuditConfig(
        index=merged["index"],
        document_type=merged["type"],
        whitelist=WhitelistConfig(
            request=_field_names(whitelist.get("request")),
            response=_field_names(whitelist.get("response")),
        ),
        censor=frozenset(_field_names(merged["censor"])),
        debug=bool(merged["debug"]),
        session_id=merged["session_id"],
        should_skip=merged.get("should_skip"),
        client_options={
            key: value for key, value in merged.items() if key not in RECOGNIZED_OPTIONS
        },
    )
    logger.debug(
        "Audit logger configuration resolved",
        index=config.index,
        document_type=config.document_type,
        session_id=config.session_id,
        censored_fields=sorted(config.censor),
    )
    return config
