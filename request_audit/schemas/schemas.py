"""
Pydantic models for the resolved audit logger configuration.
Instances are frozen: one is built per middleware and shared by all requests.
"""

from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class WhitelistConfig(BaseModel):
    """Attribute names copied from the request and response into each document."""
    model_config = ConfigDict(frozen=True)

    request: Tuple[str, ...]
    response: Tuple[str, ...]


class AuditConfig(BaseModel):
    """Effective configuration of one AuditLogMiddleware instance."""
    model_config = ConfigDict(frozen=True)

    index: str = Field(..., min_length=1)
    document_type: str = "request"
    whitelist: WhitelistConfig
    censor: FrozenSet[str] = frozenset()
    debug: bool = False
    session_id: str = Field(..., min_length=1)
    should_skip: Optional[Callable[..., bool]] = None
    # Unrecognised options, forwarded as-is to the Elasticsearch client
    client_options: Dict[str, Any] = Field(default_factory=dict)
