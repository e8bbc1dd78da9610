"""
Elasticsearch client wrapper used as the request log document sink.
Connection parameters are forwarded verbatim to AsyncElasticsearch.
"""

from typing import Any, Dict, Mapping, Optional, Protocol

import structlog
from elasticsearch import ApiError, AsyncElasticsearch, TransportError

from request_audit.core.config import get_settings
from request_audit.core.exceptions import SinkDeliveryError

logger = structlog.get_logger(__name__)


class DocumentIndexer(Protocol):
    """Anything able to index one document; satisfied by ElasticsearchIndexer and test doubles."""

    async def index(
        self, *, index: str, document: Dict[str, Any], document_type: str
    ) -> Any: ...


class ElasticsearchIndexer:
    """
    Thin async wrapper over AsyncElasticsearch.
    Translates client errors into SinkDeliveryError so callers handle one type.
    """

    def __init__(self, client: AsyncElasticsearch) -> None:
        self._client = client

    @classmethod
    def from_options(
        cls, options: Optional[Mapping[str, Any]] = None
    ) -> "ElasticsearchIndexer":
        """
        Build a client from connection options (hosts, api_key, basic_auth,
        request_timeout, ...). A single `host` is accepted for convenience;
        without any address the ELASTICSEARCH_URL setting is used.
        """
        client_options = dict(options or {})
        host = client_options.pop("host", None)
        if "hosts" not in client_options and "cloud_id" not in client_options:
            client_options["hosts"] = [host or get_settings().ELASTICSEARCH_URL]
        logger.info("Elasticsearch sink client created", hosts=client_options.get("hosts"))
        return cls(AsyncElasticsearch(**client_options))

    @property
    def client(self) -> AsyncElasticsearch:
        return self._client

    async def index(
        self, *, index: str, document: Dict[str, Any], document_type: str
    ) -> Any:
        """Index one document. Mapping types are gone from Elasticsearch 8, so
        `document_type` is only reported in diagnostics."""
        try:
            result = await self._client.index(index=index, document=document)
        except (ApiError, TransportError) as exc:
            raise SinkDeliveryError(index, str(exc)) from exc
        logger.debug(
            "Request log document indexed",
            index=index,
            document_type=document_type,
            document_id=result.get("_id") if hasattr(result, "get") else None,
        )
        return result

    async def close(self) -> None:
        """Close the underlying transport."""
        await self._client.close()
        logger.info("Elasticsearch sink client closed")
