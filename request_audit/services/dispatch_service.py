"""
Fire-and-forget delivery of request log documents.
Each document is indexed by a detached asyncio task; the request path never
awaits it and delivery failures are only logged.
"""

import asyncio
from typing import Any, Dict, Optional, Set

import structlog

from request_audit.db.elasticsearch_client import DocumentIndexer
from request_audit.schemas.schemas import AuditConfig

logger = structlog.get_logger(__name__)


class DocumentSink:
    """
    Schedules document indexing without blocking the caller.
    No retry, no buffering: a failed delivery is logged and dropped.
    """

    def __init__(self, client: DocumentIndexer, config: AuditConfig) -> None:
        self._client = client
        self._index = config.index
        self._document_type = config.document_type
        # Strong references so running deliveries are not garbage collected
        self._pending: Set[asyncio.Task] = set()

    @property
    def client(self) -> DocumentIndexer:
        return self._client

    @property
    def pending(self) -> int:
        return len(self._pending)

    def send(self, document: Dict[str, Any]) -> Optional[asyncio.Task]:
        """
        Submit `document` for indexing and return immediately.

        Returns:
            The detached delivery task, or None when no event loop is running.
        """
        try:
            task = asyncio.get_running_loop().create_task(self._deliver(document))
        except RuntimeError:
            logger.error(
                "Request log dropped: no running event loop",
                index=self._index,
            )
            return None
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, document: Dict[str, Any]) -> None:
        try:
            await self._client.index(
                index=self._index,
                document=document,
                document_type=self._document_type,
            )
        except Exception as exc:
            logger.error(
                "Request log delivery failed",
                index=self._index,
                document_type=self._document_type,
                error=str(exc),
                exc_type=type(exc).__name__,
            )

    async def flush(self) -> None:
        """Wait for every outstanding delivery; used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
