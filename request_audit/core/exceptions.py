"""Exception hierarchy for the request audit logger."""


class RequestAuditError(Exception):
    """Base error for the audit logging pipeline."""


class SinkDeliveryError(RequestAuditError):
    """Raised when the document index rejects or cannot receive a document."""

    def __init__(self, index: str, reason: str) -> None:
        super().__init__(f"Delivery to index '{index}' failed: {reason}")
        self.index = index
        self.reason = reason
