"""
Per-request scratch state created when a request enters the audit middleware.
Owned by a single request; never shared across requests.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

STATE_ATTRIBUTE = "audit_context"


@dataclass
class RequestContext:
    start_monotonic: Optional[int] = None
    start_wall_clock: Optional[datetime] = None
    error: Optional[BaseException] = None
    body: Any = None
    response: Any = None
    _finished: bool = field(default=False, repr=False)

    @classmethod
    def begin(cls) -> "RequestContext":
        """Capture monotonic and wall-clock start markers."""
        return cls(
            start_monotonic=time.perf_counter_ns(),
            start_wall_clock=datetime.now(timezone.utc),
        )

    def consume_finish(self) -> bool:
        """One-shot guard: True on the first call only."""
        if self._finished:
            return False
        self._finished = True
        return True

    def elapsed_ms(self, end_monotonic: Optional[int] = None) -> Optional[float]:
        """Milliseconds since start with sub-millisecond precision, None if never started."""
        if self.start_monotonic is None:
            return None
        end = time.perf_counter_ns() if end_monotonic is None else end_monotonic
        return (end - self.start_monotonic) / 1e6

    def attach_error(self, error: BaseException) -> None:
        # First error wins; later handlers may re-raise wrapped copies
        if self.error is None:
            self.error = error
