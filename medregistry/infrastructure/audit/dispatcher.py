"""Asynchronous audit event delivery.

The dispatcher forwards committed audit events to sinks on a background
thread so the registry never waits on an external consumer. Sink failures
are logged and swallowed; they never reach the registry caller.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Iterable, List, Optional

from medregistry.domain.models import AuditEvent
from medregistry.infrastructure.audit.sinks import AuditSink

logger = logging.getLogger(__name__)


class AuditDispatcher:
    """Single-worker delivery queue from the audit trail to sinks.

    One worker keeps per-sink delivery in emission order.

    Parameters:
        sinks: Initial sinks to deliver to
    """

    def __init__(self, sinks: Optional[Iterable[AuditSink]] = None):
        self._sinks: List[AuditSink] = list(sinks or [])
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="audit-dispatcher")
        self._pending: List[Future] = []
        self._lock = threading.Lock()
        self._closed = False
        self._delivered = 0
        self._failed = 0

    def add_sink(self, sink: AuditSink) -> None:
        with self._lock:
            self._sinks.append(sink)

    @property
    def delivered_count(self) -> int:
        return self._delivered

    @property
    def failed_count(self) -> int:
        return self._failed

    def submit(self, event: AuditEvent) -> None:
        """Queue ``event`` for delivery and return immediately."""
        with self._lock:
            if self._closed:
                logger.warning(f"Dispatcher closed; audit event #{event.sequence} not delivered")
                return
            future = self._executor.submit(self._deliver, event)
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)

    def _deliver(self, event: AuditEvent) -> None:
        with self._lock:
            sinks = list(self._sinks)
        for sink in sinks:
            try:
                sink.write(event)
                self._delivered += 1
            except Exception as e:
                self._failed += 1
                logger.error(
                    f"Failed to deliver audit event #{event.sequence} to {sink.__class__.__name__}: {e}",
                    exc_info=True
                )

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every queued event has been handed to the sinks."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        """Flush, stop the worker and close every sink."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=True)
        for sink in self._sinks:
            try:
                sink.close()
            except Exception as e:
                logger.warning(f"Failed to close audit sink {sink.__class__.__name__}: {e}")

    def __enter__(self) -> 'AuditDispatcher':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
