"""Domain Guardrails - Single-Writer Transactions.

Every registry operation runs inside a RegistryTransaction obtained from a
TransactionGuard. The guard holds one lock over the whole aggregate, so only
one operation is ever in flight; the transaction keeps an undo journal so a
failure anywhere in the call unwinds the writes made before it.

Security Impact:
    - No two operations interleave reads and writes on the aggregate
    - A failed precondition never leaves partial state behind
    - The audit event is appended only after the writes have committed,
      and is discarded when they are rolled back

Architecture:
    - Pure domain logic with no infrastructure dependencies
    - Publishes through AuditPort; does not know how events are delivered
"""

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Tuple

from medregistry.domain.enums import AuditEventType
from medregistry.domain.ports import AuditPort

logger = logging.getLogger(__name__)


class RegistryTransaction:
    """Undo journal and staged audit event for one operation.

    Attributes:
        operation: Name of the operation (for logging)
        caller: Principal performing the operation
    """

    def __init__(self, operation: str, caller: str):
        self.operation = operation
        self.caller = caller
        self._undo: List[Callable[[], None]] = []
        self._event: Optional[Tuple[AuditEventType, dict]] = None

    def on_rollback(self, undo: Callable[[], None]) -> None:
        """Register the inverse of a write that has just been applied."""
        self._undo.append(undo)

    def emit(self, event_type: AuditEventType, **payload) -> None:
        """Stage the single audit event this operation commits with.

        Raises:
            RuntimeError: If an event was already staged in this transaction
        """
        if self._event is not None:
            raise RuntimeError(f"{self.operation} staged more than one audit event")
        self._event = (event_type, payload)

    @property
    def staged_event(self) -> Optional[Tuple[AuditEventType, dict]]:
        return self._event

    @property
    def write_count(self) -> int:
        return len(self._undo)

    def rollback(self) -> None:
        """Replay the undo journal newest-first and drop the staged event."""
        while self._undo:
            undo = self._undo.pop()
            undo()
        self._event = None


class TransactionGuard:
    """Single serialization point for the registry aggregate.

    Example Usage:
        ```python
        guard = TransactionGuard(audit)
        with guard.transaction("deactivate_doctor", caller) as txn:
            record.active = False
            txn.on_rollback(lambda: setattr(record, "active", True))
            txn.emit(AuditEventType.DOCTOR_DEACTIVATED, doctor_id=record.doctor_id)
        ```
    """

    def __init__(self, audit: AuditPort):
        self._audit = audit
        self._lock = threading.Lock()
        self._owner: Optional[int] = None

    @property
    def audit(self) -> AuditPort:
        return self._audit

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if self._owner == threading.get_ident():
            # Same thread re-entering mid-operation would see partial writes.
            raise RuntimeError("re-entrant registry call while an operation is in flight")
        with self._lock:
            self._owner = threading.get_ident()
            try:
                yield
            finally:
                self._owner = None

    @contextmanager
    def transaction(self, operation: str, caller: str) -> Iterator[RegistryTransaction]:
        """Run a mutating operation atomically.

        The staged audit event is appended after the body completes; if the
        body or the append raises (including KeyboardInterrupt), every
        journalled write is undone and the exception propagates unchanged.
        """
        with self._exclusive():
            txn = RegistryTransaction(operation, caller)
            try:
                yield txn
                staged = txn.staged_event
                if staged is not None:
                    event_type, payload = staged
                    self._audit.append(event_type, caller, payload)
            except BaseException as e:
                writes = txn.write_count
                txn.rollback()
                logger.debug(
                    f"Rolled back {operation} for {caller}: {type(e).__name__} "
                    f"({writes} write(s) undone)"
                )
                raise
            logger.info(
                f"Committed {operation} by {caller}",
                extra={"extra_fields": {"operation": operation, "principal": caller}}
            )

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the aggregate lock for a read-only operation."""
        with self._exclusive():
            yield
