"""Audit Log.

This module provides the append-only audit trail the registry core publishes
to. Each committed mutation produces exactly one AuditEvent with a
monotonically increasing sequence number. Events may additionally be handed
to an AuditDispatcher for asynchronous delivery to external sinks.

Security Impact:
    - Creates an immutable audit trail of every registry mutation
    - Enables forensic analysis of who changed what and in which order
    - The trail is append-only; there is no API to remove or edit an event

Architecture:
    - Infrastructure layer component implementing the domain AuditPort
    - Delivery to sinks never blocks the caller; the trail itself is the
      outbound queue consumers read from with ``records_since``
"""

import logging
import threading
from typing import List, Optional

from medregistry.domain.enums import AuditEventType
from medregistry.domain.models import AuditEvent
from medregistry.domain.ports import AuditPort
from medregistry.infrastructure.audit.dispatcher import AuditDispatcher

logger = logging.getLogger(__name__)


class AuditLog(AuditPort):
    """In-memory append-only trail of AuditEvent objects.

    Example Usage:
        ```python
        audit = AuditLog()
        service = MedicalRegistryService(admin="0xadmin", audit=audit)
        ...
        cursor = 0
        for event in audit.records_since(cursor):
            indexer.index(event)
            cursor = event.sequence
        ```

    Parameters:
        dispatcher: Optional dispatcher that forwards events to sinks
    """

    def __init__(self, dispatcher: Optional[AuditDispatcher] = None):
        self._events: List[AuditEvent] = []
        self._lock = threading.Lock()
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> Optional[AuditDispatcher]:
        return self._dispatcher

    def append(self, event_type: AuditEventType, caller: str, payload: dict) -> AuditEvent:
        """Append a notification and forward it to the dispatcher, if any.

        Parameters:
            event_type: Kind of notification
            caller: Principal whose call produced the mutation
            payload: Entity id(s) and changed hash/label

        Returns:
            AuditEvent: The stored event
        """
        with self._lock:
            event = AuditEvent(
                sequence=len(self._events) + 1,
                event_type=event_type,
                caller=caller,
                payload=dict(payload),
            )
            self._events.append(event)

        logger.debug(f"Audit #{event.sequence}: {event.event_type.value} by {caller}")
        if self._dispatcher is not None:
            self._dispatcher.submit(event)
        return event

    def records(self) -> List[AuditEvent]:
        """Get all events in emission order."""
        with self._lock:
            return list(self._events)

    def records_since(self, sequence: int) -> List[AuditEvent]:
        """Get events with a sequence number greater than ``sequence``.

        Parameters:
            sequence: Last sequence number the consumer has processed (0 for all)
        """
        with self._lock:
            return list(self._events[max(sequence, 0):])

    def records_of_type(self, event_type: AuditEventType) -> List[AuditEvent]:
        with self._lock:
            return [event for event in self._events if event.event_type == event_type]

    def get_log_count(self) -> int:
        """Get count of logged events."""
        with self._lock:
            return len(self._events)

    def has_logs(self) -> bool:
        return self.get_log_count() > 0
