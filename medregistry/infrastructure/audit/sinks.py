"""Audit sinks - external consumers of committed audit events."""

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, TextIO, Union

from medregistry.domain.models import AuditEvent

logger = logging.getLogger(__name__)


class AuditSink(ABC):
    """Destination for audit events delivered by the AuditDispatcher."""

    @abstractmethod
    def write(self, event: AuditEvent) -> None:
        pass

    def close(self) -> None:
        """Release resources; default is a no-op."""
        return None


class JsonLinesAuditSink(AuditSink):
    """Appends one JSON object per event to a file.

    The file is opened lazily in append mode so restarts extend the same
    trail instead of truncating it.

    Parameters:
        path: Destination file; parent directories are created on first write
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._handle: Optional[TextIO] = None
        self._lock = threading.Lock()

    def write(self, event: AuditEvent) -> None:
        line = json.dumps(event.to_audit_dict(), sort_keys=True)
        with self._lock:
            if self._handle is None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._handle = open(self.path, "a", encoding="utf-8")
                logger.debug(f"Opened audit file {self.path}")
            self._handle.write(line + "\n")
            self._handle.flush()

    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None


class LoggingAuditSink(AuditSink):
    """Writes a one-line summary of each event to a logger.

    Only event type, sequence, caller and ids are logged; hashes and labels
    stay out of application logs.
    """

    _ID_KEYS = ("doctor_id", "patient_id", "medicine_id")

    def __init__(self, logger_name: str = "medregistry.audit", level: int = logging.INFO):
        self._logger = logging.getLogger(logger_name)
        self._level = level

    def write(self, event: AuditEvent) -> None:
        ids = ", ".join(
            f"{key}={event.payload[key]}" for key in self._ID_KEYS if key in event.payload
        )
        self._logger.log(
            self._level,
            f"#{event.sequence} {event.event_type.value} by {event.caller}" + (f" ({ids})" if ids else ""),
            extra={"extra_fields": {
                "sequence": event.sequence,
                "event_type": event.event_type.value,
                "principal": event.caller,
            }}
        )
