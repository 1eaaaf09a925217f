"""Unit tests for the audit trail, dispatcher and sinks."""

import json
import logging
import threading

import pytest

from medregistry.domain.enums import AuditEventType
from medregistry.domain.ports import AuditPort
from medregistry.infrastructure.audit import (
    AuditDispatcher,
    AuditLog,
    AuditSink,
    JsonLinesAuditSink,
    LoggingAuditSink,
)


class RecordingSink(AuditSink):
    def __init__(self):
        self.events = []
        self.closed = False

    def write(self, event):
        self.events.append(event)

    def close(self):
        self.closed = True


class FailingSink(AuditSink):
    def write(self, event):
        raise IOError("consumer unavailable")


class BlockingSink(AuditSink):
    def __init__(self):
        self.release = threading.Event()
        self.events = []

    def write(self, event):
        self.release.wait(timeout=5)
        self.events.append(event)


class TestAuditLog:
    """Test suite for AuditLog."""

    def test_init(self):
        """Test AuditLog initialization."""
        audit = AuditLog()
        assert isinstance(audit, AuditPort)
        assert audit.get_log_count() == 0
        assert not audit.has_logs()
        assert audit.dispatcher is None

    def test_append_assigns_sequence(self):
        """Test that append assigns increasing sequence numbers."""
        audit = AuditLog()
        first = audit.append(AuditEventType.DOCTOR_REGISTERED, "0xadmin", {"doctor_id": 1, "identity": "0xdoc"})
        second = audit.append(AuditEventType.MEDICINE_ADDED, "0xadmin", {"medicine_id": 1})

        assert (first.sequence, second.sequence) == (1, 2)
        assert first.caller == "0xadmin"
        assert first.payload == {"doctor_id": 1, "identity": "0xdoc"}
        assert first.event_id != second.event_id
        assert audit.records() == [first, second]

    def test_payload_is_copied(self):
        """Test that the stored payload is a copy of the caller's."""
        audit = AuditLog()
        payload = {"medicine_id": 1}
        event = audit.append(AuditEventType.MEDICINE_ADDED, "0xadmin", payload)
        payload["medicine_id"] = 2
        assert event.payload == {"medicine_id": 1}

    def test_records_since(self):
        """Test reading events after a sequence cursor."""
        audit = AuditLog()
        for medicine_id in range(1, 4):
            audit.append(AuditEventType.MEDICINE_ADDED, "0xadmin", {"medicine_id": medicine_id})

        assert [event.sequence for event in audit.records_since(0)] == [1, 2, 3]
        assert [event.sequence for event in audit.records_since(2)] == [3]
        assert audit.records_since(3) == []

    def test_records_of_type(self):
        """Test filtering events by type."""
        audit = AuditLog()
        audit.append(AuditEventType.MEDICINE_ADDED, "0xadmin", {"medicine_id": 1})
        audit.append(AuditEventType.MEDICINE_DEACTIVATED, "0xadmin", {"medicine_id": 1})

        deactivations = audit.records_of_type(AuditEventType.MEDICINE_DEACTIVATED)
        assert [event.sequence for event in deactivations] == [2]

    def test_records_returns_copy(self):
        """Test that records() returns a copy, not the original list."""
        audit = AuditLog()
        audit.append(AuditEventType.MEDICINE_ADDED, "0xadmin", {"medicine_id": 1})
        audit.records().clear()
        assert audit.get_log_count() == 1

    def test_append_forwards_to_dispatcher(self):
        """Test that appended events are submitted to the dispatcher."""
        sink = RecordingSink()
        with AuditDispatcher([sink]) as dispatcher:
            audit = AuditLog(dispatcher=dispatcher)
            event = audit.append(AuditEventType.MEDICINE_ADDED, "0xadmin", {"medicine_id": 1})
            dispatcher.flush(timeout=5)
            assert sink.events == [event]


class TestAuditDispatcher:
    """Test suite for background delivery."""

    def _event(self, audit, medicine_id=1):
        return audit.append(AuditEventType.MEDICINE_ADDED, "0xadmin", {"medicine_id": medicine_id})

    def test_delivers_in_order(self):
        """Test that sinks receive events in commit order."""
        sink = RecordingSink()
        dispatcher = AuditDispatcher([sink])
        audit = AuditLog()
        events = [self._event(audit, i) for i in range(1, 6)]
        for event in events:
            dispatcher.submit(event)
        dispatcher.close()

        assert sink.events == events
        assert dispatcher.delivered_count == 5
        assert sink.closed

    def test_submit_does_not_wait_for_sink(self):
        """Test that submit returns while a sink is still busy."""
        sink = BlockingSink()
        dispatcher = AuditDispatcher([sink])
        dispatcher.submit(self._event(AuditLog()))
        assert sink.events == []

        sink.release.set()
        dispatcher.flush(timeout=5)
        assert len(sink.events) == 1
        dispatcher.close()

    def test_failing_sink_is_isolated(self, caplog):
        """Test that a failing sink is counted and other sinks still receive events."""
        good = RecordingSink()
        dispatcher = AuditDispatcher([FailingSink(), good])
        with caplog.at_level(logging.ERROR, logger="medregistry.infrastructure.audit.dispatcher"):
            dispatcher.submit(self._event(AuditLog()))
            dispatcher.close()

        assert len(good.events) == 1
        assert dispatcher.failed_count == 1
        assert dispatcher.delivered_count == 1
        assert "Failed to deliver audit event #1" in caplog.text

    def test_submit_after_close_is_dropped(self, caplog):
        """Test that events submitted after close are dropped."""
        sink = RecordingSink()
        dispatcher = AuditDispatcher([sink])
        dispatcher.close()
        with caplog.at_level(logging.WARNING, logger="medregistry.infrastructure.audit.dispatcher"):
            dispatcher.submit(self._event(AuditLog()))
        assert sink.events == []
        assert "not delivered" in caplog.text

    def test_close_is_idempotent(self):
        """Test that close can be called twice."""
        dispatcher = AuditDispatcher([RecordingSink()])
        dispatcher.close()
        dispatcher.close()

    def test_add_sink(self):
        """Test registering a sink after construction."""
        sink = RecordingSink()
        dispatcher = AuditDispatcher()
        dispatcher.add_sink(sink)
        dispatcher.submit(self._event(AuditLog()))
        dispatcher.close()
        assert len(sink.events) == 1


class TestSinks:
    """Test suite for the bundled sinks."""

    def test_json_lines_sink(self, tmp_path):
        """Test that the JSON-lines sink writes one object per event."""
        path = tmp_path / "audit" / "events.jsonl"
        audit = AuditLog()
        sink = JsonLinesAuditSink(path)
        sink.write(audit.append(AuditEventType.DOCTOR_REGISTERED, "0xadmin", {"doctor_id": 1, "identity": "0xdoc"}))
        sink.write(audit.append(AuditEventType.DOCTOR_DEACTIVATED, "0xadmin", {"doctor_id": 1}))
        sink.close()

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert first["sequence"] == 1
        assert first["event_type"] == "DoctorRegistered"
        assert first["payload"] == {"doctor_id": 1, "identity": "0xdoc"}
        assert json.loads(lines[1])["event_type"] == "DoctorDeactivated"

    def test_json_lines_sink_appends(self, tmp_path):
        """Test that the JSON-lines sink appends to an existing file."""
        path = tmp_path / "events.jsonl"
        path.write_text('{"existing": true}\n', encoding="utf-8")
        sink = JsonLinesAuditSink(path)
        sink.write(AuditLog().append(AuditEventType.MEDICINE_ADDED, "0xadmin", {"medicine_id": 1}))
        sink.close()

        assert len(path.read_text(encoding="utf-8").splitlines()) == 2

    def test_logging_sink(self, caplog):
        """Test that the logging sink logs each event."""
        sink = LoggingAuditSink()
        event = AuditLog().append(
            AuditEventType.RECORD_ADDED, "0xdoc", {"patient_id": 3, "doctor_id": 1, "record_hash": "QmSecret"}
        )
        with caplog.at_level(logging.INFO, logger="medregistry.audit"):
            sink.write(event)

        assert "#1 RecordAdded by 0xdoc (doctor_id=1, patient_id=3)" in caplog.text
        assert "QmSecret" not in caplog.text
