"""Unit tests for TransactionGuard and RegistryTransaction."""

import threading

import pytest

from medregistry.domain.enums import AuditEventType
from medregistry.domain.guardrails import RegistryTransaction, TransactionGuard
from medregistry.infrastructure.audit import AuditLog


@pytest.fixture
def audit():
    return AuditLog()


@pytest.fixture
def guard(audit):
    return TransactionGuard(audit)


class TestTransactionGuard:
    """Test suite for single-writer transactions."""

    def test_commit_appends_staged_event(self, guard, audit):
        """Test that the staged event is appended on commit."""
        with guard.transaction("deactivate_doctor", "0xadmin") as txn:
            txn.emit(AuditEventType.DOCTOR_DEACTIVATED, doctor_id=1)

        events = audit.records()
        assert len(events) == 1
        assert events[0].event_type == AuditEventType.DOCTOR_DEACTIVATED
        assert events[0].caller == "0xadmin"
        assert events[0].payload == {"doctor_id": 1}

    def test_failure_undoes_writes_newest_first(self, guard, audit):
        """Test that a failure replays the undo journal newest first."""
        undone = []
        with pytest.raises(ValueError, match="boom"):
            with guard.transaction("op", "0xadmin") as txn:
                txn.on_rollback(lambda: undone.append("first"))
                txn.on_rollback(lambda: undone.append("second"))
                txn.emit(AuditEventType.MEDICINE_ADDED, medicine_id=1)
                raise ValueError("boom")

        assert undone == ["second", "first"]
        assert audit.get_log_count() == 0

    def test_interrupt_undoes_writes(self, guard, audit):
        """Test that a KeyboardInterrupt mid-operation still unwinds journalled writes."""
        state = {"active": True}
        with pytest.raises(KeyboardInterrupt):
            with guard.transaction("deactivate_doctor", "0xadmin") as txn:
                state["active"] = False
                txn.on_rollback(lambda: state.update(active=True))
                txn.emit(AuditEventType.DOCTOR_DEACTIVATED, doctor_id=1)
                raise KeyboardInterrupt

        assert state["active"] is True
        assert audit.get_log_count() == 0

    def test_guard_usable_after_failure(self, guard, audit):
        """Test that the guard accepts new transactions after a failure."""
        with pytest.raises(RuntimeError):
            with guard.transaction("op", "0xadmin"):
                raise RuntimeError("fail")

        with guard.transaction("op", "0xadmin") as txn:
            txn.emit(AuditEventType.MEDICINE_ADDED, medicine_id=1)
        assert audit.get_log_count() == 1

    def test_transaction_without_event_emits_nothing(self, guard, audit):
        """Test that a read-only transaction appends nothing."""
        with guard.transaction("noop", "0xadmin"):
            pass
        assert not audit.has_logs()

    def test_second_event_rejected(self):
        """Test that staging a second event raises RuntimeError."""
        txn = RegistryTransaction("op", "0xadmin")
        txn.emit(AuditEventType.MEDICINE_ADDED, medicine_id=1)
        with pytest.raises(RuntimeError):
            txn.emit(AuditEventType.MEDICINE_UPDATED, medicine_id=1)

    def test_reentrant_call_rejected(self, guard, audit):
        """Test that a nested transaction on the same thread raises RuntimeError."""
        with pytest.raises(RuntimeError, match="re-entrant"):
            with guard.transaction("outer", "0xadmin") as txn:
                txn.emit(AuditEventType.MEDICINE_ADDED, medicine_id=1)
                with guard.read():
                    pass
        assert audit.get_log_count() == 0

    def test_operations_from_threads_are_serialized(self, guard, audit):
        """Test that concurrent transactions never overlap."""
        counter = {"value": 0}

        def work():
            for _ in range(200):
                with guard.transaction("inc", "0xadmin"):
                    current = counter["value"]
                    counter["value"] = current + 1

        threads = [threading.Thread(target=work) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert counter["value"] == 800
