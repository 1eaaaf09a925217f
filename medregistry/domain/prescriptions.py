"""Prescription Ledger - append-only medicine sequence per patient."""

import logging
from typing import Dict, List

from medregistry.domain.guardrails import RegistryTransaction

logger = logging.getLogger(__name__)


class PrescriptionLedger:
    """Per-patient chronological list of prescribed medicine ids.

    Duplicates are allowed. Entries are never rewritten, including when the
    medicine is deactivated later.
    """

    def __init__(self):
        self._entries: Dict[int, List[int]] = {}

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def append(self, txn: RegistryTransaction, patient_id: int, medicine_id: int) -> int:
        """Append a prescription and return its ordinal position (0-based)."""
        entries = self._entries.setdefault(patient_id, [])
        entries.append(medicine_id)
        position = len(entries) - 1

        def _undo() -> None:
            entries.pop()
            if not entries:
                self._entries.pop(patient_id, None)

        txn.on_rollback(_undo)
        logger.debug(f"Prescription #{position} for patient {patient_id}: medicine {medicine_id}")
        return position

    def for_patient(self, patient_id: int) -> List[int]:
        return list(self._entries.get(patient_id, []))
