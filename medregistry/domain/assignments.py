"""Assignment Graph - many-to-many doctor/patient access grants.

A grant lets a doctor read and update a patient's data. Grants are created
when a doctor registers a patient and when the administrator assigns a
doctor; no operation revokes them.
"""

import logging
from typing import Dict, List, Tuple

from medregistry.domain.guardrails import RegistryTransaction
from medregistry.domain.models import DoctorRecord, PatientRecord
from medregistry.domain.registry import EntityRegistry

logger = logging.getLogger(__name__)


class AssignmentGraph:
    """Doctor/patient grant relation with per-side insertion-ordered indexes.

    Parameters:
        doctors: Doctor registry used for existence checks
        patients: Patient registry used for existence checks
    """

    def __init__(
        self,
        doctors: EntityRegistry[DoctorRecord],
        patients: EntityRegistry[PatientRecord]
    ):
        self._doctors = doctors
        self._patients = patients
        self._granted: Dict[Tuple[int, int], bool] = {}
        self._by_patient: Dict[int, List[int]] = {}
        self._by_doctor: Dict[int, List[int]] = {}

    def __len__(self) -> int:
        return sum(1 for granted in self._granted.values() if granted)

    def is_granted(self, doctor_id, patient_id) -> bool:
        """Pure lookup; unknown pairs and malformed ids are not granted."""
        if not (self._doctors.exists(doctor_id) and self._patients.exists(patient_id)):
            return False
        return self._granted.get((doctor_id, patient_id), False)

    def grant(self, txn: RegistryTransaction, doctor_id: int, patient_id: int) -> bool:
        """Grant ``doctor_id`` access to ``patient_id``.

        Granting an existing pair succeeds without change.

        Returns:
            bool: True if a new grant was recorded

        Raises:
            NotFoundError: If either id is not occupied
        """
        self._doctors.get(doctor_id)
        self._patients.get(patient_id)

        key = (doctor_id, patient_id)
        if self._granted.get(key, False):
            logger.debug(f"Doctor {doctor_id} already granted patient {patient_id}")
            return False

        self._granted[key] = True
        self._by_patient.setdefault(patient_id, []).append(doctor_id)
        self._by_doctor.setdefault(doctor_id, []).append(patient_id)

        def _undo() -> None:
            self._granted.pop(key, None)
            self._by_patient[patient_id].remove(doctor_id)
            self._by_doctor[doctor_id].remove(patient_id)

        txn.on_rollback(_undo)
        logger.debug(f"Granted doctor {doctor_id} access to patient {patient_id}")
        return True

    def doctors_for(self, patient_id: int) -> List[int]:
        """Doctors granted access to a patient, in grant order."""
        return list(self._by_patient.get(patient_id, []))

    def patients_for(self, doctor_id: int) -> List[int]:
        """Patients a doctor has been granted, in grant order."""
        return list(self._by_doctor.get(doctor_id, []))
