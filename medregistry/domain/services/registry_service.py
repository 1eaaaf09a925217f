"""Medical Registry Service - the aggregate root.

This module exposes the full operation surface of the registry. Each public
method receives the authenticated caller principal explicitly, runs inside a
single-writer transaction, consults AccessGuard before touching state, and
commits exactly one audit event on success.

Check order for doctor-acted operations:
    1. acting doctor exists                 -> NotFoundError
    2. caller is that doctor and it is active -> UnauthorizedError
    3. target patient exists                -> NotFoundError
    4. doctor holds a grant for the patient -> UnauthorizedError
    5. target patient/medicine is active    -> InactiveError
    6. field validation                     -> InvalidInputError
    7. duplicate label / hash               -> DuplicateError

Security Impact:
    - Authorization precedes every read of patient data and every write
    - Returned records are detached copies; callers cannot mutate the tables
    - Content hashes are stored verbatim and never dereferenced

Architecture:
    - Owns the three EntityRegistry tables, the AssignmentGraph and the
      PrescriptionLedger; all share one TransactionGuard
    - Publishes through AuditPort (injected), no infrastructure imports
"""

import logging
from typing import List, Optional

from medregistry.domain.access_guard import AccessGuard
from medregistry.domain.assignments import AssignmentGraph
from medregistry.domain.enums import AuditEventType, EntityKind
from medregistry.domain.guardrails import TransactionGuard
from medregistry.domain.models import DoctorRecord, MedicineRecord, PatientRecord
from medregistry.domain.ports import AuditPort, DuplicateError, InvalidInputError, NoOpError
from medregistry.domain.prescriptions import PrescriptionLedger
from medregistry.domain.registry import EntityRegistry
from medregistry.domain.services.admin_ops import AdminOps

logger = logging.getLogger(__name__)


def _check_label(value, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{field_name} must be a non-empty string")
    return value


class MedicalRegistryService:
    """Permissioned registry of doctors, patients and medicines.

    Parameters:
        admin: Initial administrator principal
        audit: Audit trail receiving one event per committed mutation

    Example Usage:
        ```python
        service = MedicalRegistryService(admin="0xadmin", audit=AuditLog())
        service.register_doctor("0xadmin", 1, "0xdoc", "Ada", "MD", "General", "QmCert")
        service.register_patient("0xdoc", 1, 1, "0xpat", "Bob", 30)
        service.update_patient_disease("0xdoc", 1, 1, "flu")
        ```
    """

    def __init__(self, admin: str, audit: AuditPort):
        self.admin_ops = AdminOps(admin)
        self.doctors: EntityRegistry[DoctorRecord] = EntityRegistry(
            EntityKind.DOCTOR, DoctorRecord, "doctor_id"
        )
        self.patients: EntityRegistry[PatientRecord] = EntityRegistry(
            EntityKind.PATIENT, PatientRecord, "patient_id"
        )
        self.medicines: EntityRegistry[MedicineRecord] = EntityRegistry(
            EntityKind.MEDICINE, MedicineRecord, "medicine_id"
        )
        self.assignments = AssignmentGraph(self.doctors, self.patients)
        self.prescriptions = PrescriptionLedger()
        self.guard = AccessGuard(self.admin_ops, self.doctors, self.patients, self.assignments)
        self._txn = TransactionGuard(audit)

    @property
    def audit(self) -> AuditPort:
        return self._txn.audit

    # ------------------------------------------------------------------
    # Shared precondition chains
    # ------------------------------------------------------------------

    def _require_acting_doctor(self, caller: str, doctor_id) -> DoctorRecord:
        doctor = self.doctors.get(doctor_id)
        self.guard.require_doctor(caller, doctor_id)
        return doctor

    def _require_assigned_patient(self, caller: str, doctor_id, patient_id) -> PatientRecord:
        """Doctor rule, grant for the target patient, patient active."""
        self._require_acting_doctor(caller, doctor_id)
        self.patients.get(patient_id)
        self.guard.require_assignment(caller, doctor_id, patient_id)
        return self.patients.require_active(patient_id)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def transfer_admin(self, caller: str, new_admin: str) -> str:
        """Hand the administrator role to ``new_admin``.

        Returns:
            str: The new administrator

        Raises:
            UnauthorizedError: Caller is not the administrator
            InvalidInputError: ``new_admin`` is blank or already the administrator
        """
        with self._txn.transaction("transfer_admin", caller) as txn:
            self.guard.require_admin(caller)
            previous = self.admin_ops.transfer(txn, new_admin)
            txn.emit(AuditEventType.ADMIN_CHANGED, previous_admin=previous, new_admin=new_admin)
        return new_admin

    def view_admin(self) -> str:
        """Current administrator principal."""
        with self._txn.read():
            return self.admin_ops.admin

    # ------------------------------------------------------------------
    # Doctors
    # ------------------------------------------------------------------

    def register_doctor(
        self,
        caller: str,
        doctor_id: int,
        identity: str,
        name: str,
        qualification: str,
        workplace: str,
        certification_hash: str
    ) -> int:
        """Onboard a doctor owned by ``identity``.

        Raises:
            UnauthorizedError: Caller is not the administrator
            AlreadyExistsError: ``doctor_id`` is occupied
            InvalidInputError: A mandatory field is empty
        """
        with self._txn.transaction("register_doctor", caller) as txn:
            self.guard.require_admin(caller)
            self.doctors.create(
                txn, doctor_id,
                identity=identity,
                name=name,
                qualification=qualification,
                workplace=workplace,
                certification_hash=certification_hash,
            )
            txn.emit(AuditEventType.DOCTOR_REGISTERED, doctor_id=doctor_id, identity=identity)
        return doctor_id

    def update_doctor_details(
        self,
        caller: str,
        doctor_id: int,
        name: str,
        qualification: str,
        workplace: str
    ) -> DoctorRecord:
        """Overwrite a doctor's name, qualification and workplace.

        The identity and certification hash are left untouched.

        Returns:
            DoctorRecord: Detached copy of the updated doctor

        Raises:
            UnauthorizedError: Caller is not the administrator
            NotFoundError: ``doctor_id`` does not exist
            InactiveError: The doctor is deactivated
            InvalidInputError: A field is empty
        """
        with self._txn.transaction("update_doctor_details", caller) as txn:
            self.guard.require_admin(caller)
            updated = self.doctors.replace(
                txn, doctor_id, name=name, qualification=qualification, workplace=workplace
            )
            txn.emit(AuditEventType.DOCTOR_UPDATED, doctor_id=doctor_id)
        return updated.model_copy(deep=True)

    def update_doctor_certification(self, caller: str, doctor_id: int, certification_hash: str) -> DoctorRecord:
        """Replace the certification hash; the new hash must differ.

        Returns:
            DoctorRecord: Detached copy of the updated doctor

        Raises:
            UnauthorizedError: Caller is not the administrator
            NotFoundError: ``doctor_id`` does not exist
            InactiveError: The doctor is deactivated
            InvalidInputError: ``certification_hash`` is empty
            NoOpError: ``certification_hash`` equals the stored hash
        """
        with self._txn.transaction("update_doctor_certification", caller) as txn:
            self.guard.require_admin(caller)
            doctor = self.doctors.require_active(doctor_id)
            _check_label(certification_hash, "certification_hash")
            if certification_hash == doctor.certification_hash:
                raise NoOpError(
                    f"doctor {doctor_id} already has this certification hash",
                    entity=EntityKind.DOCTOR.value,
                    entity_id=doctor_id
                )
            updated = self.doctors.replace(txn, doctor_id, certification_hash=certification_hash)
            txn.emit(
                AuditEventType.DOCTOR_CERTIFICATION_UPDATED,
                doctor_id=doctor_id,
                certification_hash=certification_hash,
            )
        return updated.model_copy(deep=True)

    def deactivate_doctor(self, caller: str, doctor_id: int) -> None:
        """Deactivate a doctor; every doctor-rule check fails for it afterwards.

        Raises:
            UnauthorizedError: Caller is not the administrator
            NotFoundError: ``doctor_id`` does not exist
        """
        with self._txn.transaction("deactivate_doctor", caller) as txn:
            self.guard.require_admin(caller)
            self.doctors.deactivate(txn, doctor_id)
            txn.emit(AuditEventType.DOCTOR_DEACTIVATED, doctor_id=doctor_id)

    def view_doctor_by_id(self, caller: str, doctor_id: int) -> DoctorRecord:
        """Public read; only existence is checked.

        Raises:
            NotFoundError: ``doctor_id`` does not exist
        """
        with self._txn.read():
            return self.doctors.view(doctor_id)

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------

    def register_patient(
        self,
        caller: str,
        doctor_id: int,
        patient_id: int,
        identity: str,
        name: str,
        age: int,
        diseases: Optional[List[str]] = None,
        records: Optional[List[str]] = None
    ) -> int:
        """Onboard a patient; the registering doctor is granted access.

        Raises:
            NotFoundError: ``doctor_id`` does not exist
            UnauthorizedError: Caller is not that doctor, or it is inactive
            AlreadyExistsError: ``patient_id`` is occupied
            InvalidInputError: Empty name/identity, age outside 1-120, or initial
                disease/record values that are not a list of unique labels
        """
        with self._txn.transaction("register_patient", caller) as txn:
            self._require_acting_doctor(caller, doctor_id)
            self.patients.create(
                txn, patient_id,
                identity=identity,
                name=name,
                age=age,
                diseases=[] if diseases is None else diseases,
                records=[] if records is None else records,
            )
            self.assignments.grant(txn, doctor_id, patient_id)
            txn.emit(
                AuditEventType.PATIENT_REGISTERED,
                patient_id=patient_id,
                doctor_id=doctor_id,
                identity=identity,
            )
        return patient_id

    def update_patient_details(self, caller: str, patient_id: int, name: str, age: int) -> PatientRecord:
        """Overwrite a patient's name and age.

        Parameters:
            caller: Must be the administrator
            patient_id: Target patient
            name: New display name
            age: New age in years, 1-120 inclusive

        Returns:
            PatientRecord: Detached copy of the updated patient

        Raises:
            UnauthorizedError: Caller is not the administrator
            NotFoundError: ``patient_id`` does not exist
            InactiveError: The patient is deactivated
            InvalidInputError: Empty name or age outside 1-120
        """
        with self._txn.transaction("update_patient_details", caller) as txn:
            self.guard.require_admin(caller)
            updated = self.patients.replace(txn, patient_id, name=name, age=age)
            txn.emit(AuditEventType.PATIENT_UPDATED, patient_id=patient_id)
        return updated.model_copy(deep=True)

    def update_patient_disease(self, caller: str, doctor_id: int, patient_id: int, disease: str) -> List[str]:
        """Append a disease label to an assigned patient.

        Returns:
            List[str]: The patient's disease labels after the append

        Raises:
            NotFoundError: The doctor or patient does not exist
            UnauthorizedError: Caller is not the active doctor, or not assigned
            InactiveError: The patient is deactivated
            InvalidInputError: ``disease`` is empty
            DuplicateError: The label is already recorded for the patient
        """
        with self._txn.transaction("update_patient_disease", caller) as txn:
            patient = self._require_assigned_patient(caller, doctor_id, patient_id)
            _check_label(disease, "disease")
            if patient.has_disease(disease):
                raise DuplicateError(
                    f"patient {patient_id} already has this disease recorded",
                    entity=EntityKind.PATIENT.value,
                    entity_id=patient_id
                )
            patient.append_disease(disease)
            txn.on_rollback(patient.pop_disease)
            txn.emit(AuditEventType.DISEASE_ADDED, patient_id=patient_id, doctor_id=doctor_id, disease=disease)
            return list(patient.diseases)

    def update_patient_record(self, caller: str, doctor_id: int, patient_id: int, record_hash: str) -> List[str]:
        """Append a medical record content hash to an assigned patient.

        Returns:
            List[str]: The patient's record hashes after the append

        Raises:
            NotFoundError: The doctor or patient does not exist
            UnauthorizedError: Caller is not the active doctor, or not assigned
            InactiveError: The patient is deactivated
            InvalidInputError: ``record_hash`` is empty
            DuplicateError: The hash is already recorded for the patient
        """
        with self._txn.transaction("update_patient_record", caller) as txn:
            patient = self._require_assigned_patient(caller, doctor_id, patient_id)
            _check_label(record_hash, "record_hash")
            if patient.has_record(record_hash):
                raise DuplicateError(
                    f"patient {patient_id} already has this record",
                    entity=EntityKind.PATIENT.value,
                    entity_id=patient_id
                )
            patient.append_record(record_hash)
            txn.on_rollback(patient.pop_record)
            txn.emit(
                AuditEventType.RECORD_ADDED,
                patient_id=patient_id,
                doctor_id=doctor_id,
                record_hash=record_hash,
            )
            return list(patient.records)

    def deactivate_patient(self, caller: str, patient_id: int) -> None:
        """Deactivate a patient; its data stays readable.

        Raises:
            UnauthorizedError: Caller is not the administrator
            NotFoundError: ``patient_id`` does not exist
        """
        with self._txn.transaction("deactivate_patient", caller) as txn:
            self.guard.require_admin(caller)
            self.patients.deactivate(txn, patient_id)
            txn.emit(AuditEventType.PATIENT_DEACTIVATED, patient_id=patient_id)

    def view_patient_details(self, caller: str, patient_id: int, doctor_id: Optional[int] = None) -> PatientRecord:
        """Read a patient as the patient itself or as an assigned active doctor.

        Parameters:
            caller: Patient principal, or the identity of ``doctor_id``
            patient_id: Target patient
            doctor_id: Doctor the caller acts as; omit when the caller is the patient

        Raises:
            NotFoundError: ``patient_id`` does not exist
            UnauthorizedError: Caller is neither the patient nor an assigned active doctor
        """
        with self._txn.read():
            self.patients.get(patient_id)
            self.guard.require_patient_or_assigned_doctor(caller, patient_id, doctor_id)
            return self.patients.view(patient_id)

    def view_assigned_doctors(self, caller: str, patient_id: int, doctor_id: Optional[int] = None) -> List[int]:
        """Doctors granted access to a patient, in grant order.

        Raises:
            NotFoundError: ``patient_id`` does not exist
            UnauthorizedError: Caller is neither the patient nor an assigned active doctor
        """
        with self._txn.read():
            self.patients.get(patient_id)
            self.guard.require_patient_or_assigned_doctor(caller, patient_id, doctor_id)
            return self.assignments.doctors_for(patient_id)

    # ------------------------------------------------------------------
    # Medicines
    # ------------------------------------------------------------------

    def add_medicine(
        self,
        caller: str,
        medicine_id: int,
        name: str,
        expiry: str,
        dosage: str,
        price: int
    ) -> int:
        """Add a medicine to the catalogue.

        Raises:
            UnauthorizedError: Caller is not the administrator
            AlreadyExistsError: ``medicine_id`` is occupied
            InvalidInputError: Empty name/expiry/dosage or non-positive price
        """
        with self._txn.transaction("add_medicine", caller) as txn:
            self.guard.require_admin(caller)
            self.medicines.create(txn, medicine_id, name=name, expiry=expiry, dosage=dosage, price=price)
            txn.emit(AuditEventType.MEDICINE_ADDED, medicine_id=medicine_id)
        return medicine_id

    def update_medicine(
        self,
        caller: str,
        medicine_id: int,
        name: str,
        expiry: str,
        dosage: str,
        price: int
    ) -> MedicineRecord:
        """Overwrite every mutable field of a medicine.

        Returns:
            MedicineRecord: Detached copy of the updated medicine

        Raises:
            UnauthorizedError: Caller is not the administrator
            NotFoundError: ``medicine_id`` does not exist
            InactiveError: The medicine is deactivated
            InvalidInputError: Empty name/expiry/dosage or non-positive price
        """
        with self._txn.transaction("update_medicine", caller) as txn:
            self.guard.require_admin(caller)
            updated = self.medicines.replace(
                txn, medicine_id, name=name, expiry=expiry, dosage=dosage, price=price
            )
            txn.emit(AuditEventType.MEDICINE_UPDATED, medicine_id=medicine_id)
        return updated.model_copy(deep=True)

    def deactivate_medicine(self, caller: str, medicine_id: int) -> None:
        """Withdraw a medicine; existing prescriptions are kept.

        Raises:
            UnauthorizedError: Caller is not the administrator
            NotFoundError: ``medicine_id`` does not exist
        """
        with self._txn.transaction("deactivate_medicine", caller) as txn:
            self.guard.require_admin(caller)
            self.medicines.deactivate(txn, medicine_id)
            txn.emit(AuditEventType.MEDICINE_DEACTIVATED, medicine_id=medicine_id)

    def view_medicine(self, caller: str, medicine_id: int) -> MedicineRecord:
        """Public read of a medicine, active or not.

        Raises:
            NotFoundError: ``medicine_id`` does not exist
        """
        with self._txn.read():
            return self.medicines.view(medicine_id)

    # ------------------------------------------------------------------
    # Assignments and prescriptions
    # ------------------------------------------------------------------

    def assign_doctor_to_patient(self, caller: str, doctor_id: int, patient_id: int) -> bool:
        """Grant a doctor access to a patient; repeat grants succeed.

        Returns:
            bool: True if the grant is new
        """
        with self._txn.transaction("assign_doctor_to_patient", caller) as txn:
            self.guard.require_admin(caller)
            created = self.assignments.grant(txn, doctor_id, patient_id)
            txn.emit(AuditEventType.DOCTOR_ASSIGNED, doctor_id=doctor_id, patient_id=patient_id)
        return created

    def is_granted(self, doctor_id: int, patient_id: int) -> bool:
        """True if the doctor holds a grant for the patient; unknown ids give False."""
        with self._txn.read():
            return self.assignments.is_granted(doctor_id, patient_id)

    def prescribe_medicine(self, caller: str, doctor_id: int, patient_id: int, medicine_id: int) -> int:
        """Append ``medicine_id`` to the patient's prescriptions.

        Returns:
            int: Ordinal position of the new entry (0-based)

        Raises:
            NotFoundError: Doctor, patient or medicine does not exist
            UnauthorizedError: Caller is not the active doctor, or not assigned
            InactiveError: Patient or medicine is deactivated
        """
        with self._txn.transaction("prescribe_medicine", caller) as txn:
            self._require_assigned_patient(caller, doctor_id, patient_id)
            self.medicines.require_active(medicine_id)
            position = self.prescriptions.append(txn, patient_id, medicine_id)
            txn.emit(
                AuditEventType.PRESCRIPTION_ADDED,
                patient_id=patient_id,
                doctor_id=doctor_id,
                medicine_id=medicine_id,
                position=position,
            )
        return position

    def view_prescribed_medicines(self, caller: str, patient_id: int, doctor_id: Optional[int] = None) -> List[int]:
        """Medicine ids prescribed to a patient, oldest first, duplicates kept.

        Raises:
            NotFoundError: ``patient_id`` does not exist
            UnauthorizedError: Caller is neither the patient nor an assigned active doctor
        """
        with self._txn.read():
            self.patients.get(patient_id)
            self.guard.require_patient_or_assigned_doctor(caller, patient_id, doctor_id)
            return self.prescriptions.for_patient(patient_id)
