"""Domain enumerations for the medical registry.

Entity kinds and audit notification types are closed sets; modelling them as
``str`` enums keeps them JSON-friendly for the audit trail.
"""

from enum import Enum


class EntityKind(str, Enum):
    """Kinds of records held by an EntityRegistry."""
    DOCTOR = "doctor"
    PATIENT = "patient"
    MEDICINE = "medicine"


class AuditEventType(str, Enum):
    """Notifications emitted once per successful mutation."""
    DOCTOR_REGISTERED = "DoctorRegistered"
    DOCTOR_UPDATED = "DoctorUpdated"
    DOCTOR_DEACTIVATED = "DoctorDeactivated"
    DOCTOR_CERTIFICATION_UPDATED = "DoctorCertificationUpdated"
    PATIENT_REGISTERED = "PatientRegistered"
    PATIENT_UPDATED = "PatientUpdated"
    PATIENT_DEACTIVATED = "PatientDeactivated"
    MEDICINE_ADDED = "MedicineAdded"
    MEDICINE_UPDATED = "MedicineUpdated"
    MEDICINE_DEACTIVATED = "MedicineDeactivated"
    RECORD_ADDED = "RecordAdded"
    DISEASE_ADDED = "DiseaseAdded"
    PRESCRIPTION_ADDED = "PrescriptionAdded"
    ADMIN_CHANGED = "AdminChanged"
    DOCTOR_ASSIGNED = "DoctorAssigned"
