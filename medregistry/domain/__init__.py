"""Domain layer for MedRegistry.

This package contains the authorization policy and the entity/relationship
state machine. All domain models are pure Python with no external
dependencies beyond Pydantic.
"""

from .enums import AuditEventType, EntityKind
from .models import AuditEvent, DoctorRecord, MedicineRecord, PatientRecord
from .ports import (
    AlreadyExistsError,
    AuditPort,
    DuplicateError,
    InactiveError,
    InvalidInputError,
    NoOpError,
    NotFoundError,
    RegistryError,
    Result,
    UnauthorizedError,
)

__all__ = [
    "AuditEventType",
    "EntityKind",
    "AuditEvent",
    "DoctorRecord",
    "MedicineRecord",
    "PatientRecord",
    "AlreadyExistsError",
    "AuditPort",
    "DuplicateError",
    "InactiveError",
    "InvalidInputError",
    "NoOpError",
    "NotFoundError",
    "RegistryError",
    "Result",
    "UnauthorizedError",
]
