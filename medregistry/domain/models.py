"""Registry Record Definitions.

This module defines the canonical records held by the registry (doctors,
patients, medicines) and the audit event emitted for every committed
mutation.

Security Impact:
    - Certification and medical record hashes are opaque content identifiers;
      the core never dereferences or validates the documents behind them
    - Schema validation rejects empty mandatory fields, out-of-range ages and
      non-positive prices before a record can reach a registry table
    - Type safety enforced at runtime via Pydantic V2

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Records are replaced wholesale on update so a failed validation never
      leaves a half-written record behind
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Set

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from medregistry.domain.enums import AuditEventType

MIN_PATIENT_AGE = 1
MAX_PATIENT_AGE = 120


def _require_text(value: str, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return value


class DoctorRecord(BaseModel):
    """Registered doctor.

    Parameters:
        doctor_id: Immutable numeric identifier (0 is a legitimate id)
        identity: Principal that owns this doctor entry
        name: Display name
        qualification: Qualification label
        workplace: Workplace label
        certification_hash: Content hash of the certification document
        active: False once deactivated; never flips back
    """

    model_config = ConfigDict(extra="forbid")

    doctor_id: int = Field(..., ge=0, strict=True, description="Doctor identifier")
    identity: str = Field(..., description="Owning principal")
    name: str = Field(..., description="Doctor name")
    qualification: str = Field(..., description="Qualification")
    workplace: str = Field(..., description="Workplace")
    certification_hash: str = Field(..., description="Certification content hash")
    active: bool = Field(default=True, description="Active flag")

    @field_validator("identity", "name", "qualification", "workplace", "certification_hash")
    @classmethod
    def validate_text(cls, v: str, info) -> str:
        """Reject empty or whitespace-only mandatory fields."""
        return _require_text(v, info.field_name)


class PatientRecord(BaseModel):
    """Registered patient.

    Disease labels and record hashes are kept twice: as an ordered list
    (insertion order, what callers see) and as a private membership set used
    for the duplicate check. Both are only changed through the append/pop
    helpers below so they never drift apart.

    Parameters:
        patient_id: Immutable numeric identifier
        identity: Principal that owns this patient entry
        name: Display name
        age: Age in years, 1-120 inclusive
        diseases: Ordered unique disease labels
        records: Ordered unique medical record content hashes
        active: False once deactivated
    """

    model_config = ConfigDict(extra="forbid")

    patient_id: int = Field(..., ge=0, strict=True, description="Patient identifier")
    identity: str = Field(..., description="Owning principal")
    name: str = Field(..., description="Patient name")
    age: int = Field(..., ge=MIN_PATIENT_AGE, le=MAX_PATIENT_AGE, strict=True, description="Age in years")
    diseases: List[str] = Field(default_factory=list, description="Disease labels")
    records: List[str] = Field(default_factory=list, description="Record content hashes")
    active: bool = Field(default=True, description="Active flag")

    _disease_set: Set[str] = PrivateAttr(default_factory=set)
    _record_set: Set[str] = PrivateAttr(default_factory=set)

    @field_validator("identity", "name")
    @classmethod
    def validate_text(cls, v: str, info) -> str:
        """Reject empty or whitespace-only mandatory fields."""
        return _require_text(v, info.field_name)

    @field_validator("diseases", "records")
    @classmethod
    def validate_unique_entries(cls, v: List[str], info) -> List[str]:
        """Each label/hash must be non-empty and appear at most once."""
        seen = set()
        for entry in v:
            _require_text(entry, info.field_name)
            if entry in seen:
                raise ValueError(f"{info.field_name} contains duplicate entry")
            seen.add(entry)
        return v

    def model_post_init(self, __context: Any) -> None:
        self._disease_set = set(self.diseases)
        self._record_set = set(self.records)

    def has_disease(self, label: str) -> bool:
        return label in self._disease_set

    def has_record(self, record_hash: str) -> bool:
        return record_hash in self._record_set

    def append_disease(self, label: str) -> None:
        self.diseases.append(label)
        self._disease_set.add(label)

    def pop_disease(self) -> str:
        label = self.diseases.pop()
        self._disease_set.discard(label)
        return label

    def append_record(self, record_hash: str) -> None:
        self.records.append(record_hash)
        self._record_set.add(record_hash)

    def pop_record(self) -> str:
        record_hash = self.records.pop()
        self._record_set.discard(record_hash)
        return record_hash


class MedicineRecord(BaseModel):
    """Registered medicine.

    Parameters:
        medicine_id: Immutable numeric identifier
        name: Medicine name
        expiry: Expiry label (free-form, e.g. "2027-01")
        dosage: Dosage label
        price: Positive integer price
        active: False once deactivated
    """

    model_config = ConfigDict(extra="forbid")

    medicine_id: int = Field(..., ge=0, strict=True, description="Medicine identifier")
    name: str = Field(..., description="Medicine name")
    expiry: str = Field(..., description="Expiry label")
    dosage: str = Field(..., description="Dosage label")
    price: int = Field(..., gt=0, strict=True, description="Price (positive integer)")
    active: bool = Field(default=True, description="Active flag")

    @field_validator("name", "expiry", "dosage")
    @classmethod
    def validate_text(cls, v: str, info) -> str:
        """Reject empty or whitespace-only mandatory fields."""
        return _require_text(v, info.field_name)


class AuditEvent(BaseModel):
    """One notification emitted after a committed mutation.

    Parameters:
        sequence: Position in the audit trail, starting at 1
        event_type: Kind of notification
        caller: Principal whose call produced the mutation
        payload: Entity id(s) and, where applicable, the changed hash or label
        emitted_at: UTC timestamp of emission
        event_id: Unique identifier for downstream de-duplication
    """

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(..., ge=1, description="Position in the audit trail")
    event_type: AuditEventType = Field(..., description="Notification type")
    caller: str = Field(..., description="Calling principal")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Event payload")
    emitted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Emission timestamp (UTC)"
    )
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique event id")

    def to_audit_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary for sinks."""
        return self.model_dump(mode="json")
