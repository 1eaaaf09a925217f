"""Access Guard - authorization policy for every registry operation.

The guard is a pure evaluator over (principal, rule, target ids). It reads
the administrator identity, doctor/patient identities and active flags, and
the assignment graph; it never writes. ``evaluate`` returns a decision;
the ``require_*`` helpers raise UnauthorizedError on denial so callers can
abort before touching state.

Security Impact:
    - Inactive doctors are denied on every doctor rule, even when assigned
    - A patient's data is readable only by the patient's own principal and
      by active doctors holding a grant
    - Denials are logged with principal and rule, never with record content
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional

from medregistry.domain.assignments import AssignmentGraph
from medregistry.domain.models import DoctorRecord, PatientRecord
from medregistry.domain.ports import UnauthorizedError
from medregistry.domain.registry import EntityRegistry

if TYPE_CHECKING:
    from medregistry.domain.services.admin_ops import AdminOps

logger = logging.getLogger(__name__)


class AccessRule(str, Enum):
    """Authorization rules an operation can be gated by."""
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT_OR_ASSIGNED_DOCTOR = "patient_or_assigned_doctor"
    PUBLIC = "public"


# Operation name -> rule evaluated before it runs. Doctor-rule mutations on an
# existing patient additionally require a grant for the target patient.
OPERATION_RULES: Dict[str, AccessRule] = {
    "transfer_admin": AccessRule.ADMIN,
    "register_doctor": AccessRule.ADMIN,
    "update_doctor_details": AccessRule.ADMIN,
    "update_doctor_certification": AccessRule.ADMIN,
    "deactivate_doctor": AccessRule.ADMIN,
    "update_patient_details": AccessRule.ADMIN,
    "deactivate_patient": AccessRule.ADMIN,
    "add_medicine": AccessRule.ADMIN,
    "update_medicine": AccessRule.ADMIN,
    "deactivate_medicine": AccessRule.ADMIN,
    "assign_doctor_to_patient": AccessRule.ADMIN,
    "register_patient": AccessRule.DOCTOR,
    "update_patient_disease": AccessRule.DOCTOR,
    "update_patient_record": AccessRule.DOCTOR,
    "prescribe_medicine": AccessRule.DOCTOR,
    "view_patient_details": AccessRule.PATIENT_OR_ASSIGNED_DOCTOR,
    "view_prescribed_medicines": AccessRule.PATIENT_OR_ASSIGNED_DOCTOR,
    "view_assigned_doctors": AccessRule.PATIENT_OR_ASSIGNED_DOCTOR,
    "view_doctor_by_id": AccessRule.PUBLIC,
    "view_medicine": AccessRule.PUBLIC,
    "view_admin": AccessRule.PUBLIC,
    "is_granted": AccessRule.PUBLIC,
}


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of evaluating one rule.

    Attributes:
        allowed: True if the principal passes the rule
        rule: Rule that was evaluated
        reason: Short explanation for denials (empty when allowed)
    """
    allowed: bool
    rule: AccessRule
    reason: str = ""


class AccessGuard:
    """Evaluates access rules against current registry state.

    Parameters:
        admin_ops: Holder of the administrator identity
        doctors: Doctor registry
        patients: Patient registry
        assignments: Doctor/patient grant relation
    """

    def __init__(
        self,
        admin_ops: 'AdminOps',
        doctors: EntityRegistry[DoctorRecord],
        patients: EntityRegistry[PatientRecord],
        assignments: AssignmentGraph
    ):
        self._admin_ops = admin_ops
        self._doctors = doctors
        self._patients = patients
        self._assignments = assignments

    # ------------------------------------------------------------------
    # Rule predicates
    # ------------------------------------------------------------------

    def is_admin(self, principal: str) -> bool:
        return principal is not None and principal == self._admin_ops.admin

    def is_active_doctor(self, principal: str, doctor_id) -> bool:
        """Doctor rule: caller owns the doctor entry and it is active."""
        if principal is None or not self._doctors.exists(doctor_id):
            return False
        doctor = self._doctors.get(doctor_id)
        return principal == doctor.identity and doctor.active

    def is_patient_or_assigned_doctor(self, principal: str, patient_id, doctor_id=None) -> bool:
        """Patient's own principal, or an active doctor holding a grant."""
        if principal is None:
            return False
        if self._patients.exists(patient_id) and principal == self._patients.get(patient_id).identity:
            return True
        return (
            doctor_id is not None
            and self.is_active_doctor(principal, doctor_id)
            and self._assignments.is_granted(doctor_id, patient_id)
        )

    def evaluate(
        self,
        principal: str,
        rule: AccessRule,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None
    ) -> AccessDecision:
        """Evaluate ``rule`` for ``principal`` without raising.

        Parameters:
            principal: Authenticated caller
            rule: Rule to evaluate
            doctor_id: Doctor the caller acts as (doctor rules)
            patient_id: Target patient (patient rules)

        Returns:
            AccessDecision: allowed flag plus a reason on denial
        """
        if rule == AccessRule.PUBLIC:
            return AccessDecision(True, rule)
        if rule == AccessRule.ADMIN:
            if self.is_admin(principal):
                return AccessDecision(True, rule)
            return AccessDecision(False, rule, "caller is not the administrator")
        if rule == AccessRule.DOCTOR:
            if self.is_active_doctor(principal, doctor_id):
                return AccessDecision(True, rule)
            return AccessDecision(False, rule, f"caller is not active doctor {doctor_id}")
        if rule == AccessRule.PATIENT_OR_ASSIGNED_DOCTOR:
            if self.is_patient_or_assigned_doctor(principal, patient_id, doctor_id):
                return AccessDecision(True, rule)
            return AccessDecision(
                False, rule,
                f"caller is neither patient {patient_id} nor an assigned active doctor"
            )
        raise ValueError(f"Unknown access rule: {rule}")

    # ------------------------------------------------------------------
    # Enforcement helpers
    # ------------------------------------------------------------------

    def _deny(self, principal: str, decision: AccessDecision, entity: Optional[str] = None,
              entity_id: Optional[int] = None) -> None:
        logger.warning(
            f"Access denied for {principal!r} ({decision.rule.value}): {decision.reason}",
            extra={"extra_fields": {
                "principal": principal,
                "rule": decision.rule.value,
                "entity": entity,
                "entity_id": entity_id,
            }}
        )
        raise UnauthorizedError(
            decision.reason,
            principal=principal,
            rule=decision.rule.value,
            entity=entity,
            entity_id=entity_id
        )

    def require_admin(self, principal: str) -> None:
        decision = self.evaluate(principal, AccessRule.ADMIN)
        if not decision.allowed:
            self._deny(principal, decision)

    def require_doctor(self, principal: str, doctor_id: int) -> None:
        decision = self.evaluate(principal, AccessRule.DOCTOR, doctor_id=doctor_id)
        if not decision.allowed:
            self._deny(principal, decision, entity="doctor", entity_id=doctor_id)

    def require_assignment(self, principal: str, doctor_id: int, patient_id: int) -> None:
        """Target-patient check layered on top of the doctor rule."""
        if not self._assignments.is_granted(doctor_id, patient_id):
            decision = AccessDecision(
                False, AccessRule.DOCTOR,
                f"doctor {doctor_id} is not assigned to patient {patient_id}"
            )
            self._deny(principal, decision, entity="patient", entity_id=patient_id)

    def require_patient_or_assigned_doctor(self, principal: str, patient_id: int,
                                           doctor_id: Optional[int] = None) -> None:
        decision = self.evaluate(
            principal, AccessRule.PATIENT_OR_ASSIGNED_DOCTOR,
            doctor_id=doctor_id, patient_id=patient_id
        )
        if not decision.allowed:
            self._deny(principal, decision, entity="patient", entity_id=patient_id)
