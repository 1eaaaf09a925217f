"""Domain Ports - Error Taxonomy and Outbound Contracts.

This module defines the exception hierarchy surfaced by every registry
operation and the Port interface the Domain Core uses to publish audit
notifications. Following Hexagonal Architecture, the core states what it
emits, not how the notification is delivered or indexed.

Security Impact:
    - Every authorization or precondition failure is a distinct exception type
    - Errors are raised before any state change is committed
    - Audit delivery is decoupled from the core; a slow sink never blocks a call

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Infrastructure (in-memory trail, JSON-lines file) implements AuditPort
    - Result type is used only at batch boundaries (command replay)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, List, Optional, TypeVar, Union

from medregistry.domain.enums import AuditEventType
from medregistry.domain.models import AuditEvent

T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Registry operations raise; the replay boundary converts each outcome into
    a Result so one failed command does not stop the rest of a script.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error message (only present if success=False)
        error_type: Name of the error (NotFoundError, UnauthorizedError, etc.)
        error_details: Additional error context (op name, command index, etc.)
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result."""
        return cls(success=True, value=value)

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Type of error (defaults to the exception class name)
            error_details: Additional context

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class RegistryError(Exception):
    """Base exception for all registry operation failures.

    Every subclass aborts the whole call; no partial state survives it.

    Attributes:
        entity: Kind of the record involved (doctor, patient, medicine), if any
        entity_id: Identifier of the record involved, if any
    """

    def __init__(self, message: str, entity: Optional[str] = None, entity_id: Optional[int] = None):
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class NotFoundError(RegistryError):
    """Raised when a referenced id is not occupied."""
    pass


class AlreadyExistsError(RegistryError):
    """Raised when creating a record whose id is already occupied."""
    pass


class UnauthorizedError(RegistryError):
    """Raised when the caller fails the applicable access rule.

    Attributes:
        principal: The caller that was denied
        rule: Name of the rule that denied the call
    """

    def __init__(
        self,
        message: str,
        principal: Optional[str] = None,
        rule: Optional[str] = None,
        entity: Optional[str] = None,
        entity_id: Optional[int] = None
    ):
        super().__init__(message, entity=entity, entity_id=entity_id)
        self.principal = principal
        self.rule = rule


class InvalidInputError(RegistryError):
    """Raised on empty mandatory fields, out-of-range age, or non-positive price.

    Attributes:
        details: Field-level validation messages, if available
    """

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        entity_id: Optional[int] = None,
        details: Optional[dict] = None
    ):
        super().__init__(message, entity=entity, entity_id=entity_id)
        self.details = details or {}


class InactiveError(RegistryError):
    """Raised when the target doctor, patient, or medicine is deactivated."""
    pass


class DuplicateError(RegistryError):
    """Raised when a disease label or record hash is already on the patient."""
    pass


class NoOpError(RegistryError):
    """Raised when a certification update carries the currently stored hash."""
    pass


# ============================================================================
# Outbound Ports
# ============================================================================

class AuditPort(ABC):
    """Abstract contract for the audit trail the core appends to.

    The core calls ``append`` exactly once per committed mutation, after the
    state change is in place. Implementations must not raise for delivery
    problems of downstream consumers; those are their own concern.

    Example Usage:
        ```python
        audit = AuditLog()
        service = MedicalRegistryService(admin="0xadmin", audit=audit)
        service.register_doctor("0xadmin", 1, "0xdoc", "Ada", "MD", "City", "Qm1")
        assert audit.records()[0].event_type == AuditEventType.DOCTOR_REGISTERED
        ```
    """

    @abstractmethod
    def append(
        self,
        event_type: AuditEventType,
        caller: str,
        payload: dict
    ) -> AuditEvent:
        """Append a notification to the trail and return the stored event.

        Parameters:
            event_type: Kind of notification
            caller: Principal whose call produced the mutation
            payload: Entity id(s) and, where applicable, changed hash or label

        Returns:
            AuditEvent: The event as stored, with its sequence number assigned
        """
        pass

    @abstractmethod
    def records(self) -> List[AuditEvent]:
        """Return the full trail in emission order."""
        pass
