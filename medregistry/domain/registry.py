"""Entity Registry - keyed storage for one record kind.

One EntityRegistry is instantiated per kind (doctor, patient, medicine). It
owns existence, creation, replacement and deactivation of its records. It
does not authorize callers; the registry service consults AccessGuard before
calling in.

Existence is table membership. No id value is reserved to mean "absent", so
id 0 is an ordinary id.
"""

import logging
from typing import Dict, Generic, Iterator, List, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from medregistry.domain.enums import EntityKind
from medregistry.domain.guardrails import RegistryTransaction
from medregistry.domain.ports import (
    AlreadyExistsError,
    InactiveError,
    InvalidInputError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

R = TypeVar('R', bound=BaseModel)

# Fields no update path may overwrite.
_IMMUTABLE_FIELDS = frozenset({"active"})


def check_entity_id(kind: EntityKind, entity_id) -> int:
    """Validate an id supplied by a caller.

    Raises:
        InvalidInputError: If the id is not a non-negative integer
    """
    if isinstance(entity_id, bool) or not isinstance(entity_id, int) or entity_id < 0:
        raise InvalidInputError(
            f"{kind.value} id must be a non-negative integer, got {entity_id!r}",
            entity=kind.value
        )
    return entity_id


class EntityRegistry(Generic[R]):
    """Table of records of a single kind keyed by caller-supplied id.

    Parameters:
        kind: Entity kind this registry holds
        model: Pydantic model class of the records
        id_field: Name of the id attribute on the model
    """

    def __init__(self, kind: EntityKind, model: Type[R], id_field: str):
        self.kind = kind
        self.model = model
        self.id_field = id_field
        self._records: Dict[int, R] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, entity_id) -> bool:
        return self.exists(entity_id)

    def __iter__(self) -> Iterator[R]:
        return iter(list(self._records.values()))

    def ids(self) -> List[int]:
        return list(self._records)

    def exists(self, entity_id) -> bool:
        return not isinstance(entity_id, bool) and isinstance(entity_id, int) and entity_id in self._records

    def get(self, entity_id) -> R:
        """Return the live record.

        Raises:
            InvalidInputError: If the id is malformed
            NotFoundError: If the id is not occupied
        """
        check_entity_id(self.kind, entity_id)
        try:
            return self._records[entity_id]
        except KeyError:
            raise NotFoundError(
                f"{self.kind.value} {entity_id} does not exist",
                entity=self.kind.value,
                entity_id=entity_id
            ) from None

    def require_active(self, entity_id) -> R:
        """Return the live record, failing if it has been deactivated."""
        record = self.get(entity_id)
        if not record.active:
            raise InactiveError(
                f"{self.kind.value} {entity_id} is inactive",
                entity=self.kind.value,
                entity_id=entity_id
            )
        return record

    def view(self, entity_id) -> R:
        """Return a detached copy of the record."""
        return self.get(entity_id).model_copy(deep=True)

    def build(self, entity_id=None, **fields) -> R:
        """Validate fields into a record without storing it.

        Raises:
            InvalidInputError: If pydantic rejects any field
        """
        try:
            return self.model.model_validate(fields)
        except PydanticValidationError as e:
            details = {
                ".".join(str(part) for part in err["loc"]) or "__root__": err["msg"]
                for err in e.errors()
            }
            raise InvalidInputError(
                f"invalid {self.kind.value} fields: {', '.join(sorted(details))}",
                entity=self.kind.value,
                entity_id=entity_id if isinstance(entity_id, int) else None,
                details=details
            ) from None

    def create(self, txn: RegistryTransaction, entity_id, **fields) -> R:
        """Store a new active record under ``entity_id``.

        Raises:
            InvalidInputError: If the id or any field is invalid
            AlreadyExistsError: If the id is already occupied
        """
        check_entity_id(self.kind, entity_id)
        if entity_id in self._records:
            raise AlreadyExistsError(
                f"{self.kind.value} {entity_id} already exists",
                entity=self.kind.value,
                entity_id=entity_id
            )
        record = self.build(entity_id, **{self.id_field: entity_id, **fields, "active": True})
        self._records[entity_id] = record
        txn.on_rollback(lambda: self._records.pop(entity_id, None))
        logger.debug(f"Created {self.kind.value} {entity_id}")
        return record

    def replace(self, txn: RegistryTransaction, entity_id, **changes) -> R:
        """Overwrite mutable fields of an active record.

        The record is rebuilt and validated as a whole before it replaces the
        stored one; the id and active flag are carried over untouched.

        Raises:
            NotFoundError: If the id is not occupied
            InactiveError: If the record is deactivated
            InvalidInputError: If the new field values are invalid
        """
        current = self.require_active(entity_id)
        forbidden = (_IMMUTABLE_FIELDS | {self.id_field}) & set(changes)
        if forbidden:
            raise InvalidInputError(
                f"cannot overwrite {', '.join(sorted(forbidden))} on {self.kind.value}",
                entity=self.kind.value,
                entity_id=entity_id
            )
        merged = {**current.model_dump(), **changes}
        updated = self.build(entity_id, **merged)
        self._records[entity_id] = updated

        def _restore() -> None:
            self._records[entity_id] = current

        txn.on_rollback(_restore)
        logger.debug(f"Replaced {self.kind.value} {entity_id} ({', '.join(sorted(changes))})")
        return updated

    def deactivate(self, txn: RegistryTransaction, entity_id) -> R:
        """Set the active flag to False; repeat calls are accepted.

        Raises:
            NotFoundError: If the id is not occupied
        """
        record = self.get(entity_id)
        previous = record.active
        record.active = False
        txn.on_rollback(lambda: setattr(record, "active", previous))
        logger.debug(f"Deactivated {self.kind.value} {entity_id}")
        return record
