"""Administrator identity and its transfer."""

import logging

from medregistry.domain.guardrails import RegistryTransaction
from medregistry.domain.ports import InvalidInputError

logger = logging.getLogger(__name__)


def check_principal(principal, field_name: str = "principal") -> str:
    """Validate a principal supplied as data (not as the caller).

    Raises:
        InvalidInputError: If the principal is missing or blank
    """
    if not isinstance(principal, str) or not principal.strip():
        raise InvalidInputError(f"{field_name} must be a non-empty principal")
    return principal


class AdminOps:
    """Owns the single administrator principal.

    Parameters:
        admin: Initial administrator principal
    """

    def __init__(self, admin: str):
        self._admin = check_principal(admin, "admin")

    @property
    def admin(self) -> str:
        return self._admin

    def transfer(self, txn: RegistryTransaction, new_admin: str) -> str:
        """Replace the administrator; the caller must already be authorized.

        Returns:
            str: The previous administrator

        Raises:
            InvalidInputError: If ``new_admin`` is blank or already the admin
        """
        check_principal(new_admin, "new_admin")
        if new_admin == self._admin:
            raise InvalidInputError("new_admin is already the administrator")

        previous = self._admin
        self._admin = new_admin

        def _restore() -> None:
            self._admin = previous

        txn.on_rollback(_restore)
        logger.info(f"Administrator transferred from {previous} to {new_admin}")
        return previous
