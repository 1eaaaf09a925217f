"""Domain Services.

This package contains the administrator holder and the registry aggregate
root that implements the operation surface.
"""

from medregistry.domain.services.admin_ops import AdminOps
from medregistry.domain.services.registry_service import MedicalRegistryService

__all__ = ['AdminOps', 'MedicalRegistryService']
