"""Services package: expose all concrete services from one import."""
from .catalog_service import CatalogService
from .list_service import ListMembershipService

__all__ = [
    'CatalogService',
    'ListMembershipService',
]
