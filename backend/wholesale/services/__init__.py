"""
Services package for business logic layer.
"""
from wholesale.services.commerce import CommerceError, CommerceStore
from wholesale.services.registry import ServiceRegistry
from wholesale.services.zoho_client import ZohoAPIError, ZohoClient

__all__ = [
    "CommerceError",
    "CommerceStore",
    "ServiceRegistry",
    "ZohoAPIError",
    "ZohoClient",
]
