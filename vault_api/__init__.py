"""Vault API client package"""

from .client import AuthenticatedClient, is_token_expired_response

__all__ = [
    "AuthenticatedClient",
    "is_token_expired_response",
]
