"""Infrastructure layer: HTTP client, local persistence and logging."""

from .auth_client import AuthServiceClient
from .base_client import BaseExternalClient

__all__ = [
    "AuthServiceClient",
    "BaseExternalClient",
]
