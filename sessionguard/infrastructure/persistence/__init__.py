from .credential_store import CredentialStore
from .storage_backends import InMemoryStorage, JsonFileStorage

__all__ = [
    "CredentialStore",
    "InMemoryStorage",
    "JsonFileStorage",
]
