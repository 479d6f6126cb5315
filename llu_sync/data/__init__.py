"""Data access and persistence layer."""

from llu_sync.data.dynamodb import get_dynamodb_client
from llu_sync.data.health_store import get_health_store
from llu_sync.data.preferences import EncryptedPreferences

__all__ = [
    "get_dynamodb_client",
    "get_health_store",
    "EncryptedPreferences",
]
