"""
Encrypted key-value preferences file.

The whole map is serialized to JSON, encrypted with Fernet and written atomically,
so every commit replaces all fields together. Keys come from the KeyManager.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError
from cryptography.fernet import InvalidToken

from llu_sync.utils.error_handling import PersistenceError
from llu_sync.utils.key_manager import KeyManager

logger = logging.getLogger(__name__)


class EncryptedPreferences:
    """Durable string/int preferences, encrypted at rest."""

    def __init__(self, path: str, key_manager: Optional[KeyManager] = None):
        self.path = os.path.expanduser(path)
        self.key_manager = key_manager or KeyManager()

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "rb") as fh:
                token = fh.read()
            plaintext = self.key_manager.fernet().decrypt(token)
            values = json.loads(plaintext)
        except (InvalidToken, RuntimeError, OSError, ValueError, ClientError, BotoCoreError) as e:
            raise PersistenceError(f"Unable to read encrypted preferences: {type(e).__name__}") from e
        if not isinstance(values, dict):
            raise PersistenceError("Encrypted preferences are not a key-value map")
        return values

    def _write(self, values: Dict[str, Any]) -> None:
        try:
            self.key_manager.ensure_current_key()
            token = self.key_manager.fernet().encrypt(json.dumps(values).encode("utf-8"))
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            tmp_path = f"{self.path}.tmp"
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "wb") as fh:
                fh.write(token)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except (RuntimeError, OSError, ValueError, NotImplementedError, ClientError, BotoCoreError) as e:
            raise PersistenceError(f"Unable to write encrypted preferences: {type(e).__name__}") from e

    def all(self) -> Dict[str, Any]:
        """Decrypt and return every stored field."""
        return dict(self._read())

    def edit(self) -> "PreferencesEditor":
        return PreferencesEditor(self)

    def reencrypt(self) -> bool:
        """Rewrite the file under the current key version. Returns False if there was nothing to rewrite."""
        if not os.path.exists(self.path):
            return False
        self._write(self._read())
        logger.info("Re-encrypted preferences with current key", extra={"log_type": "reencrypt"})
        return True


class PreferencesEditor:
    """Stages changes and applies them in a single atomic commit."""

    _REMOVED = object()

    def __init__(self, preferences: EncryptedPreferences):
        self._preferences = preferences
        self._changes: Dict[str, Any] = {}

    def put_string(self, key: str, value: Optional[str]) -> "PreferencesEditor":
        self._changes[key] = self._REMOVED if value is None else str(value)
        return self

    def put_int(self, key: str, value: int) -> "PreferencesEditor":
        self._changes[key] = int(value)
        return self

    def remove(self, key: str) -> "PreferencesEditor":
        self._changes[key] = self._REMOVED
        return self

    def commit(self) -> None:
        """Apply staged changes. Raises PersistenceError if the store cannot be read or written."""
        try:
            values = self._preferences._read()
        except PersistenceError:
            # Unreadable contents are unrecoverable; start over rather than stay stuck
            logger.warning(
                "Discarding unreadable preferences before commit",
                extra={"log_type": "preferences_reset", "path": self._preferences.path},
            )
            values = {}
        for key, value in self._changes.items():
            if value is self._REMOVED:
                values.pop(key, None)
            else:
                values[key] = value
        self._preferences._write(values)
        self._changes.clear()
