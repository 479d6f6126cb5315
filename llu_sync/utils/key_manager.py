"""
Versioned Fernet keys for the encrypted credential cache.

Key sets map a version label ("v1", "v2", ...) to the key and its creation
time. Development keeps the set in the LLU_ENCRYPTION_KEYS env var when it is
set, otherwise in a 0600 key file; production reads it from Secrets Manager
and never writes it. The highest version is current unless
LLU_CURRENT_KEY_VERSION names another. Older versions remain usable for
decryption, so rotation never strands existing ciphertext.

    python -m llu_sync.utils.key_manager            # current version and all versions
    python -m llu_sync.utils.key_manager rotate     # new version, then re-encrypt the credential cache (dev only)

Key material is never logged or printed.
"""
import argparse
import json
import logging
import os
import re
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError
from cryptography.fernet import Fernet, MultiFernet

from llu_sync.utils.config import Settings, get_settings
from llu_sync.utils.secrets import get_secret

logger = logging.getLogger(__name__)

CURRENT_KEY_VERSION_ENV = "LLU_CURRENT_KEY_VERSION"

KeySet = Dict[str, Dict[str, str]]


def _version_number(version: str) -> int:
    match = re.search(r"(\d+)$", version)
    return int(match.group(1)) if match else 0


def _stamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize(raw: Dict) -> KeySet:
    """Bare `{"v1": "<key>"}` entries are upgraded to `{"key", "created_at"}` records."""
    return {
        version: entry if isinstance(entry, dict) and "key" in entry and "created_at" in entry
        else {"key": entry, "created_at": _stamp()}
        for version, entry in raw.items()
    }


class KeyManager:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.secret_name = self.settings.encryption_keys_secret
        self.key_file = os.path.expanduser(self.settings.encryption_key_file)
        self.is_dev = self.settings.service_env == "development"

    def _read_dev_keys(self) -> Dict:
        from_env = os.environ.get(self.secret_name)
        if from_env:
            return json.loads(from_env)
        if not os.path.exists(self.key_file):
            return {}
        with open(self.key_file, "r", encoding="utf-8") as fh:
            return json.load(fh)

    def _read_prod_keys(self) -> Dict:
        try:
            raw = get_secret(self.secret_name)
        except RuntimeError:
            return {}
        except (ClientError, BotoCoreError) as e:
            logger.warning(
                "Encryption keys unavailable from Secrets Manager",
                extra={"log_type": "key_load_error", "error": type(e).__name__},
            )
            return {}
        if isinstance(raw, str):
            return json.loads(raw)
        return raw or {}

    def _load_keys(self) -> KeySet:
        return _normalize(self._read_dev_keys() if self.is_dev else self._read_prod_keys())

    def _save_keys(self, keys: KeySet) -> None:
        if not self.is_dev:
            raise NotImplementedError("Production keys are managed in AWS Secrets Manager, not written by the service.")
        payload = json.dumps(keys)
        if os.environ.get(self.secret_name):
            os.environ[self.secret_name] = payload
            return

        os.makedirs(os.path.dirname(self.key_file) or ".", exist_ok=True)
        staging = f"{self.key_file}.tmp"
        fd = os.open(staging, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
        os.replace(staging, self.key_file)

    def _current_version(self, keys: KeySet) -> str:
        version = os.environ.get(CURRENT_KEY_VERSION_ENV) or max(keys, key=_version_number, default=None)
        if version is None or version not in keys:
            raise RuntimeError("No usable current encryption key version.")
        return version

    def get_current_key(self) -> Tuple[str, str]:
        """(key, version) of the key new ciphertext is written with."""
        keys = self._load_keys()
        version = self._current_version(keys)
        return keys[version]["key"], version

    def get_key(self, version: str) -> str:
        entry = self._load_keys().get(version)
        if entry is None:
            raise RuntimeError(f"Unknown encryption key version {version}.")
        return entry["key"]

    def list_keys(self) -> Dict[str, Dict[str, str]]:
        """Version metadata only; key material is left out."""
        return {version: {"created_at": entry["created_at"]} for version, entry in self._load_keys().items()}

    def rotate_key(self) -> Tuple[str, str]:
        """Add a version one above the highest and make it current."""
        keys = self._load_keys()
        version = f"v{max(map(_version_number, keys), default=0) + 1}"
        key = Fernet.generate_key().decode()
        keys[version] = {"key": key, "created_at": _stamp()}
        self._save_keys(keys)
        os.environ[CURRENT_KEY_VERSION_ENV] = version
        return key, version

    def ensure_current_key(self) -> Tuple[str, str]:
        """Current key; in development with no keys at all the first one is created."""
        try:
            return self.get_current_key()
        except RuntimeError:
            if self.is_dev and not self._load_keys():
                return self.rotate_key()
            raise

    def fernet(self) -> MultiFernet:
        """Encrypts with the current key; decrypts with any version, newest first."""
        keys = self._load_keys()
        current = self._current_version(keys)
        order = [current] + sorted((v for v in keys if v != current), key=_version_number, reverse=True)
        return MultiFernet([Fernet(keys[v]["key"]) for v in order])


def main(argv=None) -> None:
    from llu_sync.data.preferences import EncryptedPreferences

    parser = argparse.ArgumentParser(prog="python -m llu_sync.utils.key_manager")
    parser.add_argument("command", nargs="?", choices=["show", "rotate"], default="show")
    args = parser.parse_args(argv)

    km = KeyManager()
    if args.command == "rotate":
        _, version = km.rotate_key()
        print(f"{_stamp()} rotated encryption key, current version {version}")
        if EncryptedPreferences(km.settings.credentials_path, km).reencrypt():
            print(f"credential cache re-encrypted with {version}")
        return

    _, version = km.get_current_key()
    print(f"current version: {version}")
    print(f"known versions: {', '.join(sorted(km.list_keys(), key=_version_number))}")


if __name__ == "__main__":
    main()
