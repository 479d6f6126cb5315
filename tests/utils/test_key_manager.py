import json
import os

import pytest
from cryptography.fernet import Fernet

from llu_sync.data.preferences import EncryptedPreferences
from llu_sync.utils.config import Settings, get_settings
from llu_sync.utils.key_manager import CURRENT_KEY_VERSION_ENV, KeyManager, main

KEYS_ENV = "LLU_ENCRYPTION_KEYS"


def setup_env_keys(keys_dict, current_version=None):
    os.environ[KEYS_ENV] = json.dumps(keys_dict)
    if current_version:
        os.environ[CURRENT_KEY_VERSION_ENV] = current_version
    else:
        os.environ.pop(CURRENT_KEY_VERSION_ENV, None)


def test_rotate_key_and_get_current(key_manager):
    key1, v1 = key_manager.rotate_key()
    key2, v2 = key_manager.rotate_key()
    assert (v1, v2) == ("v1", "v2")
    assert key2 != key1
    key, version = key_manager.get_current_key()
    assert version == v2
    assert key == key2


def test_rotated_keys_persist_to_key_file(key_manager, settings):
    _, version = key_manager.rotate_key()

    with open(settings.encryption_key_file, encoding="utf-8") as fh:
        stored = json.load(fh)
    assert version in stored
    assert os.stat(settings.encryption_key_file).st_mode & 0o777 == 0o600


def test_rotation_updates_env_keys_when_set(key_manager):
    setup_env_keys({"v1": Fernet.generate_key().decode()}, current_version="v1")

    _, version = key_manager.rotate_key()

    assert version == "v2"
    assert set(json.loads(os.environ[KEYS_ENV])) == {"v1", "v2"}


def test_get_key_and_list_keys(key_manager):
    keys = {"v1": "key1", "v2": "key2"}
    setup_env_keys(keys, current_version="v2")
    assert key_manager.get_key("v1") == "key1"
    assert key_manager.get_key("v2") == "key2"
    all_keys = key_manager.list_keys()
    assert set(all_keys.keys()) == set(keys.keys())
    for meta in all_keys.values():
        assert "created_at" in meta
        assert "key" not in meta  # Should not expose key material


def test_missing_key_version(key_manager):
    setup_env_keys({"v1": "key1"}, current_version="v1")
    with pytest.raises(RuntimeError):
        key_manager.get_key("v2")


def test_get_current_key_uses_latest_numeric_version(key_manager):
    setup_env_keys({"v2": "key2", "v10": "key10", "v9": "key9"})
    key, version = key_manager.get_current_key()
    assert version == "v10"
    assert key == "key10"


def test_get_current_key_without_keys_raises(key_manager):
    with pytest.raises(RuntimeError):
        key_manager.get_current_key()


def test_fernet_decrypts_tokens_from_older_versions(key_manager):
    key_manager.rotate_key()
    token = key_manager.fernet().encrypt(b"secret")

    key_manager.rotate_key()

    assert key_manager.fernet().decrypt(token) == b"secret"


def test_ensure_current_key_bootstraps_in_development(key_manager):
    _, version = key_manager.ensure_current_key()
    assert version == "v1"
    assert key_manager.ensure_current_key()[1] == "v1"


def test_production_never_generates_keys(tmp_path):
    settings = Settings(service_env="production", encryption_key_file=str(tmp_path / "keys.json"))
    manager = KeyManager(settings)

    with pytest.raises(RuntimeError):
        manager.ensure_current_key()
    with pytest.raises(NotImplementedError):
        manager._save_keys({})


def test_production_reads_keys_from_secret(tmp_path):
    key = Fernet.generate_key().decode()
    setup_env_keys({"v1": key}, current_version="v1")
    settings = Settings(service_env="production", encryption_key_file=str(tmp_path / "keys.json"))

    assert KeyManager(settings).get_current_key() == (key, "v1")


def test_cli_rotate_reencrypts_credential_cache(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("SERVICE_ENV", "development")
    monkeypatch.setenv("ENCRYPTION_KEY_FILE", str(tmp_path / "keys.json"))
    monkeypatch.setenv("CREDENTIALS_PATH", str(tmp_path / "cache"))
    get_settings.cache_clear()
    preferences = EncryptedPreferences(str(tmp_path / "cache"), KeyManager())
    preferences.edit().put_string("user_id", "user-123").commit()

    main(["rotate"])

    assert "current version v2" in capsys.readouterr().out
    token = (tmp_path / "cache").read_bytes()
    assert Fernet(KeyManager().get_key("v2").encode()).decrypt(token)
