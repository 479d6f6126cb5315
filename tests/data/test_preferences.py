import os

import pytest

from llu_sync.utils.error_handling import PersistenceError


def test_missing_file_reads_as_empty(preferences):
    assert preferences.all() == {}


def test_commit_applies_all_staged_changes(preferences):
    preferences.edit().put_string("a", "1").put_int("b", 2).commit()

    assert preferences.all() == {"a": "1", "b": 2}


def test_remove_and_none_delete_fields(preferences):
    preferences.edit().put_string("a", "1").put_string("b", "2").put_string("c", "3").commit()

    preferences.edit().remove("a").put_string("b", None).commit()

    assert preferences.all() == {"c": "3"}


def test_uncommitted_changes_are_not_visible(preferences):
    editor = preferences.edit().put_string("a", "1")

    assert preferences.all() == {}
    editor.commit()
    assert preferences.all() == {"a": "1"}


def test_first_write_bootstraps_a_development_key(preferences, key_manager):
    preferences.edit().put_string("a", "1").commit()

    _, version = key_manager.get_current_key()
    assert version == "v1"


def test_corrupt_file_raises_persistence_error(preferences):
    preferences.edit().put_string("a", "1").commit()
    with open(preferences.path, "wb") as fh:
        fh.write(b"not a fernet token")

    with pytest.raises(PersistenceError):
        preferences.all()


def test_commit_over_corrupt_file_starts_fresh(preferences):
    preferences.edit().put_string("a", "1").commit()
    with open(preferences.path, "wb") as fh:
        fh.write(b"not a fernet token")

    preferences.edit().put_string("b", "2").commit()

    assert preferences.all() == {"b": "2"}


def test_write_leaves_no_temp_file(preferences):
    preferences.edit().put_string("a", "1").commit()

    assert os.path.exists(preferences.path)
    assert not os.path.exists(f"{preferences.path}.tmp")


def test_reencrypt_without_file_is_noop(preferences):
    assert preferences.reencrypt() is False


def test_malformed_key_fails_commit_with_persistence_error(preferences, monkeypatch):
    monkeypatch.setenv("LLU_ENCRYPTION_KEYS", '{"v1": "not-a-fernet-key"}')

    with pytest.raises(PersistenceError):
        preferences.edit().put_string("a", "1").commit()
    assert not os.path.exists(preferences.path)
