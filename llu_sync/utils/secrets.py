"""
Named secret lookup for key material.

The environment wins; outside development the configured Secrets Manager
secret is consulted next. Hits are remembered for the life of the process,
so rotate keys through `clear_secret_cache()`. Secret values must never be
logged.
"""
import os
from typing import Any, Dict

from llu_sync.utils.config import AwsSecretsManager, get_settings

_secret_cache: Dict[str, Any] = {}


def get_secret(key: str) -> Any:
    """
    Value of secret `key`.

    Raises:
        RuntimeError: Neither the environment nor Secrets Manager has it
    """
    if key not in _secret_cache:
        _secret_cache[key] = _lookup(key)
    return _secret_cache[key]


def _lookup(key: str) -> Any:
    from_env = os.environ.get(key)
    if from_env:
        return from_env

    settings = get_settings()
    if settings.service_env != "development" and settings.secret_name:
        bundle = AwsSecretsManager(settings.aws_region).get_secret(settings.secret_name)
        if key in bundle:
            return bundle[key]

    raise RuntimeError(f"Secret '{key}' is not set in the environment or {settings.secret_name or 'any secret'}")


def clear_secret_cache() -> None:
    _secret_cache.clear()
