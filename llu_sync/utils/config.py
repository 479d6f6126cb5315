"""Service settings: environment and `.env`, with Secrets Manager overrides."""

import json
import logging
import os
from functools import lru_cache
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from llu_sync.utils.logging_utils import setup_json_logging

logger = logging.getLogger(__name__)

DEV_DYNAMODB_ENDPOINT = "http://localhost:8000"


def _is_development() -> bool:
    return os.environ.get("SERVICE_ENV", "development") == "development"


class AwsSecretsManager:
    """Reads JSON secrets from AWS Secrets Manager."""

    def __init__(self, region_name: Optional[str] = None):
        self.region_name = region_name or os.environ.get("AWS_REGION", "us-east-1")
        self.client = boto3.client(
            "secretsmanager",
            region_name=self.region_name,
            endpoint_url=os.environ.get("AWS_SECRETSMANAGER_ENDPOINT"),
        )

    def get_secret(self, secret_name: str) -> Dict[str, Any]:
        """
        Fetch a secret and decode its JSON string value.

        In development an unreadable secret is reported and treated as empty,
        since local runs usually have no AWS access. Elsewhere the
        ClientError propagates.
        """
        try:
            response = self.client.get_secret_value(SecretId=secret_name)
        except ClientError as e:
            if not _is_development():
                raise
            logger.warning(f"Secret {secret_name} unavailable, using no overrides: {e}")
            return {}

        secret_string = response.get("SecretString")
        if secret_string is None:
            raise ValueError(f"Secret {secret_name} has no string value")
        return json.loads(secret_string)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    service_env: str = Field("development", description="development, test, staging or production")
    log_level: str = Field("INFO")
    log_output: str = Field("stdout", description="stdout or file")
    log_file_path: Optional[str] = Field(None)
    cors_origins: List[str] = Field(["*"])
    secret_name: Optional[str] = Field(None, description="Secrets Manager secret applied outside development")
    app_id: str = Field("llu_sync", description="Data origin stamped on written records")

    aws_region: str = Field("us-east-1")
    aws_access_key_id: Optional[str] = Field(None)
    aws_secret_access_key: Optional[SecretStr] = Field(None)
    dynamodb_endpoint: Optional[str] = Field(None, description="Local DynamoDB URL; defaulted in development")
    dynamodb_table: str = Field("glucose_records")

    librelinkup_api_url: str = Field("https://api-us.libreview.io")
    librelinkup_version: str = Field("4.16.0", description="'version' request header")
    librelinkup_product: str = Field("llu.ios", description="'product' request header")
    request_timeout_seconds: float = Field(30.0)

    credentials_path: str = Field("~/.llu_sync/cache", description="Encrypted ticket and user cache")
    encryption_keys_secret: str = Field("LLU_ENCRYPTION_KEYS", description="Env var or secret with versioned keys")
    encryption_key_file: str = Field("~/.llu_sync/keys.json", description="Development key file")

    sync_interval_minutes: int = Field(15)
    connectivity_timeout_seconds: float = Field(5.0)

    wearable_url: Optional[str] = Field(None, description="Wearable data channel; unset disables mirroring")
    wearable_timeout_seconds: float = Field(10.0)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._apply_secret_overrides()
        if self.service_env == "development" and not self.dynamodb_endpoint:
            self.dynamodb_endpoint = DEV_DYNAMODB_ENDPOINT

    @field_validator("cors_origins")
    @classmethod
    def normalize_cors_origins(cls, v: List[str]) -> List[str]:
        """Accept a comma-separated single entry; bare hosts get an https scheme."""
        if v == ["*"]:
            return v
        if len(v) == 1:
            v = v[0].split(",")
        return [o if o.startswith(("http://", "https://")) else f"https://{o}" for o in v]

    @field_validator("request_timeout_seconds", "wearable_timeout_seconds", "connectivity_timeout_seconds")
    @classmethod
    def check_finite_timeout(cls, v: float, info: Any) -> float:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be a positive number of seconds")
        return v

    @field_validator("sync_interval_minutes")
    @classmethod
    def check_interval(cls, v: int) -> int:
        if v < 1:
            raise ValueError("sync_interval_minutes must be at least 1")
        return v

    def _apply_secret_overrides(self) -> None:
        """Overwrite fields named by the keys of the configured secret."""
        if self.service_env == "development" or not self.secret_name:
            return

        fields = type(self).model_fields
        overrides = AwsSecretsManager(self.aws_region).get_secret(self.secret_name)
        for key, value in overrides.items():
            name = key.lower()
            field = fields.get(name)
            if field is None:
                continue
            if field.annotation == Optional[SecretStr] and isinstance(value, str):
                value = SecretStr(value)
            setattr(self, name, value)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def setup_logging(level: Any = "INFO", output: str = "stdout", file_path: Optional[str] = None) -> logging.Logger:
    """Configure structured JSON logging, falling back to INFO for unusable levels."""
    if not isinstance(level, (str, int)) or (isinstance(level, str) and not hasattr(logging, level.upper())):
        level = "INFO"
    if isinstance(level, str):
        level = level.upper()
    return setup_json_logging(level, output, file_path)
