"""Global test fixtures and configuration."""

import copy
import os

import pytest

# Set up environment variables for testing
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

from llu_sync.auth.credentials import CredentialStore
from llu_sync.data.preferences import EncryptedPreferences
from llu_sync.models.libre import AuthTicket, ConnectionsResult, LoginResult, UserIdentity
from llu_sync.utils.config import Settings, get_settings
from llu_sync.utils.key_manager import CURRENT_KEY_VERSION_ENV, KeyManager
from llu_sync.utils.secrets import clear_secret_cache

KEYS_ENV = "LLU_ENCRYPTION_KEYS"

LOGIN_SUCCESS = {
    "status": 0,
    "data": {
        "user": {
            "id": "user-123",
            "email": "pat@example.com",
            "firstName": "Pat",
            "lastName": "Doe",
            "country": "US",
        },
        "authTicket": {"token": "ticket-1", "expires": 1711111111, "duration": 15552000000},
    },
}

CONNECTIONS_SUCCESS = {
    "status": 0,
    "data": [
        {
            "id": "conn-1",
            "patientId": "patient-1",
            "country": "US",
            "status": 2,
            "firstName": "Pat",
            "lastName": "Doe",
            "sensor": {"deviceId": "dev-1", "sn": "SN123"},
            "glucoseMeasurement": {
                "FactoryTimestamp": "3/21/2024 2:05:30 PM",
                "Timestamp": "3/21/2024 10:05:30 AM",
                "type": 1,
                "ValueInMgPerDl": 112,
                "TrendArrow": 3,
                "TrendMessage": None,
                "MeasurementColor": 1,
                "GlucoseUnits": 1,
                "Value": 112,
                "isHigh": False,
                "isLow": False,
            },
        }
    ],
    "ticket": {"token": "ticket-2", "expires": 1711114711, "duration": 15552000000},
}


def _clean_key_env():
    os.environ.pop(KEYS_ENV, None)
    os.environ.pop(CURRENT_KEY_VERSION_ENV, None)
    clear_secret_cache()
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clean_key_env():
    """Key versions live in process env; keep them from leaking between tests."""
    _clean_key_env()
    yield
    _clean_key_env()


@pytest.fixture
def settings(tmp_path):
    """Development settings with every file under tmp_path."""
    return Settings(
        service_env="development",
        librelinkup_api_url="https://api.test.libreview.io",
        credentials_path=str(tmp_path / "cache"),
        encryption_key_file=str(tmp_path / "keys.json"),
    )


@pytest.fixture
def key_manager(settings):
    return KeyManager(settings)


@pytest.fixture
def preferences(settings, key_manager):
    return EncryptedPreferences(settings.credentials_path, key_manager)


@pytest.fixture
def credential_store(preferences, settings):
    return CredentialStore(preferences, settings)


@pytest.fixture
def login_payload():
    return copy.deepcopy(LOGIN_SUCCESS)


@pytest.fixture
def connections_payload():
    return copy.deepcopy(CONNECTIONS_SUCCESS)


@pytest.fixture
def login_result(login_payload):
    return LoginResult.model_validate(login_payload)


@pytest.fixture
def connections_result(connections_payload):
    return ConnectionsResult.model_validate(connections_payload)


@pytest.fixture
def ticket():
    return AuthTicket(token="ticket-1", duration=15552000000, expires=1711111111)


@pytest.fixture
def user():
    return UserIdentity(id="user-123", email="pat@example.com", first_name="Pat", last_name="Doe")
