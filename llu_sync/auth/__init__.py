"""LibreLinkUp client, credential store and session handling."""

from llu_sync.auth.credentials import CredentialStore, get_credential_store
from llu_sync.auth.libre_client import LibreLinkUpClient, account_id
from llu_sync.auth.session import LoginOutcome, SessionService, SessionStatus

__all__ = [
    "CredentialStore",
    "get_credential_store",
    "LibreLinkUpClient",
    "account_id",
    "LoginOutcome",
    "SessionService",
    "SessionStatus",
]
