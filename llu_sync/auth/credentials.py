"""Credential store for the LibreLinkUp auth ticket and account identity."""

import logging
from typing import Optional, Tuple

from pydantic import SecretStr

from llu_sync.data.preferences import EncryptedPreferences
from llu_sync.models.libre import AuthTicket, UserIdentity
from llu_sync.utils.config import Settings, get_settings
from llu_sync.utils.error_handling import PersistenceError
from llu_sync.utils.key_manager import KeyManager

logger = logging.getLogger(__name__)

AUTH_TOKEN = "auth_token"
AUTH_DURATION = "auth_duration"
AUTH_EXPIRES = "auth_expires"
USER_ID = "user_id"
USER_EMAIL = "user_email"
USER_FIRST_NAME = "user_first_name"
USER_LAST_NAME = "user_last_name"

TICKET_FIELDS = (AUTH_TOKEN, AUTH_DURATION, AUTH_EXPIRES)
USER_FIELDS = (USER_ID, USER_EMAIL, USER_FIRST_NAME, USER_LAST_NAME)


class CredentialStore:
    """
    Persists the auth ticket and user identity in encrypted preferences.

    Storage failures never raise: a record that cannot be read or written is
    reported as absent, which callers treat as "not logged in".
    """

    def __init__(self, preferences: Optional[EncryptedPreferences] = None, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.preferences = preferences or EncryptedPreferences(settings.credentials_path, KeyManager(settings))

    def load(self) -> Tuple[Optional[AuthTicket], Optional[UserIdentity]]:
        """
        Load the stored ticket and user.

        Returns:
            Tuple: (ticket or None, user or None)
        """
        try:
            values = self.preferences.all()
        except PersistenceError as e:
            logger.warning(
                "Credential store unavailable; treating as logged out",
                extra={"log_type": "credentials_unavailable", "error": str(e)},
            )
            return None, None

        ticket = None
        if values.get(AUTH_TOKEN):
            ticket = AuthTicket(
                token=SecretStr(values[AUTH_TOKEN]),
                duration=int(values.get(AUTH_DURATION, 0)),
                expires=int(values.get(AUTH_EXPIRES, 0)),
            )

        user = None
        if values.get(USER_ID):
            user = UserIdentity(
                id=values[USER_ID],
                email=values.get(USER_EMAIL),
                first_name=values.get(USER_FIRST_NAME),
                last_name=values.get(USER_LAST_NAME),
            )

        return ticket, user

    def save_ticket(self, ticket: Optional[AuthTicket]) -> bool:
        """
        Store the ticket, or clear it when None.

        Args:
            ticket: The ticket to store

        Returns:
            bool: True if the ticket fields were committed
        """
        editor = self.preferences.edit()
        if ticket is not None:
            editor.put_string(AUTH_TOKEN, ticket.token.get_secret_value())
            editor.put_int(AUTH_DURATION, ticket.duration)
            editor.put_int(AUTH_EXPIRES, ticket.expires)
        else:
            for field in TICKET_FIELDS:
                editor.remove(field)
        return self._commit(editor, "ticket")

    def save_user(self, user: Optional[UserIdentity]) -> bool:
        """
        Store the user identity, or clear it when None.

        Args:
            user: The user to store

        Returns:
            bool: True if the user fields were committed
        """
        editor = self.preferences.edit()
        if user is not None:
            editor.put_string(USER_ID, user.id)
            editor.put_string(USER_EMAIL, user.email)
            editor.put_string(USER_FIRST_NAME, user.first_name)
            editor.put_string(USER_LAST_NAME, user.last_name)
        else:
            for field in USER_FIELDS:
                editor.remove(field)
        return self._commit(editor, "user")

    def clear(self) -> bool:
        """Forget both the ticket and the user."""
        ticket_cleared = self.save_ticket(None)
        user_cleared = self.save_user(None)
        return ticket_cleared and user_cleared

    def is_logged_in(self) -> bool:
        ticket, _ = self.load()
        return ticket is not None and ticket.has_token()

    def _commit(self, editor, record: str) -> bool:
        try:
            editor.commit()
            return True
        except PersistenceError as e:
            logger.error(
                f"Failed to persist {record}",
                extra={"log_type": "credentials_write_error", "record": record, "error": str(e)},
            )
            return False


_credential_store: Optional[CredentialStore] = None


def get_credential_store() -> CredentialStore:
    """
    Get a singleton instance of the credential store.

    Returns:
        CredentialStore: The credential store
    """
    global _credential_store
    if _credential_store is None:
        _credential_store = CredentialStore()
    return _credential_store
