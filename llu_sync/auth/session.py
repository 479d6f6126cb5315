"""Login, logout and session status."""

import logging
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel

from llu_sync.auth.credentials import CredentialStore, get_credential_store
from llu_sync.auth.libre_client import LibreLinkUpClient
from llu_sync.models.libre import UserIdentity
from llu_sync.utils.config import Settings, get_settings
from llu_sync.utils.error_handling import AuthError, LibreLinkUpError

if TYPE_CHECKING:
    from llu_sync.sync.scheduler import SyncScheduler

logger = logging.getLogger(__name__)

LOGIN_FAILED_MESSAGE = "Login failed. Check your username and password."
UNREACHABLE_MESSAGE = "Could not reach LibreLinkUp. Try again later."
MISSING_CREDENTIALS_MESSAGE = "Email and password are required."
LOGGED_OUT_MESSAGE = "Not logged in"


class LoginOutcome(BaseModel):
    success: bool
    message: str
    user: Optional[UserIdentity] = None


class SessionStatus(BaseModel):
    logged_in: bool
    email: Optional[str] = None
    message: str


def logged_in_message(user: UserIdentity) -> str:
    return f"Logged in as {user.display_name or user.email or user.id}"


class SessionService:
    """Turns credentials into a stored ticket and keeps the sync job in step with it."""

    def __init__(
        self,
        client: Optional[LibreLinkUpClient] = None,
        credentials: Optional[CredentialStore] = None,
        scheduler: Optional["SyncScheduler"] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.client = client
        self.credentials = credentials or get_credential_store()
        self.scheduler = scheduler

    async def login(self, email: str, password: str) -> LoginOutcome:
        """
        Log in and persist the ticket and user. Never raises.

        Args:
            email: Account email
            password: Account password

        Returns:
            LoginOutcome: success flag and a human-readable message
        """
        if not email or not email.strip() or not password or not password.strip():
            return LoginOutcome(success=False, message=MISSING_CREDENTIALS_MESSAGE)

        try:
            if self.client is not None:
                result = await self.client.login(email.strip(), password)
            else:
                async with LibreLinkUpClient(self.settings) as client:
                    result = await client.login(email.strip(), password)
        except AuthError as e:
            logger.warning("Login rejected", extra={"log_type": "login_failed", "error": e.message})
            return LoginOutcome(success=False, message=LOGIN_FAILED_MESSAGE)
        except LibreLinkUpError as e:
            logger.error(
                "Login request failed",
                extra={"log_type": "login_error", "error": e.message, "status_code": e.status_code},
            )
            return LoginOutcome(success=False, message=UNREACHABLE_MESSAGE)

        if not result.ok:
            logger.warning(
                "Login rejected",
                extra={"log_type": "login_failed", "status": result.status, "error": result.error_message},
            )
            return LoginOutcome(success=False, message=result.error_message or LOGIN_FAILED_MESSAGE)

        data = result.data
        if data is None or data.auth_ticket is None or data.user is None or not data.auth_ticket.has_token():
            logger.warning("Login response missing ticket or user", extra={"log_type": "login_failed"})
            return LoginOutcome(success=False, message=LOGIN_FAILED_MESSAGE)

        ticket_saved = self.credentials.save_ticket(data.auth_ticket)
        user_saved = ticket_saved and self.credentials.save_user(data.user)
        if not user_saved:
            # never leave a ticket stored without its user
            if ticket_saved:
                self.credentials.save_ticket(None)
            logger.error("Login credentials not persisted", extra={"log_type": "login_persist_error"})
            return LoginOutcome(
                success=False,
                message="Logged in, but the credentials could not be stored securely.",
                user=data.user,
            )

        if self.scheduler is not None:
            self.scheduler.schedule()

        logger.info("Login succeeded", extra={"log_type": "login"})
        return LoginOutcome(success=True, message=logged_in_message(data.user), user=data.user)

    def logout(self) -> SessionStatus:
        """Forget the ticket and user and stop syncing."""
        self.credentials.clear()
        if self.scheduler is not None:
            self.scheduler.cancel()
        logger.info("Logged out", extra={"log_type": "logout"})
        return SessionStatus(logged_in=False, message=LOGGED_OUT_MESSAGE)

    def status(self) -> SessionStatus:
        ticket, user = self.credentials.load()
        if ticket is None or not ticket.has_token():
            return SessionStatus(logged_in=False, email=user.email if user else None, message=LOGGED_OUT_MESSAGE)
        if user is None:
            return SessionStatus(logged_in=True, message="Logged in")
        return SessionStatus(logged_in=True, email=user.email, message=logged_in_message(user))
