import hashlib
import logging
import time
import uuid
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import ValidationError

from llu_sync.metrics import llu_api_call_latency_seconds, llu_api_call_total
from llu_sync.models.libre import AuthTicket, ConnectionsResult, LoginRequest, LoginResult
from llu_sync.utils.config import Settings, get_settings
from llu_sync.utils.error_handling import AuthError, ProtocolError, TransportError
from llu_sync.utils.logging_utils import redact_sensitive_data

T = TypeVar('T')

logger = logging.getLogger(__name__)

LOGIN_ENDPOINT = "/llu/auth/login"
CONNECTIONS_ENDPOINT = "/llu/connections"

PII_FIELDS = {"email", "firstName", "lastName", "patientId", "user_id"}

SLOW_CALL_SECONDS = 1.0


def redact_pii(data, pii_fields=PII_FIELDS):
    data = redact_sensitive_data(data)
    if isinstance(data, dict):
        return {k: ("***REDACTED***" if k in pii_fields else redact_pii(v, pii_fields)) for k, v in data.items()}
    elif isinstance(data, list):
        return [redact_pii(item, pii_fields) for item in data]
    return data


def account_id(user_id: str) -> str:
    """Pseudonymous account header value: lowercase hex SHA-256 of the user id."""
    return hashlib.sha256(user_id.encode("utf-8")).hexdigest()


class LibreLinkUpClient:
    """
    LibreLinkUp API client: login and connections over HTTPS/JSON.

    The client keeps no session state. Callers pass the ticket and user id in
    and persist the rotated ticket that comes back from `connections`.
    Failures surface as TransportError, ProtocolError or AuthError.
    """
    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the LibreLinkUp API client.
        :param settings: Application settings (base URL, version/product headers, timeout)
        :param transport: Optional httpx transport, used to stub the network in tests
        """
        self.settings = settings or get_settings()
        self.base_url = self.settings.librelinkup_api_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.default_headers,
            timeout=httpx.Timeout(self.settings.request_timeout_seconds),
            transport=transport,
        )

    @property
    def default_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "version": self.settings.librelinkup_version,
            "product": self.settings.librelinkup_product,
        }

    async def __aenter__(self) -> "LibreLinkUpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def login(self, email: str, password: str, correlation_id: str = None) -> LoginResult:
        """
        Log in with account credentials.
        Returns the result envelope as sent by the server; a status other than 0
        means the login was rejected and `error.message` may say why.
        Raises TransportError or ProtocolError when no usable envelope comes back.
        """
        payload = LoginRequest(email=email, password=password).to_payload()
        return await self._request(
            "POST", LOGIN_ENDPOINT, LoginResult, json=payload, correlation_id=correlation_id
        )

    async def connections(self, ticket: Optional[AuthTicket], user_id: Optional[str], correlation_id: str = None) -> ConnectionsResult:
        """
        Fetch the linked patient connections.
        The response carries a new ticket that replaces `ticket`; callers must persist it.
        Raises AuthError when no ticket/user is available or the server rejects the ticket.
        """
        if ticket is None or not ticket.has_token():
            raise AuthError("No auth ticket available; log in first")
        if not user_id:
            raise AuthError("No user id available; log in first")
        headers = {
            "Authorization": f"Bearer {ticket.token.get_secret_value()}",
            "Account-Id": account_id(user_id),
        }
        result = await self._request(
            "GET", CONNECTIONS_ENDPOINT, ConnectionsResult, headers=headers, correlation_id=correlation_id
        )
        if not result.ok:
            raise AuthError(
                result.error_message or f"Connections request rejected with status {result.status}"
            )
        if result.ticket is None or not result.ticket.has_token():
            raise ProtocolError("Connections response did not include a ticket")
        return result

    async def _request(self, method: str, endpoint: str, model: Type[T], headers: Optional[Dict[str, str]] = None, json: Any = None, correlation_id: str = None) -> T:
        """
        Send one request and parse the JSON envelope into `model`.
        Logs outgoing requests and incoming responses with sensitive fields redacted.
        """
        correlation_id = correlation_id or str(uuid.uuid4())
        url = f"{self.base_url}{endpoint}"
        logger.info(
            "LibreLinkUp API request",
            extra={
                "log_type": "request",
                "correlation_id": correlation_id,
                "method": method,
                "url": url,
                "headers": redact_pii(headers or {}),
                "body": redact_pii(json) if json else None,
            }
        )
        start_time = time.monotonic()
        status = "success"
        try:
            try:
                response = await self._client.request(method, endpoint, headers=headers, json=json)
            except httpx.RequestError as e:
                status = "transport_error"
                raise TransportError(f"LibreLinkUp {method} {endpoint} failed: {e}") from e

            if response.status_code in (401, 403):
                status = "auth_error"
                raise AuthError(
                    f"LibreLinkUp {method} {endpoint} unauthorized ({response.status_code})",
                    status_code=response.status_code,
                    response_body=response.text,
                )
            if not response.is_success:
                status = "protocol_error"
                raise ProtocolError(
                    f"LibreLinkUp {method} {endpoint} returned unexpected status {response.status_code}",
                    status_code=response.status_code,
                    response_body=response.text,
                )

            try:
                body = response.json()
            except ValueError as e:
                status = "protocol_error"
                raise ProtocolError(
                    f"LibreLinkUp {method} {endpoint} returned a body that is not JSON",
                    status_code=response.status_code,
                    response_body=response.text,
                ) from e

            logger.info(
                "LibreLinkUp API response",
                extra={
                    "log_type": "response",
                    "correlation_id": correlation_id,
                    "method": method,
                    "url": url,
                    "status_code": response.status_code,
                    "body": redact_pii(body),
                }
            )

            try:
                return model.model_validate(body)
            except ValidationError as e:
                status = "protocol_error"
                raise ProtocolError(
                    f"LibreLinkUp {method} {endpoint} returned an unexpected payload: {e.error_count()} error(s)",
                    status_code=response.status_code,
                ) from e
        finally:
            latency = time.monotonic() - start_time
            llu_api_call_latency_seconds.labels(method=method, endpoint=endpoint).observe(latency)
            llu_api_call_total.labels(method=method, endpoint=endpoint, status=status).inc()
            if latency > SLOW_CALL_SECONDS:
                logger.warning(
                    "Slow LibreLinkUp API call",
                    extra={
                        "log_type": "slow_api_call",
                        "correlation_id": correlation_id,
                        "method": method,
                        "endpoint": endpoint,
                        "latency": latency
                    }
                )
