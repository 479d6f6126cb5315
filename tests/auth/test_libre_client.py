import hashlib
import json

import httpx
import pytest

from llu_sync.auth.libre_client import LibreLinkUpClient, account_id, redact_pii
from llu_sync.utils.error_handling import AuthError, ProtocolError, TransportError


def make_client(settings, handler):
    return LibreLinkUpClient(settings, transport=httpx.MockTransport(handler))


def test_account_id_is_lowercase_sha256_hex():
    digest = account_id("user-123")
    assert digest == hashlib.sha256(b"user-123").hexdigest()
    assert len(digest) == 64
    assert digest == digest.lower()


def test_redact_pii_masks_credentials_and_names():
    data = {
        "email": "pat@example.com",
        "password": "hunter2",
        "data": [{"firstName": "Pat", "lastName": "Doe", "country": "US"}],
    }
    redacted = redact_pii(data)
    assert redacted["email"] == "***REDACTED***"
    assert redacted["password"] == "***REDACTED***"
    assert redacted["data"][0]["firstName"] == "***REDACTED***"
    assert redacted["data"][0]["country"] == "US"


@pytest.mark.asyncio
async def test_login_sends_fixed_headers_and_credentials(settings, login_payload):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=login_payload)

    async with make_client(settings, handler) as client:
        result = await client.login("pat@example.com", "hunter2")

    request = seen[0]
    assert request.method == "POST"
    assert request.url == "https://api.test.libreview.io/llu/auth/login"
    assert request.headers["version"] == "4.16.0"
    assert request.headers["product"] == "llu.ios"
    assert request.headers["content-type"] == "application/json"
    assert json.loads(request.content) == {"email": "pat@example.com", "password": "hunter2"}

    assert result.ok
    assert result.data.user.id == "user-123"
    assert result.data.user.first_name == "Pat"
    assert result.data.auth_ticket.token.get_secret_value() == "ticket-1"
    assert result.data.auth_ticket.expires == 1711111111


@pytest.mark.asyncio
async def test_login_rejection_envelope_is_returned(settings):
    def handler(request):
        return httpx.Response(200, json={"status": 2, "error": {"message": "Invalid credentials"}})

    async with make_client(settings, handler) as client:
        result = await client.login("pat@example.com", "wrong")

    assert not result.ok
    assert result.error_message == "Invalid credentials"
    assert result.data is None


@pytest.mark.asyncio
async def test_connections_sends_bearer_and_account_id(settings, ticket, connections_payload):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=connections_payload)

    async with make_client(settings, handler) as client:
        result = await client.connections(ticket, "user-123")

    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/llu/connections"
    assert request.headers["authorization"] == "Bearer ticket-1"
    assert request.headers["account-id"] == hashlib.sha256(b"user-123").hexdigest()
    assert request.headers["version"] == "4.16.0"

    # the rotated ticket is handed back to the caller
    assert result.ticket.token.get_secret_value() == "ticket-2"
    measurement = result.data[0].glucose_measurement
    assert measurement.value_in_mg_per_dl == 112
    assert measurement.factory_timestamp == "3/21/2024 2:05:30 PM"
    assert result.data[0].sensor.sn == "SN123"


@pytest.mark.asyncio
async def test_connections_without_ticket_makes_no_request(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={})

    async with make_client(settings, handler) as client:
        with pytest.raises(AuthError):
            await client.connections(None, "user-123")

    assert seen == []


@pytest.mark.asyncio
async def test_connections_without_user_makes_no_request(settings, ticket):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={})

    async with make_client(settings, handler) as client:
        with pytest.raises(AuthError):
            await client.connections(ticket, None)

    assert seen == []


@pytest.mark.asyncio
async def test_connections_rejected_envelope_raises_auth_error(settings, ticket):
    def handler(request):
        return httpx.Response(200, json={"status": 920, "error": {"message": "Ticket expired"}})

    async with make_client(settings, handler) as client:
        with pytest.raises(AuthError) as exc_info:
            await client.connections(ticket, "user-123")

    assert "Ticket expired" in str(exc_info.value)


@pytest.mark.asyncio
async def test_connections_success_without_ticket_is_protocol_error(settings, ticket, connections_payload):
    del connections_payload["ticket"]

    def handler(request):
        return httpx.Response(200, json=connections_payload)

    async with make_client(settings, handler) as client:
        with pytest.raises(ProtocolError):
            await client.connections(ticket, "user-123")


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 403])
async def test_unauthorized_status_raises_auth_error(settings, ticket, status_code):
    def handler(request):
        return httpx.Response(status_code, text="nope")

    async with make_client(settings, handler) as client:
        with pytest.raises(AuthError) as exc_info:
            await client.connections(ticket, "user-123")

    assert exc_info.value.status_code == status_code


@pytest.mark.asyncio
async def test_server_error_raises_protocol_error(settings):
    def handler(request):
        return httpx.Response(500, text="Internal Server Error")

    async with make_client(settings, handler) as client:
        with pytest.raises(ProtocolError) as exc_info:
            await client.login("pat@example.com", "hunter2")

    assert exc_info.value.status_code == 500
    assert exc_info.value.response_body == "Internal Server Error"


@pytest.mark.asyncio
async def test_non_json_body_raises_protocol_error(settings):
    def handler(request):
        return httpx.Response(200, content=b"<html>maintenance</html>")

    async with make_client(settings, handler) as client:
        with pytest.raises(ProtocolError):
            await client.login("pat@example.com", "hunter2")


@pytest.mark.asyncio
async def test_unexpected_envelope_raises_protocol_error(settings):
    def handler(request):
        return httpx.Response(200, json={"unexpected": True})

    async with make_client(settings, handler) as client:
        with pytest.raises(ProtocolError):
            await client.login("pat@example.com", "hunter2")


@pytest.mark.asyncio
async def test_network_failure_raises_transport_error(settings, ticket):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with make_client(settings, handler) as client:
        with pytest.raises(TransportError):
            await client.connections(ticket, "user-123")


@pytest.mark.asyncio
async def test_timeout_raises_transport_error(settings):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with make_client(settings, handler) as client:
        with pytest.raises(TransportError):
            await client.login("pat@example.com", "hunter2")


def test_client_timeout_is_finite(settings):
    client = LibreLinkUpClient(settings)
    assert client._client.timeout.read == settings.request_timeout_seconds
