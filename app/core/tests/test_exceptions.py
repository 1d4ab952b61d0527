"""Tests for the error taxonomy and its JSON rendering."""

import pytest

from app.core.exceptions import (
    AmbiguousDeviceError,
    DeviceLookupFailedError,
    InsertFailedError,
    InternalServerError,
    InvalidPayloadError,
    LedgerError,
    MethodNotAllowedError,
    MissingFieldsError,
    UnauthorizedError,
    UnknownDeviceError,
)


@pytest.mark.parametrize(
    ("exc", "status", "body"),
    [
        (MethodNotAllowedError(), 405, {"error": "Method not allowed"}),
        (UnauthorizedError(), 401, {"error": "Unauthorized"}),
        (InvalidPayloadError(), 400, {"error": "Invalid JSON body"}),
        (MissingFieldsError(), 400, {"error": "Missing required fields: vendo, amount, txn"}),
        (UnknownDeviceError(), 400, {"error": "Unknown device or missing tenant association"}),
        (AmbiguousDeviceError("d1"), 409, {"error": "Ambiguous device identifier", "device": "d1"}),
        (DeviceLookupFailedError("x"), 502, {"error": "Device lookup failed", "detail": "x"}),
        (InsertFailedError("y"), 502, {"error": "DB insert failed", "detail": "y"}),
        (InternalServerError(), 500, {"error": "Internal server error"}),
    ],
)
def test_error_bodies(exc: LedgerError, status: int, body: dict):
    """Each error has a stable status and body."""
    assert exc.status_code == status
    assert exc.to_body() == body


async def test_routing_405_uses_error_body(client):
    """A method the router does not know gets the webhook's 405 body."""
    response = await client.request("POST", "/health")

    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}
    assert "GET" in response.headers["Allow"]
    assert "POST" not in response.headers["Allow"]


async def test_routing_404_keeps_default_body(client):
    """Non-405 routing errors keep FastAPI's default shape."""
    response = await client.get("/no-such-path")

    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}
