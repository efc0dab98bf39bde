from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from tip_entitlements.exceptions import GatewayError
from tip_entitlements.payments.asaas import AsaasGateway, format_expiration


EXPIRES = datetime(2025, 10, 19, 18, 30, tzinfo=timezone.utc)


def _gateway(handler) -> AsaasGateway:
    client = httpx.AsyncClient(
        base_url="https://sandbox.asaas.test/v3",
        transport=httpx.MockTransport(handler),
        headers={"access_token": "key"},
    )
    return AsaasGateway(api_key="key", client=client)


def test_expiration_is_formatted_for_asaas():
    assert format_expiration(EXPIRES) == "2025-10-19 18:30:00"


@pytest.mark.asyncio
async def test_static_qr_code_request_and_response():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["token"] = request.headers.get("access_token")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "id": "QR123",
                "encodedImage": "base64png",
                "payload": "00020126",
                "expirationDate": "2025-10-19 18:30:00",
            },
        )

    gateway = _gateway(handler)
    qr = await gateway.create_static_pix_qr_code(39.9, "Pacote 5", EXPIRES, "merchant-key")

    assert seen["url"] == "https://sandbox.asaas.test/v3/pix/qrCodes/static"
    assert seen["token"] == "key"
    assert seen["body"] == {
        "value": 39.9,
        "description": "Pacote 5",
        "format": "ALL",
        "expirationDate": "2025-10-19 18:30:00",
        "addressKey": "merchant-key",
    }
    assert qr.id == "QR123"
    assert qr.encoded_image == "base64png"
    assert qr.expiration_date == EXPIRES


@pytest.mark.asyncio
async def test_error_status_raises_gateway_error():
    gateway = _gateway(lambda request: httpx.Response(400, json={"errors": [{"code": "invalid"}]}))

    with pytest.raises(GatewayError) as excinfo:
        await gateway.create_static_pix_qr_code(39.9, "Pacote 5", EXPIRES, "merchant-key")

    assert excinfo.value.upstream_status == 400
    assert "invalid" in excinfo.value.upstream_body


@pytest.mark.asyncio
async def test_transport_failure_raises_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayError):
        await _gateway(handler).create_static_pix_qr_code(1.0, "x", EXPIRES, "k")


@pytest.mark.asyncio
async def test_response_without_id_raises_gateway_error():
    gateway = _gateway(lambda request: httpx.Response(200, json={"payload": "x"}))

    with pytest.raises(GatewayError):
        await gateway.create_static_pix_qr_code(1.0, "x", EXPIRES, "k")
