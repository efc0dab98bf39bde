"""
Asaas payment gateway client.

Only the static PIX QR code endpoint is used: each checkout mints a QR code
bound to the merchant's receiving key, and Asaas later reports the payment
through the webhook with the QR code id as `payment.pixQrCodeId`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from ..exceptions import GatewayError
from .base import PaymentGateway, PixQrCode


logger = logging.getLogger(__name__)

ASAAS_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_expiration(value: datetime) -> str:
    """Asaas expects `YYYY-MM-DD HH:MM:SS` in UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(ASAAS_DATETIME_FORMAT)


def parse_expiration(raw: Optional[str], fallback: datetime) -> datetime:
    if not raw:
        return fallback
    try:
        parsed = datetime.strptime(raw, ASAAS_DATETIME_FORMAT)
    except ValueError:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class AsaasGateway(PaymentGateway):
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.asaas.com/v3",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"access_token": api_key, "Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def create_static_pix_qr_code(
        self,
        value: float,
        description: str,
        expiration_date: datetime,
        address_key: str,
    ) -> PixQrCode:
        body: Dict[str, Any] = {
            "value": value,
            "description": description,
            "format": "ALL",
            "expirationDate": format_expiration(expiration_date),
            "addressKey": address_key,
        }
        try:
            response = await self._client.post("/pix/qrCodes/static", json=body)
        except httpx.HTTPError as exc:
            logger.error("Asaas request failed: %s", exc, extra={"value": value})
            raise GatewayError(f"Could not reach payment gateway: {exc}") from exc

        if response.is_error:
            logger.error(
                "Asaas rejected PIX QR code creation",
                extra={"status_code": response.status_code, "body": response.text},
            )
            raise GatewayError(
                "Payment gateway rejected the PIX charge",
                upstream_status=response.status_code,
                upstream_body=response.text,
            )

        try:
            data = response.json()
            return PixQrCode(
                id=data["id"],
                encoded_image=data.get("encodedImage", ""),
                payload=data.get("payload", ""),
                expiration_date=parse_expiration(data.get("expirationDate"), expiration_date),
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise GatewayError(
                f"Unexpected payment gateway response: {exc}",
                upstream_status=response.status_code,
                upstream_body=response.text,
            ) from exc
