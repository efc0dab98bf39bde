from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from pydantic import BaseModel


class PixQrCode(BaseModel):
    """Charge minted by the gateway: what the payer scans, plus its key."""

    id: str
    encoded_image: str
    payload: str
    expiration_date: datetime


class PaymentGateway(ABC):
    """
    Payment provider capability. Implementations raise `GatewayError` for
    any transport or provider failure; a returned QR code means the charge
    exists on the provider's side.
    """

    @abstractmethod
    async def create_static_pix_qr_code(
        self,
        value: float,
        description: str,
        expiration_date: datetime,
        address_key: str,
    ) -> PixQrCode:
        ...

    async def aclose(self) -> None:
        return None
