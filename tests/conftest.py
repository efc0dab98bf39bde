from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import pytest

from tip_entitlements.api.dependencies import ServiceContainer, build_container
from tip_entitlements.config import Settings
from tip_entitlements.db.memory import InMemoryDBManager
from tip_entitlements.exceptions import GatewayError
from tip_entitlements.models.api_models import WebhookEvent
from tip_entitlements.models.plan import Plan, PlanType
from tip_entitlements.models.tip import Tip
from tip_entitlements.payments.base import PaymentGateway, PixQrCode


class FakeGateway(PaymentGateway):
    """Mints sequential charge keys E1, E2, ... or fails on demand."""

    def __init__(self) -> None:
        self.calls: List[dict] = []
        self.fail_with: Optional[GatewayError] = None

    async def create_static_pix_qr_code(
        self, value: float, description: str, expiration_date: datetime, address_key: str
    ) -> PixQrCode:
        self.calls.append(
            {
                "value": value,
                "description": description,
                "expiration_date": expiration_date,
                "address_key": address_key,
            }
        )
        if self.fail_with is not None:
            raise self.fail_with
        n = len(self.calls)
        return PixQrCode(
            id=f"E{n}",
            encoded_image=f"img-{n}",
            payload=f"00020126-pix-{n}",
            expiration_date=expiration_date,
        )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        pix_address_key="merchant-key",
        ledger_log_path=tmp_path / "ledger.log",
        max_write_retries=5,
    )


@pytest.fixture
def db() -> InMemoryDBManager:
    return InMemoryDBManager()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def services(settings, db, gateway) -> ServiceContainer:
    return build_container(settings, db=db, gateway=gateway)


def pack_plan(plan_id: str = "pack5", tips: int = 5, price: int = 3990) -> Plan:
    return Plan(id=plan_id, name=f"Pacote {tips}", type=PlanType.PACKAGE, price=price, tips_included=tips)


def premium_tip(tip_id: str, premium: bool = True) -> Tip:
    return Tip(
        id=tip_id,
        league="Brasileirao",
        teams="Flamengo x Palmeiras",
        match_time="2025-10-19T21:30:00",
        prediction="Over 2.5",
        is_premium=premium,
    )


def confirmation(pix_key_id: Optional[str], event: str = "PAYMENT_RECEIVED") -> WebhookEvent:
    payment = {"id": "pay_123", "value": 39.9}
    if pix_key_id is not None:
        payment["pixQrCodeId"] = pix_key_id
    return WebhookEvent.model_validate({"event": event, "payment": payment})
