"""
Service wiring. Everything is built once per process by `build_container`
and reached from the routes through `app.state`, so tests can swap the
store or the gateway without touching module globals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ..cache.memory import InMemoryAsyncCache
from ..config import Settings
from ..db.base import BaseDBManager
from ..db.memory import InMemoryDBManager
from ..db.mongo import MongoDBManager
from ..logging.ledger_logger import LedgerLogger
from ..payments.asaas import AsaasGateway
from ..payments.base import PaymentGateway
from ..services.access_gate import AccessGate
from ..services.charge_service import ChargeService
from ..services.entitlement_service import EntitlementService
from ..services.payment_confirmation import PaymentConfirmationHandler
from ..services.plan_catalog import PlanCatalog
from ..services.purchased_tips import PurchasedTipsService
from ..services.tip_service import TipService
from ..services.transaction_ledger import TransactionLedger
from ..services.user_service import UserService


logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    db: BaseDBManager
    gateway: PaymentGateway
    ledger: LedgerLogger
    plans: PlanCatalog
    users: UserService
    tips: TipService
    transactions: TransactionLedger
    charges: ChargeService
    confirmations: PaymentConfirmationHandler
    entitlements: EntitlementService
    access: AccessGate
    purchased: PurchasedTipsService


def create_db_manager(settings: Settings) -> BaseDBManager:
    if settings.mongo_uri:
        return MongoDBManager.from_client_uri(settings.mongo_uri, settings.mongo_db)
    logger.warning("No Mongo URI configured, using in-memory storage")
    return InMemoryDBManager()


def build_container(
    settings: Settings,
    db: Optional[BaseDBManager] = None,
    gateway: Optional[PaymentGateway] = None,
) -> ServiceContainer:
    db = db or create_db_manager(settings)
    gateway = gateway or AsaasGateway(
        api_key=settings.asaas_api_key,
        base_url=settings.asaas_api_url,
        timeout=settings.gateway_timeout_seconds,
    )
    ledger = LedgerLogger(db=db, file_path=settings.ledger_log_path)
    plans = PlanCatalog(db=db, cache=InMemoryAsyncCache(), ttl_seconds=settings.plan_cache_ttl_seconds)
    users = UserService(db=db, max_write_retries=settings.max_write_retries)
    tips = TipService(db=db)
    transactions = TransactionLedger(db=db)
    return ServiceContainer(
        db=db,
        gateway=gateway,
        ledger=ledger,
        plans=plans,
        users=users,
        tips=tips,
        transactions=transactions,
        charges=ChargeService(
            plans=plans,
            gateway=gateway,
            transactions=transactions,
            ledger=ledger,
            address_key=settings.pix_address_key,
            expiration_hours=settings.pix_expiration_hours,
            reuse_pending_charges=settings.reuse_pending_charges,
        ),
        confirmations=PaymentConfirmationHandler(
            transactions=transactions, plans=plans, users=users, ledger=ledger
        ),
        entitlements=EntitlementService(db=db, users=users, ledger=ledger),
        access=AccessGate(tips=tips, users=users),
        purchased=PurchasedTipsService(db=db, users=users, transactions=transactions),
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container
