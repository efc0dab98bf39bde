from __future__ import annotations

import logging
from datetime import timedelta

from ..exceptions import GatewayError, ValidationError
from ..logging.ledger_logger import LedgerLogger
from ..models.api_models import ChargeResult
from ..models.base import utcnow
from ..models.ledger import LedgerEventType
from ..models.transaction import Transaction
from ..payments.base import PaymentGateway
from .plan_catalog import PlanCatalog
from .transaction_ledger import TransactionLedger


logger = logging.getLogger(__name__)


class ChargeService:
    """
    Mints PIX charges for a plan and records them as pending transactions.

    Every call creates a new charge unless `reuse_pending_charges` is on, in
    which case an open (pending, unexpired) charge for the same payer and
    plan is handed back instead.
    """

    def __init__(
        self,
        plans: PlanCatalog,
        gateway: PaymentGateway,
        transactions: TransactionLedger,
        ledger: LedgerLogger,
        address_key: str,
        expiration_hours: int = 2,
        reuse_pending_charges: bool = False,
    ) -> None:
        self._plans = plans
        self._gateway = gateway
        self._transactions = transactions
        self._ledger = ledger
        self._address_key = address_key
        self._expiration = timedelta(hours=expiration_hours)
        self._reuse_pending_charges = reuse_pending_charges

    async def create_charge(self, plan_id: str, payer_id: str) -> ChargeResult:
        if not plan_id or not payer_id:
            raise ValidationError("planId and userId are required")

        plan = await self._plans.get_plan(plan_id)

        if self._reuse_pending_charges:
            open_tx = await self._transactions.find_open_charge(payer_id, plan_id)
            if open_tx is not None:
                logger.info(
                    "Reusing open PIX charge",
                    extra={"transaction_id": open_tx.id, "pix_key_id": open_tx.pix_key_id},
                )
                return self._to_result(open_tx)

        expiration_date = utcnow() + self._expiration
        try:
            charge = await self._gateway.create_static_pix_qr_code(
                value=plan.price_in_reais,
                description=f"{plan.name} - {payer_id}",
                expiration_date=expiration_date,
                address_key=self._address_key,
            )
        except GatewayError as exc:
            await self._ledger.log_error(
                message="PIX charge creation failed",
                details={
                    "plan_id": plan_id,
                    "upstream_status": exc.upstream_status,
                    "error": exc.message,
                },
                user_id=payer_id,
            )
            raise

        tx = await self._transactions.record_pending(
            user_id=payer_id, plan=plan, charge=charge, address_key=self._address_key
        )
        await self._ledger.log_event(
            LedgerEventType.CHARGE_CREATED,
            message="PIX charge created",
            details={"plan_id": plan_id, "price": plan.price, "transaction_id": tx.id},
            user_id=payer_id,
            correlation_id=charge.id,
        )
        return self._to_result(tx)

    @staticmethod
    def _to_result(tx: Transaction) -> ChargeResult:
        return ChargeResult(
            id=tx.pix_key_id or "",
            encoded_image=tx.pix_qr_code or "",
            payload=tx.pix_payload or "",
            expiration_date=tx.pix_expiration_date,
            transaction_id=tx.id or "",
        )
