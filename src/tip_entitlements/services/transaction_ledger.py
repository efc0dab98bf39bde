from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..db.base import BaseDBManager
from ..exceptions import NotFoundError, ValidationError
from ..models.base import utcnow
from ..models.plan import Plan
from ..models.transaction import (
    PaymentMethod,
    PaymentStatus,
    Transaction,
    normalize_gateway_status,
)
from ..payments.base import PixQrCode


logger = logging.getLogger(__name__)


class TransactionLedger:
    """
    Record of every payment attempt, keyed for webhook matching by the
    gateway's PIX key id. Rows are only ever updated in place, never removed.
    """

    def __init__(self, db: BaseDBManager) -> None:
        self._db = db

    async def record_pending(
        self, user_id: str, plan: Plan, charge: PixQrCode, address_key: str
    ) -> Transaction:
        tx = Transaction(
            user_id=user_id,
            plan_id=plan.id or "",
            plan_name=plan.name,
            plan_price=plan.price,
            plan_type=plan.type,
            payment_method=PaymentMethod.PIX,
            pix_key_id=charge.id,
            pix_address_key=address_key,
            pix_qr_code=charge.encoded_image,
            pix_payload=charge.payload,
            pix_expiration_date=charge.expiration_date,
            status=PaymentStatus.PENDING,
        )
        tx = await self._db.add_transaction(tx)
        logger.info(
            "Pending transaction recorded",
            extra={"transaction_id": tx.id, "pix_key_id": charge.id, "user_id": user_id},
        )
        return tx

    async def find_by_external_key(self, pix_key_id: str) -> List[Transaction]:
        return list(await self._db.find_transactions_by_pix_key_id(pix_key_id))

    async def find_open_charge(self, user_id: str, plan_id: str) -> Optional[Transaction]:
        """Most recent pending, unexpired PIX transaction for (user, plan)."""
        now = utcnow()
        candidates = [
            tx
            for tx in await self._db.get_user_transactions(user_id, PaymentStatus.PENDING)
            if tx.plan_id == plan_id and tx.payment_method is PaymentMethod.PIX and tx.is_open(now)
        ]
        return candidates[-1] if candidates else None

    async def mark_confirmed(
        self, tx: Transaction, event_name: str, payment: Dict[str, Any]
    ) -> Transaction:
        """
        Apply a confirmation event. Re-applying the same event rewrites the
        same terminal values, so duplicate deliveries are harmless here.
        """
        now = utcnow()
        tx.status = normalize_gateway_status(event_name)
        tx.gateway_status = event_name
        tx.gateway_payment_id = payment.get("id")
        tx.gateway_payload = payment
        tx.payment_confirmed_at = tx.payment_confirmed_at or now
        tx.updated_at = now
        return await self._db.update_transaction(tx)

    async def update_status_by_external_key(self, pix_key_id: str, raw_status: str) -> List[Transaction]:
        """Manual status override for every transaction sharing the key."""
        try:
            status = normalize_gateway_status(raw_status)
        except ValueError as exc:
            raise ValidationError(f"unknown status: {raw_status}", status=raw_status) from exc

        transactions = await self.find_by_external_key(pix_key_id)
        if not transactions:
            raise NotFoundError("Transaction", pix_key_id)

        updated = []
        for tx in transactions:
            tx.status = status
            tx.gateway_status = raw_status
            tx.updated_at = utcnow()
            updated.append(await self._db.update_transaction(tx))
        logger.info(
            "Transaction status updated manually",
            extra={"pix_key_id": pix_key_id, "status": status.value, "count": len(updated)},
        )
        return updated

    async def list_confirmed_for_user(self, user_id: str) -> List[Transaction]:
        return list(await self._db.get_user_transactions(user_id, PaymentStatus.CONFIRMED))
