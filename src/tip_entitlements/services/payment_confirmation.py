from __future__ import annotations

import logging
from typing import Any, Dict

from ..exceptions import MalformedEventError, NotFoundError, TipBillingError
from ..logging.ledger_logger import LedgerLogger
from ..models.api_models import TransactionResult, WebhookEvent, WebhookResult
from ..models.base import utcnow
from ..models.ledger import LedgerEventType
from ..models.plan import PlanType
from ..models.transaction import CONFIRMATION_EVENTS, Transaction
from ..models.user import Package, UserAccount
from .plan_catalog import PlanCatalog
from .transaction_ledger import TransactionLedger
from .user_service import UserService


logger = logging.getLogger(__name__)


class PaymentConfirmationHandler:
    """
    Reacts to gateway webhooks: confirms the matching transactions and
    credits package plans to the paying user.

    Deliveries are at-least-once. The status update is a plain rewrite of
    the same terminal values; the credit step only appends a package when
    none with the transaction's id exists yet, checked inside the user's
    conditional write.
    """

    def __init__(
        self,
        transactions: TransactionLedger,
        plans: PlanCatalog,
        users: UserService,
        ledger: LedgerLogger,
    ) -> None:
        self._transactions = transactions
        self._plans = plans
        self._users = users
        self._ledger = ledger

    async def handle_event(self, event: WebhookEvent) -> WebhookResult:
        if event.event not in CONFIRMATION_EVENTS:
            logger.info("Webhook event not processed", extra={"event": event.event})
            return WebhookResult(
                message="Webhook received but not processed",
                event=event.event,
                processed=False,
            )

        pix_key_id = event.charge_key
        if not pix_key_id:
            logger.error("Webhook without pixQrCodeId", extra={"event": event.event})
            raise MalformedEventError("pixQrCodeId not found in webhook payment")

        transactions = await self._transactions.find_by_external_key(pix_key_id)
        if not transactions:
            logger.error("No transaction for pixQrCodeId", extra={"pix_key_id": pix_key_id})
            raise NotFoundError("Transaction", pix_key_id)

        payment = event.payment.model_dump(by_alias=True, exclude_none=True) if event.payment else {}
        results = []
        for tx in transactions:
            stored_status = tx.status.value
            # One bad record must not stop the others from being confirmed.
            try:
                results.append(await self._process_transaction(tx, event.event, payment))
            except Exception as exc:
                if isinstance(exc, TipBillingError):
                    message, code = exc.message, exc.code
                else:
                    message, code = str(exc) or type(exc).__name__, "INTERNAL_ERROR"
                logger.exception(
                    "Failed to process transaction for webhook",
                    extra={"transaction_id": tx.id, "pix_key_id": pix_key_id, "error": message},
                )
                await self._ledger.log_error(
                    message="Webhook processing failed",
                    details={"transaction_id": tx.id, "error": message, "code": code},
                    user_id=tx.user_id,
                    correlation_id=pix_key_id,
                )
                results.append(
                    TransactionResult(transaction_id=tx.id or "", status=stored_status, error=message)
                )

        logger.info(
            "Payment confirmed",
            extra={"pix_key_id": pix_key_id, "transactions": len(results)},
        )
        return WebhookResult(
            message="Webhook processed",
            event=event.event,
            pix_key_id=pix_key_id,
            processed=True,
            updated_transactions=len(results),
            results=results,
        )

    async def _process_transaction(
        self, tx: Transaction, event_name: str, payment: Dict[str, Any]
    ) -> TransactionResult:
        tx = await self._transactions.mark_confirmed(tx, event_name, payment)
        result = TransactionResult(transaction_id=tx.id or "", status=tx.status.value)

        if not tx.plan_id or not tx.user_id:
            logger.error("Transaction without plan or user", extra={"transaction_id": tx.id})
            return result

        plan = await self._plans.find_plan(tx.plan_id)
        if plan is None:
            logger.error(
                "Plan not found for confirmed transaction",
                extra={"transaction_id": tx.id, "plan_id": tx.plan_id},
            )
            return result

        if plan.type is PlanType.SUBSCRIPTION:
            # Subscription entitlements are not supported yet; payment is
            # still recorded as confirmed.
            logger.info(
                "Subscription payment confirmed; no entitlement granted",
                extra={"transaction_id": tx.id, "plan_id": plan.id},
            )
            return result

        if await self._users.find_user_by_email(tx.user_id) is None:
            logger.error(
                "User not found for confirmed transaction",
                extra={"transaction_id": tx.id, "user_id": tx.user_id},
            )
            return result

        transaction_id = tx.id or ""
        credited = False

        def append_package(user: UserAccount) -> bool:
            nonlocal credited
            if user.has_credited_transaction(transaction_id):
                credited = False
                return False
            user.packages.append(
                Package(
                    id=plan.id or tx.plan_id,
                    name=plan.name,
                    tips_included=plan.tips_included or 0,
                    tips_remaining=plan.tips_included or 0,
                    purchased_at=utcnow(),
                    transaction_id=transaction_id,
                )
            )
            credited = True
            return True

        await self._users.update_with_retry(tx.user_id, append_package)

        if not credited:
            logger.info(
                "Package already credited for transaction",
                extra={"transaction_id": transaction_id, "user_id": tx.user_id},
            )
            result.already_credited = True
            return result

        await self._ledger.log_event(
            LedgerEventType.PACKAGE_CREDITED,
            message="Package credited",
            details={
                "transaction_id": transaction_id,
                "plan_id": plan.id,
                "tips_included": plan.tips_included,
                "event": event_name,
            },
            user_id=tx.user_id,
            correlation_id=tx.pix_key_id,
        )
        logger.info(
            "Package added to user",
            extra={"user_id": tx.user_id, "plan_name": plan.name, "transaction_id": transaction_id},
        )
        result.user_updated = True
        return result
