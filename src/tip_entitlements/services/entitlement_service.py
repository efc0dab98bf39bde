from __future__ import annotations

import logging
from typing import Optional

from ..db.base import BaseDBManager
from ..exceptions import AlreadyPurchasedError, NoCreditError, ValidationError
from ..logging.ledger_logger import LedgerLogger
from ..models.api_models import PackageUsed, PurchaseResult
from ..models.base import utcnow
from ..models.ledger import LedgerEventType
from ..models.tip import TipPurchase
from ..models.user import Package, UserAccount
from .user_service import UserService


logger = logging.getLogger(__name__)


class EntitlementService:
    """
    Spends package credits on premium tips.

    A purchase is a single conditional write of the user document (credit
    decremented and tip unlocked together) followed by the audit record.
    If the audit record cannot be written, the user change is reverted so
    neither part survives on its own.
    """

    def __init__(self, db: BaseDBManager, users: UserService, ledger: LedgerLogger) -> None:
        self._db = db
        self._users = users
        self._ledger = ledger

    async def purchase_tip(self, user_id: str, tip_id: str) -> PurchaseResult:
        if not user_id or not tip_id:
            raise ValidationError("userId and tipId are required")

        # Existence check first so a missing user is reported as 404.
        await self._users.get_user_by_email(user_id)

        spent: Optional[Package] = None

        def spend_credit(user: UserAccount) -> bool:
            nonlocal spent
            package = user.first_package_with_credit()
            if package is None:
                raise NoCreditError(user_id)
            if tip_id in user.purchased_tips:
                raise AlreadyPurchasedError(user_id, tip_id)
            package.tips_remaining -= 1
            package.last_used_at = utcnow()
            user.purchased_tips.append(tip_id)
            spent = package
            return True

        try:
            await self._users.update_with_retry(user_id, spend_credit)
        except (NoCreditError, AlreadyPurchasedError) as exc:
            await self._ledger.log_error(
                message="Tip purchase rejected",
                details={"tip_id": tip_id, "code": exc.code},
                user_id=user_id,
            )
            raise

        if spent is None:
            raise NoCreditError(user_id)
        purchase = TipPurchase(
            id=TipPurchase.make_id(user_id, tip_id),
            user_id=user_id,
            tip_id=tip_id,
            purchased_at=spent.last_used_at or utcnow(),
            package_id=spent.id,
            package_name=spent.name,
            transaction_id=spent.transaction_id,
        )
        try:
            purchase = await self._db.upsert_tip_purchase(purchase)
        except Exception:
            logger.exception(
                "Tip purchase record failed, reverting credit",
                extra={"user_id": user_id, "tip_id": tip_id},
            )
            await self._refund(user_id, tip_id, spent)
            raise

        await self._ledger.log_event(
            LedgerEventType.TIP_PURCHASED,
            message="Tip purchased",
            details={
                "tip_id": tip_id,
                "package_id": spent.id,
                "transaction_id": spent.transaction_id,
                "tips_remaining": spent.tips_remaining,
            },
            user_id=user_id,
            correlation_id=purchase.id,
        )
        return PurchaseResult(
            purchase_id=purchase.id or "",
            package_used=PackageUsed(
                id=spent.id, name=spent.name, tips_remaining=spent.tips_remaining
            ),
        )

    async def _refund(self, user_id: str, tip_id: str, spent: Package) -> None:
        def undo(user: UserAccount) -> bool:
            if tip_id not in user.purchased_tips:
                return False
            user.purchased_tips.remove(tip_id)
            for package in user.packages:
                if package.transaction_id == spent.transaction_id and package.id == spent.id:
                    package.tips_remaining = min(package.tips_remaining + 1, package.tips_included)
                    break
            return True

        await self._users.update_with_retry(user_id, undo)
