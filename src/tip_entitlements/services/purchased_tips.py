from __future__ import annotations

import logging
from typing import List

from ..db.base import BaseDBManager
from ..models.api_models import PurchasedTip
from .transaction_ledger import TransactionLedger
from .user_service import UserService


logger = logging.getLogger(__name__)

DEFAULT_PLAN_NAME = "Pacote"


class PurchasedTipsService:
    """
    Purchase history: the user's unlocked tips joined with their purchase
    records and the confirmed transactions that paid for them.
    """

    def __init__(
        self, db: BaseDBManager, users: UserService, transactions: TransactionLedger
    ) -> None:
        self._db = db
        self._users = users
        self._transactions = transactions

    async def list_purchased(self, user_id: str) -> List[PurchasedTip]:
        user = await self._users.get_user_by_email(user_id)
        if not user.purchased_tips:
            return []

        purchases = {p.tip_id: p for p in await self._db.get_user_tip_purchases(user_id)}
        paid = {tx.id: tx for tx in await self._transactions.list_confirmed_for_user(user_id)}

        items: List[PurchasedTip] = []
        for tip_id in user.purchased_tips:
            purchase = purchases.get(tip_id)
            if purchase is None:
                logger.warning(
                    "Purchase record missing for unlocked tip",
                    extra={"user_id": user_id, "tip_id": tip_id},
                )
                continue
            tip = await self._db.get_tip(tip_id)
            if tip is None:
                logger.warning("Unlocked tip no longer exists", extra={"tip_id": tip_id})
                continue

            tx = paid.get(purchase.transaction_id) if purchase.transaction_id else None
            items.append(
                PurchasedTip(
                    id=tip_id,
                    category=tip.category,
                    league=tip.league,
                    teams=tip.teams,
                    match_time=tip.match_time,
                    prediction=tip.prediction,
                    confidence=tip.confidence,
                    is_premium=tip.is_premium,
                    odds=tip.odds,
                    status=tip.status,
                    result=tip.result,
                    purchased_at=purchase.purchased_at,
                    price=tx.plan_price if tx else 0,
                    plan_name=purchase.package_name or (tx.plan_name if tx else "") or DEFAULT_PLAN_NAME,
                    package_id=purchase.package_id,
                )
            )

        items.sort(key=lambda item: item.purchased_at, reverse=True)
        return items
