from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional

from .base import BaseDBManager
from ..models.ledger import LedgerEntry
from ..models.plan import Plan
from ..models.tip import Tip, TipPurchase
from ..models.transaction import PaymentStatus, Transaction
from ..models.user import UserAccount


class InMemoryDBManager(BaseDBManager):
    """
    Simple in-memory implementation used for tests and local development.
    NOT suitable for production, but exercises the abstraction and services.

    Reads hand out deep copies, like a document store would, so a service
    that forgets to write back (or races another writer) behaves the same
    here as against MongoDB.
    """

    def __init__(self) -> None:
        self._users: Dict[str, UserAccount] = {}
        self._plans: Dict[str, Plan] = {}
        self._transactions: Dict[str, Transaction] = {}
        self._tip_purchases: Dict[str, TipPurchase] = {}
        self._tips: Dict[str, Tip] = {}
        self.ledger: List[LedgerEntry] = []
        self._id_counter: int = 0

    def _next_id(self) -> str:
        self._id_counter += 1
        return str(self._id_counter)

    # User operations
    async def add_user(self, user: UserAccount) -> UserAccount:
        if user.id is None:
            user.id = self._next_id()
        self._users[user.id] = user.model_copy(deep=True)
        return user

    async def get_user_by_email(self, email: str) -> Optional[UserAccount]:
        # Yield so concurrent requests interleave between read and write.
        await asyncio.sleep(0)
        for user in self._users.values():
            if user.email == email:
                return user.model_copy(deep=True)
        return None

    async def replace_user(self, user: UserAccount, expected_version: int) -> bool:
        if user.id is None:
            raise ValueError("User must have id to be updated")
        stored = self._users.get(user.id)
        if stored is None or stored.version != expected_version:
            return False
        user.version = expected_version + 1
        self._users[user.id] = user.model_copy(deep=True)
        return True

    # Plan catalog
    async def add_plan(self, plan: Plan) -> Plan:
        if plan.id is None:
            plan.id = self._next_id()
        self._plans[plan.id] = plan.model_copy(deep=True)
        return plan

    async def get_plan(self, plan_id: str) -> Optional[Plan]:
        plan = self._plans.get(plan_id)
        return plan.model_copy(deep=True) if plan else None

    async def get_all_plans(self) -> Iterable[Plan]:
        return [p.model_copy(deep=True) for p in self._plans.values()]

    # Transaction ledger
    async def add_transaction(self, tx: Transaction) -> Transaction:
        if tx.id is None:
            tx.id = self._next_id()
        self._transactions[tx.id] = tx.model_copy(deep=True)
        return tx

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        tx = self._transactions.get(transaction_id)
        return tx.model_copy(deep=True) if tx else None

    async def update_transaction(self, tx: Transaction) -> Transaction:
        if tx.id is None or tx.id not in self._transactions:
            raise ValueError("Transaction must exist to be updated")
        self._transactions[tx.id] = tx.model_copy(deep=True)
        return tx

    async def find_transactions_by_pix_key_id(self, pix_key_id: str) -> Iterable[Transaction]:
        return [
            t.model_copy(deep=True)
            for t in self._transactions.values()
            if t.pix_key_id == pix_key_id
        ]

    async def get_user_transactions(
        self, user_id: str, status: Optional[PaymentStatus] = None
    ) -> Iterable[Transaction]:
        txs = [
            t.model_copy(deep=True)
            for t in self._transactions.values()
            if t.user_id == user_id and (status is None or t.status == status)
        ]
        txs.sort(key=lambda t: t.created_at)
        return txs

    # Tip purchases
    async def upsert_tip_purchase(self, purchase: TipPurchase) -> TipPurchase:
        if purchase.id is None:
            purchase.id = TipPurchase.make_id(purchase.user_id, purchase.tip_id)
        self._tip_purchases[purchase.id] = purchase.model_copy(deep=True)
        return purchase

    async def get_tip_purchase(self, purchase_id: str) -> Optional[TipPurchase]:
        purchase = self._tip_purchases.get(purchase_id)
        return purchase.model_copy(deep=True) if purchase else None

    async def delete_tip_purchase(self, purchase_id: str) -> None:
        self._tip_purchases.pop(purchase_id, None)

    async def get_user_tip_purchases(self, user_id: str) -> Iterable[TipPurchase]:
        return [
            p.model_copy(deep=True)
            for p in self._tip_purchases.values()
            if p.user_id == user_id
        ]

    # Tips
    async def add_tip(self, tip: Tip) -> Tip:
        if tip.id is None:
            tip.id = self._next_id()
        self._tips[tip.id] = tip.model_copy(deep=True)
        return tip

    async def get_tip(self, tip_id: str) -> Optional[Tip]:
        tip = self._tips.get(tip_id)
        return tip.model_copy(deep=True) if tip else None

    async def get_tips_by_match_date(self, match_date: str) -> Iterable[Tip]:
        return [t.model_copy(deep=True) for t in self._tips.values() if t.match_date == match_date]

    # Audit ledger
    async def add_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        if entry.id is None:
            entry.id = self._next_id()
        self.ledger.append(entry)
        return entry
