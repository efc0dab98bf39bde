from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from ..models.ledger import LedgerEntry
from ..models.plan import Plan
from ..models.tip import Tip, TipPurchase
from ..models.transaction import PaymentStatus, Transaction
from ..models.user import UserAccount


class BaseDBManager(ABC):
    """
    DB-agnostic async manager interface.

    This is the only storage capability the services depend on. Concurrent
    mutation of a user's packages and purchased tips goes through
    `replace_user`, a conditional write on the user's `version`; every other
    write touches a single document and is atomic on its own.
    """

    async def ensure_indexes(self) -> None:
        """Create backend indexes; a no-op where the backend has none."""
        return None

    # User operations
    @abstractmethod
    async def add_user(self, user: UserAccount) -> UserAccount: ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[UserAccount]: ...

    @abstractmethod
    async def replace_user(self, user: UserAccount, expected_version: int) -> bool:
        """
        Store `user` only if the stored document still has `expected_version`.
        On success the stored version becomes `expected_version + 1` (and so
        does `user.version`). Returns False when another writer got there first.
        """
        ...

    # Plan catalog
    @abstractmethod
    async def add_plan(self, plan: Plan) -> Plan: ...

    @abstractmethod
    async def get_plan(self, plan_id: str) -> Optional[Plan]: ...

    @abstractmethod
    async def get_all_plans(self) -> Iterable[Plan]: ...

    # Transaction ledger
    @abstractmethod
    async def add_transaction(self, tx: Transaction) -> Transaction: ...

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]: ...

    @abstractmethod
    async def update_transaction(self, tx: Transaction) -> Transaction: ...

    @abstractmethod
    async def find_transactions_by_pix_key_id(self, pix_key_id: str) -> Iterable[Transaction]: ...

    @abstractmethod
    async def get_user_transactions(
        self, user_id: str, status: Optional[PaymentStatus] = None
    ) -> Iterable[Transaction]: ...

    # Tip purchases
    @abstractmethod
    async def upsert_tip_purchase(self, purchase: TipPurchase) -> TipPurchase: ...

    @abstractmethod
    async def get_tip_purchase(self, purchase_id: str) -> Optional[TipPurchase]: ...

    @abstractmethod
    async def delete_tip_purchase(self, purchase_id: str) -> None: ...

    @abstractmethod
    async def get_user_tip_purchases(self, user_id: str) -> Iterable[TipPurchase]: ...

    # Tips
    @abstractmethod
    async def add_tip(self, tip: Tip) -> Tip: ...

    @abstractmethod
    async def get_tip(self, tip_id: str) -> Optional[Tip]: ...

    @abstractmethod
    async def get_tips_by_match_date(self, match_date: str) -> Iterable[Tip]: ...

    # Audit ledger
    @abstractmethod
    async def add_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry: ...
