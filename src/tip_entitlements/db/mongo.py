from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Type, TypeVar
from uuid import uuid4

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from .base import BaseDBManager
from ..models.base import DBSerializableModel
from ..models.ledger import LedgerEntry
from ..models.plan import Plan
from ..models.tip import Tip, TipPurchase
from ..models.transaction import PaymentStatus, Transaction
from ..models.user import UserAccount


TModel = TypeVar("TModel", bound=DBSerializableModel)


class MongoDBManager(BaseDBManager):
    """
    MongoDB implementation of BaseDBManager using motor (async driver).

    IDs are stored as string-based `_id` fields and mirrored in the `id`
    attribute of each Pydantic model, which keeps the rest of the system
    agnostic of MongoDB specifics.

    User entitlements live in a single document, so the conditional
    `replace_one` on `{_id, version}` is enough to serialize credit and
    spend writes without multi-document transactions.
    """

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._db = database

    @classmethod
    def from_client_uri(cls, uri: str, db_name: str) -> "MongoDBManager":
        client = AsyncIOMotorClient(uri, tz_aware=True)
        return cls(client[db_name])

    async def ensure_indexes(self) -> None:
        await self._db[UserAccount.collection_name].create_index(
            [("email", ASCENDING)], unique=True
        )
        transactions = self._db[Transaction.collection_name]
        await transactions.create_index([("pix_key_id", ASCENDING)])
        await transactions.create_index([("user_id", ASCENDING), ("status", ASCENDING)])
        await self._db[TipPurchase.collection_name].create_index([("user_id", ASCENDING)])
        await self._db[Tip.collection_name].create_index([("match_date", ASCENDING)])

    # Helper utilities
    @staticmethod
    def _prepare_insert(model: TModel) -> Dict[str, Any]:
        data = model.serialize_for_db()
        model_id = getattr(model, "id", None)
        if not model_id:
            model_id = uuid4().hex
            setattr(model, "id", model_id)
            data["id"] = model_id
        data["_id"] = model_id
        return data

    @staticmethod
    def _prepare_update(model: TModel) -> Dict[str, Any]:
        data = model.serialize_for_db()
        model_id = getattr(model, "id", None)
        if not model_id:
            raise ValueError("Model must have id to be updated")
        data["_id"] = model_id
        return data

    @staticmethod
    def _decode(model_cls: Type[TModel], doc: Optional[Mapping[str, Any]]) -> Optional[TModel]:
        if doc is None:
            return None
        data = dict(doc)
        if "_id" in data and "id" not in data:
            data["id"] = str(data["_id"])
        data.pop("_id", None)
        return model_cls.model_validate(data)

    async def _find_many(
        self, model_cls: Type[TModel], query: Dict[str, Any], sort: Optional[list] = None
    ) -> list[TModel]:
        cursor = self._db[model_cls.collection_name].find(query)
        if sort:
            cursor = cursor.sort(sort)
        docs = await cursor.to_list(length=None)
        return [self._decode(model_cls, d) for d in docs if d is not None]  # type: ignore[misc]

    # User operations
    async def add_user(self, user: UserAccount) -> UserAccount:
        data = self._prepare_insert(user)
        await self._db[UserAccount.collection_name].insert_one(data)
        return user

    async def get_user_by_email(self, email: str) -> Optional[UserAccount]:
        doc = await self._db[UserAccount.collection_name].find_one({"email": email})
        return self._decode(UserAccount, doc)

    async def replace_user(self, user: UserAccount, expected_version: int) -> bool:
        candidate = user.model_copy(update={"version": expected_version + 1})
        data = self._prepare_update(candidate)
        result = await self._db[UserAccount.collection_name].replace_one(
            {"_id": data["_id"], "version": expected_version}, data, upsert=False
        )
        if result.matched_count != 1:
            return False
        user.version = expected_version + 1
        return True

    # Plan catalog
    async def add_plan(self, plan: Plan) -> Plan:
        data = self._prepare_insert(plan)
        await self._db[Plan.collection_name].replace_one({"_id": data["_id"]}, data, upsert=True)
        return plan

    async def get_plan(self, plan_id: str) -> Optional[Plan]:
        doc = await self._db[Plan.collection_name].find_one({"_id": plan_id})
        return self._decode(Plan, doc)

    async def get_all_plans(self) -> Iterable[Plan]:
        return await self._find_many(Plan, {}, sort=[("price", ASCENDING)])

    # Transaction ledger
    async def add_transaction(self, tx: Transaction) -> Transaction:
        data = self._prepare_insert(tx)
        await self._db[Transaction.collection_name].insert_one(data)
        return tx

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        doc = await self._db[Transaction.collection_name].find_one({"_id": transaction_id})
        return self._decode(Transaction, doc)

    async def update_transaction(self, tx: Transaction) -> Transaction:
        data = self._prepare_update(tx)
        await self._db[Transaction.collection_name].replace_one(
            {"_id": data["_id"]}, data, upsert=False
        )
        return tx

    async def find_transactions_by_pix_key_id(self, pix_key_id: str) -> Iterable[Transaction]:
        return await self._find_many(Transaction, {"pix_key_id": pix_key_id})

    async def get_user_transactions(
        self, user_id: str, status: Optional[PaymentStatus] = None
    ) -> Iterable[Transaction]:
        query: Dict[str, Any] = {"user_id": user_id}
        if status is not None:
            query["status"] = status.value
        return await self._find_many(Transaction, query, sort=[("created_at", ASCENDING)])

    # Tip purchases
    async def upsert_tip_purchase(self, purchase: TipPurchase) -> TipPurchase:
        if purchase.id is None:
            purchase.id = TipPurchase.make_id(purchase.user_id, purchase.tip_id)
        data = self._prepare_update(purchase)
        await self._db[TipPurchase.collection_name].replace_one(
            {"_id": data["_id"]}, data, upsert=True
        )
        return purchase

    async def get_tip_purchase(self, purchase_id: str) -> Optional[TipPurchase]:
        doc = await self._db[TipPurchase.collection_name].find_one({"_id": purchase_id})
        return self._decode(TipPurchase, doc)

    async def delete_tip_purchase(self, purchase_id: str) -> None:
        await self._db[TipPurchase.collection_name].delete_one({"_id": purchase_id})

    async def get_user_tip_purchases(self, user_id: str) -> Iterable[TipPurchase]:
        return await self._find_many(
            TipPurchase, {"user_id": user_id}, sort=[("purchased_at", DESCENDING)]
        )

    # Tips
    async def add_tip(self, tip: Tip) -> Tip:
        data = self._prepare_insert(tip)
        await self._db[Tip.collection_name].insert_one(data)
        return tip

    async def get_tip(self, tip_id: str) -> Optional[Tip]:
        doc = await self._db[Tip.collection_name].find_one({"_id": tip_id})
        return self._decode(Tip, doc)

    async def get_tips_by_match_date(self, match_date: str) -> Iterable[Tip]:
        return await self._find_many(
            Tip, {"match_date": match_date}, sort=[("match_time", ASCENDING)]
        )

    # Audit ledger
    async def add_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        data = self._prepare_insert(entry)
        await self._db[LedgerEntry.collection_name].insert_one(data)
        return entry
