from __future__ import annotations

from typing import List, Optional

from ..cache.base import AsyncCacheBackend
from ..db.base import BaseDBManager
from ..exceptions import NotFoundError
from ..models.plan import Plan


class PlanCatalog:
    """
    Read-only access to purchasable plans, with optional caching.

    Plans are edited by the admin tooling; `add_plan` exists for seeding and
    drops the cached entries it could have made stale.
    """

    _CACHE_PREFIX = "plans:"

    def __init__(
        self,
        db: BaseDBManager,
        cache: Optional[AsyncCacheBackend] = None,
        ttl_seconds: int = 300,
    ) -> None:
        self._db = db
        self._cache = cache
        self._ttl_seconds = ttl_seconds

    async def find_plan(self, plan_id: str) -> Optional[Plan]:
        key = self._plan_cache_key(plan_id)
        if self._cache:
            cached = await self._cache.get(key)
            if isinstance(cached, dict):
                return Plan.model_validate(cached)

        plan = await self._db.get_plan(plan_id)
        if plan is not None and self._cache:
            await self._cache.set(key, plan.model_dump(), ttl_seconds=self._ttl_seconds)
        return plan

    async def get_plan(self, plan_id: str) -> Plan:
        plan = await self.find_plan(plan_id)
        if plan is None:
            raise NotFoundError("Plan", plan_id)
        return plan

    async def list_plans(self) -> List[Plan]:
        plans = list(await self._db.get_all_plans())
        plans.sort(key=lambda p: p.price)
        return plans

    async def add_plan(self, plan: Plan) -> Plan:
        plan = await self._db.add_plan(plan)
        if self._cache:
            await self._cache.delete_prefix(self._CACHE_PREFIX)
        return plan

    @classmethod
    def _plan_cache_key(cls, plan_id: str) -> str:
        return f"{cls._CACHE_PREFIX}{plan_id}"
