from __future__ import annotations

from datetime import datetime

import pytest

from conftest import pack_plan
from tip_entitlements.cache.memory import InMemoryAsyncCache
from tip_entitlements.exceptions import ConcurrentUpdateError, NotFoundError, ValidationError
from tip_entitlements.models.api_models import CreateTipRequest
from tip_entitlements.models.plan import Plan, PlanType
from tip_entitlements.services.plan_catalog import PlanCatalog
from tip_entitlements.services.user_service import UserService


@pytest.mark.asyncio
async def test_create_user_rejects_duplicates_and_blank_email(services):
    user = await services.users.create_user("a@b.com", "Ana")
    assert user.id
    assert user.version == 0

    with pytest.raises(ValidationError):
        await services.users.create_user("a@b.com")
    with pytest.raises(ValidationError):
        await services.users.create_user("   ")


@pytest.mark.asyncio
async def test_update_bumps_version(services):
    await services.users.create_user("a@b.com")

    def rename(user):
        user.display_name = "Ana"
        return True

    user = await services.users.update_with_retry("a@b.com", rename)
    stored = await services.users.get_user_by_email("a@b.com")

    assert user.version == 1
    assert stored.version == 1
    assert stored.display_name == "Ana"


@pytest.mark.asyncio
async def test_unchanged_mutation_skips_the_write(services):
    await services.users.create_user("a@b.com")

    user = await services.users.update_with_retry("a@b.com", lambda u: False)

    assert user.version == 0


@pytest.mark.asyncio
async def test_persistent_conflicts_give_up(db, monkeypatch):
    users = UserService(db, max_write_retries=3)
    await users.create_user("a@b.com")
    attempts = []

    async def always_stale(user, expected_version):
        attempts.append(expected_version)
        return False

    monkeypatch.setattr(db, "replace_user", always_stale)

    with pytest.raises(ConcurrentUpdateError):
        await users.update_with_retry("a@b.com", lambda u: True)
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_update_for_unknown_user_is_not_found(services):
    with pytest.raises(NotFoundError):
        await services.users.update_with_retry("ghost@b.com", lambda u: True)


@pytest.mark.asyncio
async def test_plan_lookups_are_cached_until_a_plan_is_added(db):
    now = [0.0]
    cache = InMemoryAsyncCache(clock=lambda: now[0])
    catalog = PlanCatalog(db, cache=cache, ttl_seconds=60)
    await catalog.add_plan(pack_plan())

    first = await catalog.get_plan("pack5")
    stored = await db.get_plan("pack5")
    stored.name = "Renamed"
    await db.add_plan(stored)

    assert (await catalog.get_plan("pack5")).name == first.name

    now[0] = 61.0
    assert (await catalog.get_plan("pack5")).name == "Renamed"

    await catalog.add_plan(pack_plan("pack10", tips=10, price=6990))
    stored.name = "Renamed again"
    await db.add_plan(stored)
    assert (await catalog.get_plan("pack5")).name == "Renamed again"


@pytest.mark.asyncio
async def test_plans_are_listed_by_price(services):
    await services.plans.add_plan(pack_plan("pack10", tips=10, price=6990))
    await services.plans.add_plan(pack_plan())

    plans = await services.plans.list_plans()

    assert [p.id for p in plans] == ["pack5", "pack10"]
    with pytest.raises(NotFoundError):
        await services.plans.get_plan("missing")


def test_package_plan_needs_tip_count():
    with pytest.raises(ValueError):
        Plan(id="broken", name="Broken", type=PlanType.PACKAGE, price=100)
    assert pack_plan().price_in_reais == 39.9


@pytest.mark.asyncio
async def test_tips_are_filed_under_their_match_date(services):
    request = CreateTipRequest(
        league="Premier League",
        teams="Arsenal x Chelsea",
        match_time="2025-10-19T16:30:00",
        prediction="Home win",
        is_premium=True,
    )
    tip = await services.tips.create_tip(request, created_by="admin@b.com")

    assert tip.match_date == "2025-10-19"
    assert tip.created_by == "admin@b.com"
    assert [t.id for t in await services.tips.get_tips_by_date(datetime(2025, 10, 19, 9))] == [tip.id]
    assert await services.tips.get_tips_by_date("2025-10-18") == []


@pytest.mark.asyncio
async def test_tip_without_required_fields_is_rejected(services):
    with pytest.raises(ValidationError) as excinfo:
        await services.tips.create_tip(CreateTipRequest(league="Serie A"))

    assert excinfo.value.context["missing"] == ["teams", "match_time", "prediction"]


@pytest.mark.asyncio
async def test_invalid_date_is_rejected(services):
    with pytest.raises(ValidationError):
        await services.tips.get_tips_by_date("not-a-date")
