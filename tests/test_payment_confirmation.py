from __future__ import annotations

import asyncio

import pytest

from conftest import confirmation, pack_plan
from tip_entitlements.exceptions import MalformedEventError, NotFoundError
from tip_entitlements.models.ledger import LedgerEventType
from tip_entitlements.models.plan import Plan, PlanType
from tip_entitlements.models.transaction import PaymentStatus, Transaction


async def _seed_charge(services, plan=None, email="a@b.com"):
    await services.plans.add_plan(plan or pack_plan())
    await services.users.create_user(email)
    return await services.charges.create_charge((plan or pack_plan()).id, email)


@pytest.mark.asyncio
async def test_confirmation_credits_package_once_for_duplicate_delivery(services):
    charge = await _seed_charge(services)

    first = await services.confirmations.handle_event(confirmation(charge.external_key))
    second = await services.confirmations.handle_event(confirmation(charge.external_key))

    assert first.processed and first.updated_transactions == 1
    assert first.results[0].user_updated is True
    assert second.results[0].user_updated is False
    assert second.results[0].already_credited is True

    user = await services.users.get_user_by_email("a@b.com")
    assert len(user.packages) == 1
    package = user.packages[0]
    assert package.id == "pack5"
    assert package.tips_included == 5
    assert package.tips_remaining == 5
    assert package.transaction_id == charge.transaction_id


@pytest.mark.asyncio
async def test_concurrent_duplicate_deliveries_do_not_double_credit(services):
    charge = await _seed_charge(services)
    event = confirmation(charge.external_key)

    results = await asyncio.gather(
        services.confirmations.handle_event(event),
        services.confirmations.handle_event(event),
        services.confirmations.handle_event(event),
    )

    credited = [r.results[0].user_updated for r in results]
    assert credited.count(True) == 1
    user = await services.users.get_user_by_email("a@b.com")
    assert len(user.packages) == 1
    assert user.packages[0].tips_remaining == 5


@pytest.mark.asyncio
async def test_confirmation_marks_transaction_confirmed_and_keeps_raw_event(services, db):
    charge = await _seed_charge(services)

    await services.confirmations.handle_event(
        confirmation(charge.external_key, event="PAYMENT_CONFIRMED")
    )

    tx = await db.get_transaction(charge.transaction_id)
    assert tx.status == PaymentStatus.CONFIRMED
    assert tx.gateway_status == "PAYMENT_CONFIRMED"
    assert tx.gateway_payment_id == "pay_123"
    assert tx.gateway_payload["pixQrCodeId"] == charge.external_key
    assert tx.payment_confirmed_at is not None
    assert any(e.event_type == LedgerEventType.PACKAGE_CREDITED for e in db.ledger)


@pytest.mark.asyncio
async def test_unrecognized_event_is_acknowledged_without_changes(services, db):
    charge = await _seed_charge(services)

    result = await services.confirmations.handle_event(
        confirmation(charge.external_key, event="PAYMENT_OVERDUE")
    )

    assert result.success is True
    assert result.processed is False
    tx = await db.get_transaction(charge.transaction_id)
    assert tx.status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_missing_charge_key_is_rejected(services):
    with pytest.raises(MalformedEventError):
        await services.confirmations.handle_event(confirmation(None))


@pytest.mark.asyncio
async def test_unknown_charge_key_is_not_found(services):
    with pytest.raises(NotFoundError):
        await services.confirmations.handle_event(confirmation("does-not-exist"))


@pytest.mark.asyncio
async def test_every_transaction_sharing_the_key_is_confirmed(services, db):
    charge = await _seed_charge(services)
    duplicate = Transaction(
        user_id="a@b.com",
        plan_id="pack5",
        plan_name="Pacote 5",
        plan_price=3990,
        plan_type=PlanType.PACKAGE,
        pix_key_id=charge.external_key,
    )
    await db.add_transaction(duplicate)

    result = await services.confirmations.handle_event(confirmation(charge.external_key))

    assert result.updated_transactions == 2
    for tx in await db.find_transactions_by_pix_key_id(charge.external_key):
        assert tx.status == PaymentStatus.CONFIRMED
    user = await services.users.get_user_by_email("a@b.com")
    # Each transaction is its own payment record, so each credits once.
    assert len(user.packages) == 2


@pytest.mark.asyncio
async def test_subscription_payment_is_confirmed_without_entitlement(services, db):
    plan = Plan(id="monthly", name="Mensal", type=PlanType.SUBSCRIPTION, price=9990, duration=30)
    charge = await _seed_charge(services, plan=plan)

    result = await services.confirmations.handle_event(confirmation(charge.external_key))

    assert result.results[0].user_updated is False
    assert (await db.get_transaction(charge.transaction_id)).status == PaymentStatus.CONFIRMED
    user = await services.users.get_user_by_email("a@b.com")
    assert user.packages == []


@pytest.mark.asyncio
async def test_missing_user_still_confirms_transaction(services, db):
    await services.plans.add_plan(pack_plan())
    charge = await services.charges.create_charge("pack5", "ghost@b.com")

    result = await services.confirmations.handle_event(confirmation(charge.external_key))

    assert result.results[0].user_updated is False
    assert (await db.get_transaction(charge.transaction_id)).status == PaymentStatus.CONFIRMED


@pytest.mark.asyncio
async def test_missing_plan_still_confirms_transaction(services, db):
    await services.users.create_user("a@b.com")
    tx = await db.add_transaction(
        Transaction(
            user_id="a@b.com",
            plan_id="retired",
            plan_name="Retired",
            plan_price=100,
            plan_type=PlanType.PACKAGE,
            pix_key_id="E-old",
        )
    )

    result = await services.confirmations.handle_event(confirmation("E-old"))

    assert result.results[0].user_updated is False
    assert (await db.get_transaction(tx.id)).status == PaymentStatus.CONFIRMED


@pytest.mark.asyncio
async def test_failure_on_one_transaction_does_not_block_the_others(services, db, monkeypatch):
    charge = await _seed_charge(services)
    other = await db.add_transaction(
        Transaction(
            user_id="a@b.com",
            plan_id="pack5",
            plan_name="Pacote 5",
            plan_price=3990,
            plan_type=PlanType.PACKAGE,
            pix_key_id=charge.external_key,
        )
    )

    original = db.replace_user

    async def always_conflict_first_tx(user, expected_version):
        if any(p.transaction_id == charge.transaction_id for p in user.packages):
            return False
        return await original(user, expected_version)

    monkeypatch.setattr(db, "replace_user", always_conflict_first_tx)

    result = await services.confirmations.handle_event(confirmation(charge.external_key))

    by_id = {r.transaction_id: r for r in result.results}
    assert by_id[charge.transaction_id].error is not None
    assert by_id[other.id].user_updated is True
    user = await services.users.get_user_by_email("a@b.com")
    assert [p.transaction_id for p in user.packages] == [other.id]


@pytest.mark.asyncio
async def test_store_error_on_one_transaction_does_not_block_the_others(services, db, monkeypatch):
    charge = await _seed_charge(services)
    other = await db.add_transaction(
        Transaction(
            user_id="a@b.com",
            plan_id="pack5",
            plan_name="Pacote 5",
            plan_price=3990,
            plan_type=PlanType.PACKAGE,
            pix_key_id=charge.external_key,
        )
    )

    original = db.update_transaction

    async def fail_first_tx(tx):
        if tx.id == charge.transaction_id:
            raise RuntimeError("store unavailable")
        return await original(tx)

    monkeypatch.setattr(db, "update_transaction", fail_first_tx)

    result = await services.confirmations.handle_event(confirmation(charge.external_key))

    by_id = {r.transaction_id: r for r in result.results}
    assert result.processed is True
    assert by_id[charge.transaction_id].error == "store unavailable"
    assert by_id[charge.transaction_id].status == PaymentStatus.PENDING.value
    assert by_id[other.id].user_updated is True
    assert (await db.get_transaction(other.id)).status == PaymentStatus.CONFIRMED
    assert (await db.get_transaction(charge.transaction_id)).status == PaymentStatus.PENDING
    assert any(
        e.event_type == LedgerEventType.ERROR and e.details.get("code") == "INTERNAL_ERROR"
        for e in db.ledger
    )
