"""
Tests for the priority rule store: ordering invariant, per-level exclusivity
and resolution against persisted rules.
"""

from decimal import Decimal

import pytest

from ticketflow.core import (
    PriorityOrderingViolationException,
    ResourceNotFoundException,
    ValidationException,
)
from ticketflow.loyalty.application import PriorityRuleService
from ticketflow.loyalty.domain import PriorityLoyaltyRule
from ticketflow.loyalty.infrastructure import SQLAlchemyLoyaltyRuleRepository


def rule(spend, level, active=True):
    return PriorityLoyaltyRule(
        id=None, min_total_spend=Decimal(spend), priority_level=level, is_active=active
    )


async def table(priority_service):
    rules, _ = await priority_service.list_rules(page_size=100)
    return sorted(
        (r.id, r.priority_level, r.min_total_spend, r.is_active) for r in rules
    )


async def test_create_and_resolve(priority_service):
    await priority_service.create_rule(rule("500000", 1))
    await priority_service.create_rule(rule("2000000", 2))

    assert await priority_service.resolve_priority_level(Decimal("0")) == 0
    assert await priority_service.resolve_priority_level(Decimal("750000")) == 1
    assert await priority_service.resolve_priority_level(Decimal("2000000")) == 2


async def test_activating_conflicting_rule_rejected_and_table_unchanged(priority_service):
    await priority_service.create_rule(rule("500000", 1))
    vip = await priority_service.create_rule(rule("500000", 2, active=False))
    before = await table(priority_service)

    with pytest.raises(PriorityOrderingViolationException):
        await priority_service.toggle_rule(vip.id)

    assert await table(priority_service) == before
    assert await priority_service.resolve_priority_level(Decimal("600000")) == 1


async def test_creating_conflicting_active_rule_rejected(priority_service):
    await priority_service.create_rule(rule("2000000", 2))

    with pytest.raises(PriorityOrderingViolationException):
        await priority_service.create_rule(rule("2500000", 1))


async def test_activating_rule_deactivates_same_level(priority_service):
    old = await priority_service.create_rule(rule("100000", 1))
    new = await priority_service.create_rule(rule("200000", 1))

    assert (await priority_service.get_rule(old.id)).is_active is False
    assert (await priority_service.get_rule(new.id)).is_active is True
    assert await priority_service.resolve_priority_level(Decimal("150000")) == 0


async def test_duplicate_pair_rejected_even_when_inactive(priority_service):
    await priority_service.create_rule(rule("500000", 1, active=False))

    with pytest.raises(ValidationException):
        await priority_service.create_rule(rule("500000", 1))


@pytest.mark.parametrize("spend,level", [("10", 0), ("10", 3), ("-5", 1)])
async def test_invalid_rule_rejected(priority_service, spend, level):
    with pytest.raises(ValidationException):
        await priority_service.create_rule(rule(spend, level))


async def test_update_rule(priority_service):
    created = await priority_service.create_rule(rule("500000", 1))

    updated = await priority_service.update_rule(created.id, rule("400000", 1))

    assert updated.min_total_spend == Decimal("400000")
    assert await priority_service.resolve_priority_level(Decimal("450000")) == 1


async def test_update_cannot_break_ordering(priority_service):
    await priority_service.create_rule(rule("500000", 1))
    vip = await priority_service.create_rule(rule("2000000", 2))

    with pytest.raises(PriorityOrderingViolationException):
        await priority_service.update_rule(vip.id, rule("300000", 2))


async def test_remove_rule(priority_service):
    created = await priority_service.create_rule(rule("500000", 1))

    await priority_service.remove_rule(created.id)

    with pytest.raises(ResourceNotFoundException):
        await priority_service.get_rule(created.id)


@pytest.mark.parametrize("action", ["toggle_rule", "remove_rule", "get_rule"])
async def test_unknown_rule_not_found(priority_service, action):
    with pytest.raises(ResourceNotFoundException):
        await getattr(priority_service, action)(999)


async def test_negative_spend_rejected(priority_service):
    with pytest.raises(ValidationException):
        await priority_service.resolve_priority_level(Decimal("-1"))


async def test_plan_level_lifts_effective_level(priority_service):
    await priority_service.create_rule(rule("500000", 1))

    assert await priority_service.effective_priority_level(Decimal("600000"), 0) == 1
    assert await priority_service.effective_priority_level(Decimal("0"), 2) == 2


@pytest.mark.parametrize("plan_level", [-1, 3, 7])
async def test_plan_level_out_of_range_rejected(priority_service, plan_level):
    with pytest.raises(ValidationException):
        await priority_service.effective_priority_level(Decimal("0"), plan_level)


async def test_concurrent_create_cannot_break_ordering(session_maker):
    async def competing_create():
        async with session_maker() as other:
            await PriorityRuleService(SQLAlchemyLoyaltyRuleRepository(other)).create_rule(
                rule("500000", 1)
            )
            await other.commit()

    class RacingRepository(SQLAlchemyLoyaltyRuleRepository):
        """Lets the competitor commit after our snapshot was read."""

        async def lock_all(self):
            snapshot = await super().lock_all()
            await competing_create()
            return snapshot

    async with session_maker() as session:
        racing = PriorityRuleService(RacingRepository(session))
        with pytest.raises(PriorityOrderingViolationException) as exc_info:
            await racing.create_rule(rule("400000", 2))
        await session.rollback()

    assert exc_info.value.conflicts[0]["priority_level"] == 1

    async with session_maker() as session:
        active, _ = await PriorityRuleService(SQLAlchemyLoyaltyRuleRepository(session)).list_rules(
            active=True
        )

    assert [(r.priority_level, r.min_total_spend) for r in active] == [(1, Decimal("500000"))]
