"""
Tests for the loyalty rule ordering invariant and spend resolution.
"""

from decimal import Decimal

import pytest

from ticketflow.core import PriorityOrderingViolationException, ValidationException
from ticketflow.loyalty.domain import PriorityLoyaltyRule, PriorityRulePolicy


def rule(rule_id, spend, level, active=True):
    return PriorityLoyaltyRule(
        id=rule_id, min_total_spend=Decimal(spend), priority_level=level, is_active=active
    )


@pytest.fixture
def active_rules():
    return [rule(1, "500000", 1), rule(2, "2000000", 2)]


def test_equal_spend_on_higher_level_conflicts():
    existing = [rule(1, "500000", 1)]
    candidate = rule(2, "500000", 2)

    with pytest.raises(PriorityOrderingViolationException) as exc:
        PriorityRulePolicy.ensure_ordering(candidate, existing)

    assert exc.value.conflicts[0]["rule_id"] == 1


def test_lower_level_asking_more_conflicts(active_rules):
    candidate = rule(3, "2500000", 1)

    conflicts = PriorityRulePolicy.find_conflicts(candidate, active_rules)

    assert [r.id for r in conflicts] == [2]


def test_same_level_is_not_a_conflict(active_rules):
    candidate = rule(3, "100000", 1)

    assert PriorityRulePolicy.find_conflicts(candidate, active_rules) == []


def test_rule_does_not_conflict_with_itself():
    existing = rule(1, "500000", 1)

    assert PriorityRulePolicy.find_conflicts(existing, [existing]) == []


def test_inactive_rules_are_ignored():
    candidate = rule(2, "500000", 2)

    PriorityRulePolicy.ensure_ordering(candidate, [rule(1, "500000", 1, active=False)])


@pytest.mark.parametrize("spend,expected", [
    ("0", 0),
    ("499999.99", 0),
    ("500000", 1),
    ("1999999", 1),
    ("2000000", 2),
    ("99000000", 2),
])
def test_resolve_level(active_rules, spend, expected):
    assert PriorityRulePolicy.resolve_level(Decimal(spend), active_rules) == expected


def test_resolve_level_is_monotonic(active_rules):
    spends = [Decimal(s) for s in range(0, 3_000_000, 125_000)]
    levels = [PriorityRulePolicy.resolve_level(s, active_rules) for s in spends]

    assert levels == sorted(levels)


def test_resolve_level_without_rules_is_standard():
    assert PriorityRulePolicy.resolve_level(Decimal("1000000"), []) == 0


@pytest.mark.parametrize("loyalty,plan,expected", [(0, 0, 0), (1, 0, 1), (0, 2, 2), (2, 1, 2)])
def test_effective_level_takes_the_higher(loyalty, plan, expected):
    assert PriorityRulePolicy.effective_level(loyalty, plan) == expected


@pytest.mark.parametrize("level,spend", [(0, "10"), (3, "10"), (1, "-1")])
def test_rule_validation(level, spend):
    with pytest.raises(ValidationException):
        rule(None, spend, level).validate()
