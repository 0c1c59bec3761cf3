"""
Loyalty Priority Policies
==========================

Stateless evaluation over the set of active loyalty rules.
"""

from decimal import Decimal
from typing import Iterable, List

from ticketflow.config import PriorityLevel
from ticketflow.core import PriorityOrderingViolationException
from ticketflow.loyalty.domain.entities import PriorityLoyaltyRule


class PriorityRulePolicy:
    """
    Ordering invariant and spend resolution.

    Among active rules a higher level always requires strictly more spend
    than every lower level, so resolve_level is monotonic in spend.
    """

    @staticmethod
    def find_conflicts(
        candidate: PriorityLoyaltyRule,
        active_rules: Iterable[PriorityLoyaltyRule]
    ) -> List[PriorityLoyaltyRule]:
        return [rule for rule in active_rules if rule.is_active and candidate.conflicts_with(rule)]

    @staticmethod
    def ensure_ordering(
        candidate: PriorityLoyaltyRule,
        active_rules: Iterable[PriorityLoyaltyRule]
    ) -> None:
        """Raise if activating candidate would break the ordering invariant."""
        conflicts = PriorityRulePolicy.find_conflicts(candidate, active_rules)
        if conflicts:
            raise PriorityOrderingViolationException(
                candidate.priority_level,
                candidate.min_total_spend,
                [
                    {
                        "rule_id": rule.id,
                        "priority_level": rule.priority_level,
                        "min_total_spend": str(rule.min_total_spend),
                    }
                    for rule in conflicts
                ]
            )

    @staticmethod
    def resolve_level(
        total_spend: Decimal,
        active_rules: Iterable[PriorityLoyaltyRule]
    ) -> int:
        """Highest level whose threshold total_spend reaches, else Standard."""
        level = PriorityLevel.STANDARD
        for rule in active_rules:
            if rule.is_active and rule.min_total_spend <= total_spend:
                level = max(level, rule.priority_level)
        return level

    @staticmethod
    def effective_level(loyalty_level: int, plan_level: int) -> int:
        """A support plan can raise priority above what spend earns, never lower it."""
        return max(loyalty_level, plan_level)
