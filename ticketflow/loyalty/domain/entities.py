"""
Loyalty Domain Entities
========================

Spend thresholds that lift a customer to a support priority level.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ticketflow.config import CONFIGURABLE_PRIORITY_LEVELS
from ticketflow.core import ValidationException


@dataclass
class PriorityLoyaltyRule:
    """
    A customer whose cumulative spend reaches min_total_spend gets
    priority_level (1 Priority, 2 VIP). Level 0 is the implicit default
    and never has a rule.
    """

    id: Optional[int]
    min_total_spend: Decimal
    priority_level: int
    is_active: bool = True

    def validate(self) -> None:
        if self.priority_level not in CONFIGURABLE_PRIORITY_LEVELS:
            raise ValidationException(
                "priority_level must be one of "
                + ", ".join(str(level) for level in CONFIGURABLE_PRIORITY_LEVELS),
                {"priority_level": self.priority_level}
            )
        if self.min_total_spend < 0:
            raise ValidationException(
                "min_total_spend must be >= 0",
                {"min_total_spend": str(self.min_total_spend)}
            )

    def conflicts_with(self, other: "PriorityLoyaltyRule") -> bool:
        """
        True when both rules being active would break strict ordering:
        a lower level asking as much or more, or a higher level asking
        as much or less.
        """
        if other.id is not None and other.id == self.id:
            return False
        if other.priority_level < self.priority_level:
            return other.min_total_spend >= self.min_total_spend
        if other.priority_level > self.priority_level:
            return other.min_total_spend <= self.min_total_spend
        return False
