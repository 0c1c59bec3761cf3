"""
Loyalty Domain Layer
=====================

Contains:
- Entities: PriorityLoyaltyRule
- Policies: PriorityRulePolicy (ordering invariant, spend resolution)
"""

from ticketflow.loyalty.domain.entities import PriorityLoyaltyRule
from ticketflow.loyalty.domain.policies import PriorityRulePolicy

__all__ = ["PriorityLoyaltyRule", "PriorityRulePolicy"]
