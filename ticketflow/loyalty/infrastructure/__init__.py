"""
Loyalty Infrastructure Layer
=============================

- Models: SQLAlchemy ORM models
- Repositories: Data access layer
"""

from ticketflow.loyalty.infrastructure.models import PriorityLoyaltyRuleModel
from ticketflow.loyalty.infrastructure.repositories import SQLAlchemyLoyaltyRuleRepository

__all__ = ["PriorityLoyaltyRuleModel", "SQLAlchemyLoyaltyRuleRepository"]
