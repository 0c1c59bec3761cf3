"""
Loyalty Application Layer
==========================

Contains:
- Services: PriorityRuleService (rule store, spend resolution)
- DTOs: Data transfer objects for API serialization
"""

from ticketflow.loyalty.application.dto import (
    PriorityResolveResponse,
    PriorityRuleResponse,
    PriorityRuleToggleResponse,
    PriorityRuleWriteRequest,
)
from ticketflow.loyalty.application.services import ILoyaltyRuleRepository, PriorityRuleService

__all__ = [
    # DTOs
    "PriorityRuleWriteRequest",
    "PriorityRuleResponse",
    "PriorityRuleToggleResponse",
    "PriorityResolveResponse",
    # Services
    "PriorityRuleService",
    # Repository Interfaces
    "ILoyaltyRuleRepository",
]
