"""
Loyalty Application DTOs
=========================

Pydantic models for the priority rule API.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


# ========== Request DTOs ==========

class PriorityRuleWriteRequest(BaseModel):
    """Body of priority rule create/update requests."""
    min_total_spend: Decimal = Field(..., description="Cumulative spend threshold")
    priority_level: int = Field(..., description="1 = Priority, 2 = VIP")
    is_active: bool = Field(default=True)


# ========== Response DTOs ==========

class PriorityRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rule_id: int
    min_total_spend: Decimal
    priority_level: int
    is_active: bool

    @classmethod
    def from_domain(cls, rule) -> "PriorityRuleResponse":
        return cls(
            rule_id=rule.id,
            min_total_spend=rule.min_total_spend,
            priority_level=rule.priority_level,
            is_active=rule.is_active,
        )


class PriorityRuleToggleResponse(BaseModel):
    rule_id: int
    is_active: bool


class PriorityResolveResponse(BaseModel):
    """Priority level a customer would get for a ticket created now."""
    total_spend: Decimal
    loyalty_level: int
    plan_level: int
    effective_level: int
