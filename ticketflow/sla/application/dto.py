"""
SLA Application DTOs
=====================

Data Transfer Objects for SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ticketflow.config import TicketSeverity


# ========== Request DTOs ==========

class SLARuleWriteRequest(BaseModel):
    """Body of SLA rule create/update requests."""
    name: str = Field(..., min_length=1, max_length=120, description="Display name")
    severity: TicketSeverity = Field(..., description="Ticket severity this cell applies to")
    priority_level: int = Field(..., ge=0, description="Customer priority level")
    first_response_minutes: int = Field(..., gt=0, description="First-response SLA in minutes")
    resolution_minutes: int = Field(..., gt=0, description="Resolution SLA in minutes")
    is_active: bool = Field(default=True)


# ========== Response DTOs ==========

class SLARuleResponse(BaseModel):
    """One SLA matrix cell."""
    model_config = ConfigDict(from_attributes=True)

    sla_rule_id: int
    name: str
    severity: TicketSeverity
    priority_level: int
    first_response_minutes: int
    resolution_minutes: int
    is_active: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, rule) -> "SLARuleResponse":
        return cls(
            sla_rule_id=rule.id,
            name=rule.name,
            severity=rule.severity,
            priority_level=rule.priority_level,
            first_response_minutes=rule.first_response_minutes,
            resolution_minutes=rule.resolution_minutes,
            is_active=rule.is_active,
            created_at=rule.created_at,
        )


class SLARuleToggleResponse(BaseModel):
    """Result of flipping a rule's active flag."""
    sla_rule_id: int
    is_active: bool


class SLASummaryResponse(BaseModel):
    """SLA counts over open (New/InProgress) tickets."""
    evaluated_at: datetime
    total: int
    ok: int
    warning: int
    overdue: int
    first_response_overdue: int
