"""
SLA Domain Layer
================

Domain layer for the SLA module.

Contains:
- Entities: SLA matrix cells (SLARule) and sweep reports (SLASummary)
- Value Objects: SLAPolicy, SLADeadlines, SLAConfig
- Domain Services: SLAClock (stateless status derivation)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from ticketflow.sla.domain.entities import SLARule, SLASummary
from ticketflow.sla.domain.value_objects import (
    SLAClock,
    SLAConfig,
    SLADeadlines,
    SLAPolicy,
)

__all__ = [
    # Entities
    "SLARule",
    "SLASummary",
    # Value Objects & Services
    "SLAClock",
    "SLAConfig",
    "SLADeadlines",
    "SLAPolicy",
]
