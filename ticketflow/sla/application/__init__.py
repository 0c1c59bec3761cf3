"""
SLA Application Layer
======================

Application layer for the SLA module.

Contains:
- Services: policy resolution, SLA matrix administration, SLA sweep
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from ticketflow.sla.application.dto import (
    SLARuleWriteRequest,
    SLARuleResponse,
    SLARuleToggleResponse,
    SLASummaryResponse,
)
from ticketflow.sla.application.services import (
    SLAPolicyResolver,
    SLARuleService,
    SLASweepService,
    StaticConfigProvider,
    ISLARuleRepository,
    ISLAConfigProvider,
    IOpenTicketSource,
)

__all__ = [
    # DTOs
    "SLARuleWriteRequest",
    "SLARuleResponse",
    "SLARuleToggleResponse",
    "SLASummaryResponse",
    # Services
    "SLAPolicyResolver",
    "SLARuleService",
    "SLASweepService",
    "StaticConfigProvider",
    # Repository Interfaces
    "ISLARuleRepository",
    "ISLAConfigProvider",
    "IOpenTicketSource",
]
