"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for the SLA module:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer
- External: config file watcher and sweep scheduler
"""

from ticketflow.sla.infrastructure.models import SLARuleModel
from ticketflow.sla.infrastructure.repositories import SQLAlchemySLARuleRepository
from ticketflow.sla.infrastructure.external import SLAConfigManager, SLAScheduler

__all__ = [
    "SLARuleModel",
    "SQLAlchemySLARuleRepository",
    "SLAConfigManager",
    "SLAScheduler",
]
