"""
SLA Domain Entities
====================

Pure Python domain entities for the SLA matrix and SLA reporting.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ticketflow.config import TicketSeverity
from ticketflow.core import ValidationException
from ticketflow.sla.domain.value_objects import SLAPolicy

MAX_RULE_NAME_LENGTH = 120


@dataclass
class SLARule:
    """
    One cell of the severity x priority SLA matrix.

    At most one active rule exists per (severity, priority_level) pair.
    """

    id: Optional[int]
    name: str
    severity: TicketSeverity
    priority_level: int
    first_response_minutes: int
    resolution_minutes: int
    is_active: bool = True
    created_at: Optional[datetime] = None

    def validate(self) -> None:
        """Reject malformed matrix cells before they reach the store."""
        name = (self.name or "").strip()
        if not name:
            raise ValidationException("SLA rule name must not be empty")
        if len(name) > MAX_RULE_NAME_LENGTH:
            raise ValidationException(
                f"SLA rule name must be at most {MAX_RULE_NAME_LENGTH} characters"
            )
        if self.priority_level < 0:
            raise ValidationException("priority_level must be >= 0")
        if self.first_response_minutes <= 0:
            raise ValidationException("first_response_minutes must be > 0")
        if self.resolution_minutes <= 0:
            raise ValidationException("resolution_minutes must be > 0")
        if self.resolution_minutes < self.first_response_minutes:
            raise ValidationException(
                "resolution_minutes must be >= first_response_minutes"
            )
        self.name = name

    @property
    def policy(self) -> SLAPolicy:
        return SLAPolicy.from_minutes(self.first_response_minutes, self.resolution_minutes)


@dataclass
class SLASummary:
    """Counts produced by an SLA sweep over open tickets."""

    evaluated_at: datetime
    total: int = 0
    ok: int = 0
    warning: int = 0
    overdue: int = 0
    first_response_overdue: int = 0

    def to_dict(self) -> dict:
        return {
            "evaluated_at": self.evaluated_at.isoformat(),
            "total": self.total,
            "ok": self.ok,
            "warning": self.warning,
            "overdue": self.overdue,
            "first_response_overdue": self.first_response_overdue,
        }
