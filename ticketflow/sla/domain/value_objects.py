"""
SLA Value Objects
==================

Immutable value objects for SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from ticketflow.config import SLAState


@dataclass(frozen=True)
class SLAPolicy:
    """Pair of SLA durations resolved for a severity/priority combination."""
    first_response: timedelta
    resolution: timedelta

    @classmethod
    def from_minutes(cls, first_response_minutes: int, resolution_minutes: int) -> "SLAPolicy":
        return cls(
            first_response=timedelta(minutes=first_response_minutes),
            resolution=timedelta(minutes=resolution_minutes),
        )

    def deadlines(self, created_at: datetime) -> "SLADeadlines":
        """Commit the policy to concrete due dates for a ticket created at created_at."""
        return SLADeadlines(
            first_response_due_at=created_at + self.first_response,
            resolution_due_at=created_at + self.resolution,
        )


@dataclass(frozen=True)
class SLADeadlines:
    """Due dates computed once, at ticket creation."""
    first_response_due_at: datetime
    resolution_due_at: datetime


class SLAClock:
    """
    Pure functions deriving SLA status from stored timestamps.

    Nothing here is persisted: status is recomputed on every read from
    the committed due dates and the wall clock.
    """

    @staticmethod
    def warning_window(
        created_at: datetime,
        deadline: datetime,
        warning_ratio: float
    ) -> timedelta:
        """Buffer before the deadline during which the SLA reads as Warning."""
        total = deadline - created_at
        if total <= timedelta(0):
            return timedelta(0)
        return total * warning_ratio

    @staticmethod
    def calculate_status(
        created_at: datetime,
        deadline: datetime,
        current_time: datetime,
        met_at: Optional[datetime] = None,
        warning_ratio: float = 0.2
    ) -> SLAState:
        """
        Derive the state of a single SLA clock.

        Args:
            created_at: When the ticket was created
            deadline: Committed due date
            current_time: Evaluation instant
            met_at: When the SLA event happened (first response / resolution)
            warning_ratio: Fraction of the SLA duration treated as warning window

        Returns:
            SLAState: OK once met (never retroactively Overdue), otherwise
            Overdue past the deadline, Warning inside the window, else OK
        """
        if met_at is not None:
            return SLAState.OK

        if current_time > deadline:
            return SLAState.OVERDUE

        window = SLAClock.warning_window(created_at, deadline, warning_ratio)
        if current_time > deadline - window:
            return SLAState.WARNING

        return SLAState.OK

    @staticmethod
    def sla_status(ticket: Any, now: datetime, warning_ratio: float = 0.2) -> SLAState:
        """Resolution-SLA view of a ticket, the status the admin console shows."""
        return SLAClock.calculate_status(
            ticket.created_at,
            ticket.resolution_due_at,
            now,
            ticket.resolved_at,
            warning_ratio
        )

    @staticmethod
    def first_response_status(ticket: Any, now: datetime, warning_ratio: float = 0.2) -> SLAState:
        """First-response view of a ticket, for dashboards that split the two SLAs."""
        return SLAClock.calculate_status(
            ticket.created_at,
            ticket.first_response_due_at,
            now,
            ticket.first_responded_at,
            warning_ratio
        )

    @staticmethod
    def remaining_seconds(deadline: datetime, current_time: datetime) -> float:
        """Seconds left until the deadline, clamped at zero."""
        return max(0.0, (deadline - current_time).total_seconds())


class SLAConfig(BaseModel):
    """
    SLA configuration loaded from YAML.

    The severity x priority matrix itself lives in the SLA rule store;
    this holds the knobs around it.
    """
    warning_window_ratio: float = Field(
        default=0.2,
        gt=0.0,
        lt=1.0,
        description="Fraction of the resolution SLA treated as the warning window"
    )
    default_first_response_minutes: int = Field(
        default=60,
        gt=0,
        description="First-response SLA used when the matrix has a gap"
    )
    default_resolution_minutes: int = Field(
        default=480,
        gt=0,
        description="Resolution SLA used when the matrix has a gap"
    )

    @model_validator(mode="after")
    def validate_default_pair(self) -> "SLAConfig":
        """Resolution can never be due before the first response."""
        if self.default_resolution_minutes < self.default_first_response_minutes:
            raise ValueError(
                "default_resolution_minutes must be >= default_first_response_minutes"
            )
        return self

    def default_policy(self) -> SLAPolicy:
        """Documented fallback pair for gaps in the matrix."""
        return SLAPolicy.from_minutes(
            self.default_first_response_minutes,
            self.default_resolution_minutes
        )
