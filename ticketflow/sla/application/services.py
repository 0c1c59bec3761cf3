"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from ticketflow.config import SLAState, TicketSeverity
from ticketflow.core import (
    NoSLARuleConfiguredException,
    ResourceNotFoundException,
    ValidationException,
)
from ticketflow.shared.infrastructure.logging import get_logger, log_latency
from ticketflow.sla.domain import SLAClock, SLAConfig, SLAPolicy, SLARule, SLASummary

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ISLARuleRepository(ABC):
    """Interface for SLA matrix data access."""

    @abstractmethod
    async def get_by_id(self, rule_id: int, for_update: bool = False) -> Optional[SLARule]:
        """Get rule by ID."""

    @abstractmethod
    async def find_active(self, severity: TicketSeverity, priority_level: int) -> Optional[SLARule]:
        """Get the active rule for a matrix cell (lowest id wins)."""

    @abstractmethod
    async def exists_pair(
        self,
        severity: TicketSeverity,
        priority_level: int,
        exclude_id: Optional[int] = None
    ) -> bool:
        """Check whether another rule already covers the matrix cell."""

    @abstractmethod
    async def create(self, rule: SLARule) -> SLARule:
        """Persist a new rule."""

    @abstractmethod
    async def update(self, rule: SLARule) -> SLARule:
        """Persist changes to an existing rule."""

    @abstractmethod
    async def delete(self, rule_id: int) -> None:
        """Delete a rule."""

    @abstractmethod
    async def list(
        self,
        filters: dict,
        limit: int = 20,
        offset: int = 0
    ) -> tuple[List[SLARule], int]:
        """List rules with filters; returns (page, total)."""


class ISLAConfigProvider(ABC):
    """Interface for SLA configuration access."""

    @abstractmethod
    def get_config(self) -> SLAConfig:
        """Get current SLA configuration."""


class IOpenTicketSource(ABC):
    """Read access to tickets that still run an SLA clock."""

    @abstractmethod
    async def list_active(self) -> Sequence[Any]:
        """Tickets in New or InProgress status."""


class StaticConfigProvider(ISLAConfigProvider):
    """Config provider around a fixed SLAConfig instance."""

    def __init__(self, config: Optional[SLAConfig] = None):
        self._config = config or SLAConfig()

    def get_config(self) -> SLAConfig:
        return self._config


# ========== Application Services ==========

class SLAPolicyResolver:
    """
    Read contract over the SLA matrix.

    resolve() never invents numbers: a gap raises NoSLARuleConfiguredException
    and the caller decides on the fallback.
    """

    def __init__(self, rule_repository: ISLARuleRepository):
        self._rule_repo = rule_repository

    async def resolve(self, severity: TicketSeverity, priority_level: int) -> SLAPolicy:
        rule = await self._rule_repo.find_active(severity, priority_level)
        if rule is None:
            raise NoSLARuleConfiguredException(severity, priority_level)
        return rule.policy


class SLARuleService:
    """Admin operations on the SLA matrix."""

    def __init__(self, rule_repository: ISLARuleRepository):
        self._rule_repo = rule_repository

    async def list_rules(
        self,
        severity: Optional[TicketSeverity] = None,
        priority_level: Optional[int] = None,
        active: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20
    ) -> tuple[List[SLARule], int]:
        filters = {}
        if severity is not None:
            filters["severity"] = severity
        if priority_level is not None:
            filters["priority_level"] = priority_level
        if active is not None:
            filters["is_active"] = active

        return await self._rule_repo.list(
            filters, limit=page_size, offset=(page - 1) * page_size
        )

    async def get_rule(self, rule_id: int) -> SLARule:
        rule = await self._rule_repo.get_by_id(rule_id)
        if rule is None:
            raise ResourceNotFoundException("SLA rule", rule_id)
        return rule

    async def create_rule(self, rule: SLARule) -> SLARule:
        rule.validate()
        if await self._rule_repo.exists_pair(rule.severity, rule.priority_level):
            raise ValidationException(
                "An SLA rule with the same severity and priority level already exists",
                {"severity": rule.severity.value, "priority_level": rule.priority_level}
            )

        created = await self._rule_repo.create(rule)
        logger.info(
            "SLA rule created",
            extra={
                "sla_rule_id": created.id,
                "severity": created.severity.value,
                "priority_level": created.priority_level
            }
        )
        return created

    async def update_rule(self, rule_id: int, changes: SLARule) -> SLARule:
        rule = await self._rule_repo.get_by_id(rule_id, for_update=True)
        if rule is None:
            raise ResourceNotFoundException("SLA rule", rule_id)

        changes.id = rule_id
        changes.created_at = rule.created_at
        changes.validate()
        if await self._rule_repo.exists_pair(
            changes.severity, changes.priority_level, exclude_id=rule_id
        ):
            raise ValidationException(
                "Another SLA rule with the same severity and priority level already exists",
                {"severity": changes.severity.value, "priority_level": changes.priority_level}
            )

        updated = await self._rule_repo.update(changes)
        logger.info("SLA rule updated", extra={"sla_rule_id": rule_id})
        return updated

    async def toggle_rule(self, rule_id: int) -> SLARule:
        rule = await self._rule_repo.get_by_id(rule_id, for_update=True)
        if rule is None:
            raise ResourceNotFoundException("SLA rule", rule_id)

        rule.is_active = not rule.is_active
        updated = await self._rule_repo.update(rule)
        logger.info(
            "SLA rule toggled",
            extra={"sla_rule_id": rule_id, "is_active": updated.is_active}
        )
        return updated

    async def remove_rule(self, rule_id: int) -> None:
        rule = await self._rule_repo.get_by_id(rule_id, for_update=True)
        if rule is None:
            raise ResourceNotFoundException("SLA rule", rule_id)
        await self._rule_repo.delete(rule_id)
        logger.info("SLA rule removed", extra={"sla_rule_id": rule_id})


class SLASweepService:
    """
    Periodic SLA evaluation over open tickets.

    Read-only: statuses are derived, counted and logged. Nothing is written.
    """

    def __init__(
        self,
        ticket_source: IOpenTicketSource,
        config_provider: ISLAConfigProvider
    ):
        self._ticket_source = ticket_source
        self._config_provider = config_provider

    async def evaluate_open_tickets(self, now: Optional[datetime] = None) -> SLASummary:
        current_time = now or datetime.now(timezone.utc)
        ratio = self._config_provider.get_config().warning_window_ratio
        summary = SLASummary(evaluated_at=current_time)

        with log_latency(logger, "sla_sweep"):
            tickets = await self._ticket_source.list_active()
            for ticket in tickets:
                summary.total += 1
                state = SLAClock.sla_status(ticket, current_time, ratio)
                if state == SLAState.OVERDUE:
                    summary.overdue += 1
                elif state == SLAState.WARNING:
                    summary.warning += 1
                else:
                    summary.ok += 1

                if SLAClock.first_response_status(ticket, current_time, ratio) == SLAState.OVERDUE:
                    summary.first_response_overdue += 1

        log = logger.warning if summary.overdue else logger.info
        log("SLA sweep evaluated open tickets", extra=summary.to_dict())
        return summary
