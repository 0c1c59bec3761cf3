"""
Ticket Application Services
============================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Each command runs as one unit of work: load the ticket under a row lock,
run the state machine guard, apply the effect, persist. A guard failure
raises before anything is written; a lost optimistic-lock race surfaces
from the repository as ConcurrentModificationException.
"""

from abc import abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional
from uuid import UUID, uuid4

from ticketflow.config import (
    PriorityLevel,
    SLAState,
    TicketSeverity,
)
from ticketflow.core import (
    AlreadyAssignedException,
    ConcurrentModificationException,
    NoSLARuleConfiguredException,
    ResourceNotFoundException,
    ValidationException,
)
from ticketflow.loyalty.application import PriorityRuleService
from ticketflow.shared.infrastructure.logging import get_logger
from ticketflow.sla.application import ISLAConfigProvider, IOpenTicketSource, SLAPolicyResolver
from ticketflow.sla.domain import SLAClock, SLAPolicy
from ticketflow.tickets.application.dto import TicketQuery
from ticketflow.tickets.domain import (
    MAX_DESCRIPTION_LENGTH,
    MAX_SUBJECT_LENGTH,
    AssignmentManager,
    Reply,
    Ticket,
    TicketStateMachine,
)

logger = get_logger(__name__)

# Queue order: most urgent SLA first
SLA_SORT_RANK = {SLAState.OVERDUE: 0, SLAState.WARNING: 1, SLAState.OK: 2}


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(IOpenTicketSource):
    """Interface for ticket data access."""

    @abstractmethod
    async def next_ticket_number(self) -> int:
        """One past the highest ticket number issued so far."""

    @abstractmethod
    async def add(self, ticket: Ticket) -> Ticket:
        """Persist a new ticket."""

    @abstractmethod
    async def get(self, ticket_id: UUID, with_replies: bool = False) -> Optional[Ticket]:
        """Get ticket by ID without locking."""

    @abstractmethod
    async def get_for_update(self, ticket_id: UUID) -> Optional[Ticket]:
        """Get ticket by ID, row-locked for the rest of the transaction."""

    @abstractmethod
    async def save(self, ticket: Ticket) -> Ticket:
        """
        Persist workflow fields and any new replies.

        Raises ConcurrentModificationException when the row changed since
        it was loaded.
        """

    @abstractmethod
    async def queue_page(
        self,
        query: TicketQuery,
        now: datetime,
        warning_ratio: float
    ) -> tuple[List[Ticket], int]:
        """
        One page of the support queue in queue order, plus the total
        number of matching tickets. SLA status is evaluated at now.
        """


# ========== Application Services ==========

class TicketService:
    """
    Ticket workflow service.

    Coordinates the priority rule store and SLA resolver at creation and
    the state machine / assignment manager for every later command.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        priority_service: PriorityRuleService,
        sla_resolver: SLAPolicyResolver,
        config_provider: ISLAConfigProvider
    ):
        self._ticket_repo = ticket_repository
        self._priority_service = priority_service
        self._sla_resolver = sla_resolver
        self._config_provider = config_provider

    # ---------- Creation ----------

    async def create_ticket(
        self,
        customer_id: str,
        subject: str,
        description: Optional[str] = None,
        severity: TicketSeverity = TicketSeverity.MEDIUM,
        total_spend: Decimal = Decimal("0"),
        plan_priority_level: int = PriorityLevel.STANDARD,
        now: Optional[datetime] = None
    ) -> Ticket:
        """
        Open a ticket.

        Priority level and both SLA due dates are computed here, once, and
        never recomputed.
        """
        customer_id = (customer_id or "").strip()
        subject = (subject or "").strip()
        if not customer_id:
            raise ValidationException("customer_id is required")
        if not subject:
            raise ValidationException("Subject is required")
        if len(subject) > MAX_SUBJECT_LENGTH:
            raise ValidationException(f"Subject must be at most {MAX_SUBJECT_LENGTH} characters")
        if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationException(
                f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters"
            )
        if not PriorityLevel.STANDARD <= plan_priority_level <= PriorityLevel.VIP:
            raise ValidationException(
                f"plan_priority_level must be between {PriorityLevel.STANDARD} and {PriorityLevel.VIP}",
                {"plan_priority_level": plan_priority_level}
            )

        created_at = now or datetime.now(timezone.utc)
        priority_level = await self._priority_service.effective_priority_level(
            total_spend, plan_priority_level
        )
        policy = await self._resolve_policy(severity, priority_level)
        deadlines = policy.deadlines(created_at)

        ticket = Ticket(
            id=uuid4(),
            ticket_number=await self._ticket_repo.next_ticket_number(),
            customer_id=customer_id,
            subject=subject,
            description=description,
            severity=severity,
            priority_level=priority_level,
            first_response_due_at=deadlines.first_response_due_at,
            resolution_due_at=deadlines.resolution_due_at,
            created_at=created_at,
            updated_at=created_at,
        )
        ticket = await self._ticket_repo.add(ticket)

        logger.info(
            "Ticket created",
            extra={
                "ticket_id": str(ticket.id),
                "ticket_code": ticket.ticket_code,
                "severity": severity.value,
                "priority_level": priority_level,
                "resolution_due_at": ticket.resolution_due_at.isoformat()
            }
        )
        return ticket

    async def _resolve_policy(self, severity: TicketSeverity, priority_level: int) -> SLAPolicy:
        try:
            return await self._sla_resolver.resolve(severity, priority_level)
        except NoSLARuleConfiguredException as e:
            config = self._config_provider.get_config()
            logger.warning(
                "SLA matrix has no active rule, using default SLA pair (configuration defect)",
                extra={
                    **e.details,
                    "default_first_response_minutes": config.default_first_response_minutes,
                    "default_resolution_minutes": config.default_resolution_minutes
                }
            )
            return config.default_policy()

    # ---------- Queries ----------

    async def get_ticket(self, ticket_id: UUID) -> Ticket:
        ticket = await self._ticket_repo.get(ticket_id, with_replies=True)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    async def list_tickets(
        self,
        query: TicketQuery,
        now: Optional[datetime] = None
    ) -> tuple[List[tuple[Ticket, SLAState]], int]:
        """
        Support queue page.

        Filtering, ordering and paging run in the database against one
        evaluation instant; each returned row carries its SLA status.
        """
        current_time = now or datetime.now(timezone.utc)
        ratio = self._config_provider.get_config().warning_window_ratio

        tickets, total = await self._ticket_repo.queue_page(query, current_time, ratio)
        return [(t, SLAClock.sla_status(t, current_time, ratio)) for t in tickets], total

    def sla_status(self, ticket: Ticket, now: Optional[datetime] = None) -> SLAState:
        ratio = self._config_provider.get_config().warning_window_ratio
        return SLAClock.sla_status(ticket, now or datetime.now(timezone.utc), ratio)

    def first_response_status(self, ticket: Ticket, now: Optional[datetime] = None) -> SLAState:
        ratio = self._config_provider.get_config().warning_window_ratio
        return SLAClock.first_response_status(ticket, now or datetime.now(timezone.utc), ratio)

    # ---------- Commands ----------

    async def claim(self, ticket_id: UUID, staff_id: str, now: Optional[datetime] = None) -> Ticket:
        """Assign to staff_id. Of two concurrent claims exactly one succeeds."""
        try:
            return await self._apply(
                ticket_id, "assign",
                lambda t: AssignmentManager.claim(t, staff_id, now),
                staff_id=staff_id
            )
        except ConcurrentModificationException as e:
            raise AlreadyAssignedException(ticket_id) from e

    async def transfer(
        self,
        ticket_id: UUID,
        from_staff_id: str,
        to_staff_id: str,
        now: Optional[datetime] = None
    ) -> Ticket:
        return await self._apply(
            ticket_id, "transfer",
            lambda t: AssignmentManager.transfer(t, from_staff_id, to_staff_id, now),
            from_staff_id=from_staff_id, to_staff_id=to_staff_id
        )

    async def unassign(self, ticket_id: UUID, now: Optional[datetime] = None) -> Ticket:
        return await self._apply(
            ticket_id, "unassign", lambda t: AssignmentManager.unassign(t, now)
        )

    async def complete(self, ticket_id: UUID, now: Optional[datetime] = None) -> Ticket:
        return await self._apply(
            ticket_id, "complete", lambda t: TicketStateMachine.complete(t, now)
        )

    async def close(self, ticket_id: UUID, now: Optional[datetime] = None) -> Ticket:
        return await self._apply(
            ticket_id, "close", lambda t: TicketStateMachine.close(t, now)
        )

    async def escalate(
        self,
        ticket_id: UUID,
        severity: TicketSeverity,
        now: Optional[datetime] = None
    ) -> Ticket:
        return await self._apply(
            ticket_id, "escalate",
            lambda t: TicketStateMachine.escalate_severity(t, severity, now),
            severity=severity.value
        )

    async def reply(
        self,
        ticket_id: UUID,
        sender_id: str,
        message: str,
        is_staff: bool,
        now: Optional[datetime] = None
    ) -> Reply:
        replies: List[Reply] = []
        await self._apply(
            ticket_id, "reply",
            lambda t: replies.append(TicketStateMachine.reply(t, sender_id, message, is_staff, now)),
            sender_id=sender_id, is_staff_reply=is_staff
        )
        return replies[0]

    async def _apply(
        self,
        ticket_id: UUID,
        action: str,
        command: Callable[[Ticket], None],
        **log_extra
    ) -> Ticket:
        ticket = await self._ticket_repo.get_for_update(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)

        before = (ticket.status, ticket.assignment_state)
        command(ticket)
        ticket = await self._ticket_repo.save(ticket)

        logger.info(
            f"Ticket {action}",
            extra={
                "ticket_id": str(ticket.id),
                "ticket_code": ticket.ticket_code,
                "action": action,
                "from_status": before[0].value,
                "to_status": ticket.status.value,
                "from_assignment": before[1].value,
                "to_assignment": ticket.assignment_state.value,
                "assignee_id": ticket.assignee_id,
                **log_extra
            }
        )
        return ticket
