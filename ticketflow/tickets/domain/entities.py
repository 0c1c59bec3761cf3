"""
Ticket Domain Entities
=======================

Pure Python domain entities for the support ticket workflow.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns. Lifecycle
changes go through TicketStateMachine; the entity only knows how to
answer questions about itself.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from ticketflow.config import (
    FINAL_STATUSES,
    AssignmentState,
    TicketSeverity,
    TicketStatus,
)

TICKET_CODE_PREFIX = "TCK-"
MAX_DESCRIPTION_LENGTH = 1000
MAX_SUBJECT_LENGTH = 200


def format_ticket_code(number: int) -> str:
    """TCK-0001, TCK-0002, ... (wider once past 9999)."""
    return f"{TICKET_CODE_PREFIX}{number:04d}"


@dataclass
class Reply:
    """
    One message in a ticket's conversation.

    Replies are append-only; reply_id doubles as the insertion sequence
    that breaks ties between equal sent_at values.
    """

    ticket_id: UUID
    sender_id: str
    is_staff_reply: bool
    message: str
    sent_at: datetime
    reply_id: Optional[int] = None


@dataclass
class Ticket:
    """
    Ticket entity representing a support ticket.

    Severity, priority level and the two SLA due dates are fixed when the
    ticket is created. first_responded_at and resolved_at are written at
    most once.
    """

    # Core attributes
    id: UUID
    ticket_number: int
    customer_id: str
    subject: str
    description: Optional[str]
    severity: TicketSeverity
    priority_level: int

    # Committed SLA deadlines
    first_response_due_at: datetime
    resolution_due_at: datetime

    # Timestamps
    created_at: datetime
    updated_at: datetime

    # Workflow
    status: TicketStatus = TicketStatus.NEW
    assignment_state: AssignmentState = AssignmentState.UNASSIGNED
    assignee_id: Optional[str] = None

    # SLA tracking
    first_responded_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    version: int = 0
    replies: List[Reply] = field(default_factory=list)

    @property
    def ticket_code(self) -> str:
        return format_ticket_code(self.ticket_number)

    @property
    def is_finalized(self) -> bool:
        """Completed and Closed tickets accept no further mutation."""
        return self.status in FINAL_STATUSES

    @property
    def is_owned(self) -> bool:
        return self.assignment_state != AssignmentState.UNASSIGNED

    @property
    def sort_due_at(self) -> datetime:
        """Deadline the queue orders by: first response until someone owns it."""
        if self.assignment_state == AssignmentState.UNASSIGNED:
            return self.first_response_due_at
        return self.resolution_due_at

    def ordered_replies(self) -> List[Reply]:
        return sorted(self.replies, key=lambda r: (r.sent_at, r.reply_id or 0))
