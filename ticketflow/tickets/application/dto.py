"""
Ticket Application DTOs
========================

Data Transfer Objects for the ticket API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses. Enums go over the wire as their fixed
string values ("New", "InProgress", ...).
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ticketflow.config import (
    AssignmentState,
    PriorityLevel,
    SLAState,
    TicketSeverity,
    TicketStatus,
)
from ticketflow.tickets.domain import MAX_DESCRIPTION_LENGTH, MAX_SUBJECT_LENGTH


# ========== Request DTOs ==========

class TicketCreateRequest(BaseModel):
    """
    Request to open a ticket.

    total_spend and plan_priority_level describe the customer at creation
    time; together they fix the ticket's priority level.
    """
    customer_id: str = Field(..., min_length=1, max_length=64, description="Requesting customer")
    subject: str = Field(..., min_length=1, max_length=MAX_SUBJECT_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    severity: TicketSeverity = Field(default=TicketSeverity.MEDIUM)
    total_spend: Decimal = Field(default=Decimal("0"), ge=0, description="Customer cumulative spend")
    plan_priority_level: int = Field(
        default=PriorityLevel.STANDARD,
        ge=PriorityLevel.STANDARD,
        le=PriorityLevel.VIP,
        description="Active support plan level (0 = none)"
    )


class AssignRequest(BaseModel):
    """Assign a ticket; staff_id defaults to the acting staff member."""
    staff_id: Optional[str] = Field(None, max_length=64)


class TransferRequest(BaseModel):
    """Hand the ticket over to technical support staff."""
    staff_id: str = Field(..., min_length=1, max_length=64)


class EscalateRequest(BaseModel):
    severity: TicketSeverity


class ReplyCreateRequest(BaseModel):
    """
    A message on the ticket.

    send_email is accepted for client compatibility; delivery is handled
    elsewhere.
    """
    message: str = Field(..., min_length=1)
    is_staff_reply: bool = Field(default=True)
    send_email: bool = Field(default=False)


@dataclass
class TicketQuery:
    """Filters and paging for the support queue."""
    status: Optional[TicketStatus] = None
    severity: Optional[TicketSeverity] = None
    sla_status: Optional[SLAState] = None
    assignment_state: Optional[AssignmentState] = None
    q: Optional[str] = None
    page: int = 1
    page_size: int = 20


# ========== Response DTOs ==========

class ReplyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    reply_id: int
    ticket_id: UUID
    sender_id: str
    is_staff_reply: bool
    message: str
    sent_at: datetime


class TicketSummary(BaseModel):
    """One row of the support queue."""
    ticket_id: UUID
    ticket_code: str
    customer_id: str
    subject: str
    status: TicketStatus
    severity: TicketSeverity
    priority_level: int
    assignment_state: AssignmentState
    assignee_id: Optional[str] = None
    sla_status: SLAState
    first_response_due_at: datetime
    resolution_due_at: datetime
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, ticket, sla_status: SLAState) -> "TicketSummary":
        return cls(
            ticket_id=ticket.id,
            ticket_code=ticket.ticket_code,
            customer_id=ticket.customer_id,
            subject=ticket.subject,
            status=ticket.status,
            severity=ticket.severity,
            priority_level=ticket.priority_level,
            assignment_state=ticket.assignment_state,
            assignee_id=ticket.assignee_id,
            sla_status=sla_status,
            first_response_due_at=ticket.first_response_due_at,
            resolution_due_at=ticket.resolution_due_at,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )


class TicketDetail(TicketSummary):
    """Full ticket with both SLA views and the ordered conversation."""
    description: Optional[str] = None
    first_response_sla_status: SLAState
    first_responded_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    version: int
    replies: List[ReplyResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(
        cls,
        ticket,
        sla_status: SLAState,
        first_response_sla_status: SLAState = SLAState.OK
    ) -> "TicketDetail":
        summary = TicketSummary.from_domain(ticket, sla_status)
        return cls(
            **summary.model_dump(),
            description=ticket.description,
            first_response_sla_status=first_response_sla_status,
            first_responded_at=ticket.first_responded_at,
            resolved_at=ticket.resolved_at,
            version=ticket.version,
            replies=[ReplyResponse.model_validate(r) for r in ticket.ordered_replies()],
        )
