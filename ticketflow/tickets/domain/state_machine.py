"""
Ticket Lifecycle
=================

Stateless guards and effects for the ticket workflow.

    New --assign--> InProgress --complete--> Completed --close--> Closed
     |                                                              ^
     +-------------------------------close--------------------------+

Assignment is tracked alongside status (Unassigned / Assigned / Technical)
and only changes through assign, transfer_tech and unassign. Every guard
runs before any field is touched, so a rejected command leaves the ticket
exactly as it was.
"""

from datetime import datetime, timezone
from typing import Optional

from ticketflow.config import AssignmentState, TicketSeverity, TicketStatus
from ticketflow.core import (
    AlreadyAssignedException,
    InvalidTransitionException,
    NotOwnerException,
    TicketFinalizedException,
    ValidationException,
)
from ticketflow.tickets.domain.entities import Reply, Ticket


def _require_id(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationException(f"{field} is required")
    return value


def _require_staff_id(staff_id: Optional[str]) -> str:
    return _require_id(staff_id, "staff_id")


class TicketStateMachine:
    """Guards and effects for every lifecycle command."""

    @staticmethod
    def ensure_not_finalized(ticket: Ticket, action: str) -> None:
        if ticket.is_finalized:
            raise TicketFinalizedException(ticket.id, ticket.status, action)

    @staticmethod
    def assign(ticket: Ticket, staff_id: str, now: Optional[datetime] = None) -> None:
        """Give an unowned New/InProgress ticket to staff_id and start work on it."""
        staff_id = _require_staff_id(staff_id)
        TicketStateMachine.ensure_not_finalized(ticket, "assign")
        if ticket.is_owned:
            raise AlreadyAssignedException(ticket.id, ticket.assignee_id)

        ticket.status = TicketStatus.IN_PROGRESS
        ticket.assignment_state = AssignmentState.ASSIGNED
        ticket.assignee_id = staff_id
        ticket.updated_at = now or datetime.now(timezone.utc)

    @staticmethod
    def transfer_tech(ticket: Ticket, new_staff_id: str, now: Optional[datetime] = None) -> None:
        """Hand an owned InProgress ticket to technical support."""
        new_staff_id = _require_staff_id(new_staff_id)
        TicketStateMachine.ensure_not_finalized(ticket, "transfer")
        if ticket.status != TicketStatus.IN_PROGRESS or not ticket.is_owned:
            raise InvalidTransitionException(
                "transfer", ticket.status, ticket.assignment_state,
                "only owned InProgress tickets can be transferred"
            )
        if new_staff_id == ticket.assignee_id:
            raise InvalidTransitionException(
                "transfer", ticket.status, ticket.assignment_state,
                "target is already the assignee"
            )

        ticket.assignment_state = AssignmentState.TECHNICAL
        ticket.assignee_id = new_staff_id
        ticket.updated_at = now or datetime.now(timezone.utc)

    @staticmethod
    def unassign(ticket: Ticket, now: Optional[datetime] = None) -> None:
        """Return an owned InProgress ticket to the queue. Status is unchanged."""
        TicketStateMachine.ensure_not_finalized(ticket, "unassign")
        if ticket.status != TicketStatus.IN_PROGRESS or not ticket.is_owned:
            raise InvalidTransitionException(
                "unassign", ticket.status, ticket.assignment_state,
                "ticket has no owner"
            )

        ticket.assignment_state = AssignmentState.UNASSIGNED
        ticket.assignee_id = None
        ticket.updated_at = now or datetime.now(timezone.utc)

    @staticmethod
    def complete(ticket: Ticket, now: Optional[datetime] = None) -> None:
        TicketStateMachine.ensure_not_finalized(ticket, "complete")
        if ticket.status != TicketStatus.IN_PROGRESS:
            raise InvalidTransitionException(
                "complete", ticket.status, ticket.assignment_state,
                "only InProgress tickets can be completed"
            )

        current_time = now or datetime.now(timezone.utc)
        ticket.status = TicketStatus.COMPLETED
        if ticket.resolved_at is None:
            ticket.resolved_at = current_time
        ticket.updated_at = current_time

    @staticmethod
    def close(ticket: Ticket, now: Optional[datetime] = None) -> None:
        """Close from New (dismissed) or from Completed (confirmed)."""
        if ticket.status == TicketStatus.CLOSED:
            raise TicketFinalizedException(ticket.id, ticket.status, "close")
        if ticket.status == TicketStatus.IN_PROGRESS:
            raise InvalidTransitionException(
                "close", ticket.status, ticket.assignment_state,
                "complete the ticket first"
            )

        current_time = now or datetime.now(timezone.utc)
        ticket.status = TicketStatus.CLOSED
        if ticket.resolved_at is None:
            ticket.resolved_at = current_time
        ticket.updated_at = current_time

    @staticmethod
    def reply(
        ticket: Ticket,
        sender_id: str,
        message: str,
        is_staff: bool,
        now: Optional[datetime] = None
    ) -> Reply:
        """
        Append a message to the conversation.

        The first staff reply stamps first_responded_at; later replies never
        move it. Status is left alone.
        """
        sender_id = _require_id(sender_id, "sender_id")
        TicketStateMachine.ensure_not_finalized(ticket, "reply")
        text = (message or "").strip()
        if not text:
            raise ValidationException("Reply message must not be empty")

        current_time = now or datetime.now(timezone.utc)
        reply = Reply(
            ticket_id=ticket.id,
            sender_id=sender_id,
            is_staff_reply=is_staff,
            message=text,
            sent_at=current_time,
        )
        ticket.replies.append(reply)
        if is_staff and ticket.first_responded_at is None:
            ticket.first_responded_at = current_time
        ticket.updated_at = current_time
        return reply

    @staticmethod
    def escalate_severity(
        ticket: Ticket,
        severity: TicketSeverity,
        now: Optional[datetime] = None
    ) -> None:
        """Raise severity on an open ticket. Committed deadlines stay as they are."""
        TicketStateMachine.ensure_not_finalized(ticket, "escalate")
        if severity.rank <= ticket.severity.rank:
            raise InvalidTransitionException(
                "escalate", ticket.status, ticket.assignment_state,
                f"severity can only be raised above {ticket.severity.value}"
            )

        ticket.severity = severity
        ticket.updated_at = now or datetime.now(timezone.utc)


class AssignmentManager:
    """
    Ownership rules on top of the state machine.

    Exactly one staff member owns an InProgress ticket at a time; the
    service layer serializes these calls per ticket.
    """

    @staticmethod
    def claim(ticket: Ticket, staff_id: str, now: Optional[datetime] = None) -> None:
        TicketStateMachine.assign(ticket, staff_id, now)

    @staticmethod
    def transfer(
        ticket: Ticket,
        from_staff_id: str,
        to_staff_id: str,
        now: Optional[datetime] = None
    ) -> None:
        """Only the current assignee may hand the ticket over."""
        from_staff_id = _require_staff_id(from_staff_id)
        TicketStateMachine.ensure_not_finalized(ticket, "transfer")
        if ticket.status != TicketStatus.IN_PROGRESS or not ticket.is_owned:
            raise InvalidTransitionException(
                "transfer", ticket.status, ticket.assignment_state,
                "only owned InProgress tickets can be transferred"
            )
        if ticket.assignee_id != from_staff_id:
            raise NotOwnerException(ticket.id, from_staff_id)

        TicketStateMachine.transfer_tech(ticket, to_staff_id, now)

    @staticmethod
    def unassign(ticket: Ticket, now: Optional[datetime] = None) -> None:
        TicketStateMachine.unassign(ticket, now)
