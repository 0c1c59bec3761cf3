"""
Tests for the ticket lifecycle guards and the assignment manager.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from ticketflow.config import AssignmentState, TicketSeverity, TicketStatus
from ticketflow.core import (
    AlreadyAssignedException,
    InvalidTransitionException,
    NotOwnerException,
    TicketFinalizedException,
    ValidationException,
)
from ticketflow.tickets.domain import AssignmentManager, Ticket, TicketStateMachine

NOW = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def make_ticket(
    status=TicketStatus.NEW,
    assignment_state=AssignmentState.UNASSIGNED,
    assignee_id=None,
    severity=TicketSeverity.MEDIUM,
):
    return Ticket(
        id=uuid4(),
        ticket_number=1,
        customer_id="cust-1",
        subject="Key not working",
        description=None,
        severity=severity,
        priority_level=0,
        first_response_due_at=NOW + timedelta(hours=1),
        resolution_due_at=NOW + timedelta(hours=8),
        created_at=NOW,
        updated_at=NOW,
        status=status,
        assignment_state=assignment_state,
        assignee_id=assignee_id,
    )


def owned(status=TicketStatus.IN_PROGRESS, assignee="alice", state=AssignmentState.ASSIGNED):
    return make_ticket(status=status, assignment_state=state, assignee_id=assignee)


def snapshot(ticket):
    return (
        ticket.status, ticket.assignment_state, ticket.assignee_id,
        ticket.resolved_at, ticket.first_responded_at, ticket.severity,
    )


# ---------- assign ----------

def test_assign_new_ticket_starts_work():
    ticket = make_ticket()

    TicketStateMachine.assign(ticket, "alice", NOW)

    assert ticket.status == TicketStatus.IN_PROGRESS
    assert ticket.assignment_state == AssignmentState.ASSIGNED
    assert ticket.assignee_id == "alice"
    assert ticket.updated_at == NOW


def test_assign_unassigned_in_progress_ticket():
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS)

    TicketStateMachine.assign(ticket, "bob")

    assert ticket.assignee_id == "bob"
    assert ticket.assignment_state == AssignmentState.ASSIGNED


@pytest.mark.parametrize("state", [AssignmentState.ASSIGNED, AssignmentState.TECHNICAL])
def test_assign_owned_ticket_raises_already_assigned(state):
    ticket = owned(state=state)
    before = snapshot(ticket)

    with pytest.raises(AlreadyAssignedException):
        TicketStateMachine.assign(ticket, "bob")

    assert snapshot(ticket) == before


@pytest.mark.parametrize("status", [TicketStatus.COMPLETED, TicketStatus.CLOSED])
def test_assign_finalized_ticket_raises(status):
    ticket = make_ticket(status=status)

    with pytest.raises(TicketFinalizedException):
        TicketStateMachine.assign(ticket, "alice")

    assert ticket.status == status


def test_assign_requires_staff_id():
    with pytest.raises(ValidationException):
        TicketStateMachine.assign(make_ticket(), "  ")


# ---------- transfer ----------

@pytest.mark.parametrize("state", [AssignmentState.ASSIGNED, AssignmentState.TECHNICAL])
def test_transfer_tech_moves_ownership(state):
    ticket = owned(state=state)

    TicketStateMachine.transfer_tech(ticket, "tech-1")

    assert ticket.assignment_state == AssignmentState.TECHNICAL
    assert ticket.assignee_id == "tech-1"
    assert ticket.status == TicketStatus.IN_PROGRESS


def test_transfer_tech_requires_owner():
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS)

    with pytest.raises(InvalidTransitionException):
        TicketStateMachine.transfer_tech(ticket, "tech-1")


def test_transfer_tech_from_new_rejected():
    with pytest.raises(InvalidTransitionException):
        TicketStateMachine.transfer_tech(make_ticket(), "tech-1")


def test_transfer_to_current_assignee_rejected():
    ticket = owned(assignee="alice")

    with pytest.raises(InvalidTransitionException):
        TicketStateMachine.transfer_tech(ticket, "alice")

    assert ticket.assignment_state == AssignmentState.ASSIGNED


def test_transfer_by_non_owner_leaves_ownership():
    ticket = owned(assignee="alice")
    before = snapshot(ticket)

    with pytest.raises(NotOwnerException):
        AssignmentManager.transfer(ticket, "mallory", "tech-1")

    assert snapshot(ticket) == before


def test_transfer_by_owner():
    ticket = owned(assignee="alice")

    AssignmentManager.transfer(ticket, "alice", "tech-1", NOW)

    assert ticket.assignee_id == "tech-1"
    assert ticket.assignment_state == AssignmentState.TECHNICAL


def test_transfer_finalized_reports_finalized_before_ownership():
    ticket = owned(status=TicketStatus.COMPLETED, assignee="alice")

    with pytest.raises(TicketFinalizedException):
        AssignmentManager.transfer(ticket, "mallory", "tech-1")


# ---------- unassign ----------

@pytest.mark.parametrize("state", [AssignmentState.ASSIGNED, AssignmentState.TECHNICAL])
def test_unassign_returns_ticket_to_queue(state):
    ticket = owned(state=state)

    AssignmentManager.unassign(ticket)

    assert ticket.assignment_state == AssignmentState.UNASSIGNED
    assert ticket.assignee_id is None
    assert ticket.status == TicketStatus.IN_PROGRESS


def test_unassign_unowned_rejected():
    with pytest.raises(InvalidTransitionException):
        AssignmentManager.unassign(make_ticket())


# ---------- complete / close ----------

def test_complete_sets_resolved_at():
    ticket = owned()

    TicketStateMachine.complete(ticket, NOW)

    assert ticket.status == TicketStatus.COMPLETED
    assert ticket.resolved_at == NOW


def test_complete_from_new_rejected():
    ticket = make_ticket()

    with pytest.raises(InvalidTransitionException):
        TicketStateMachine.complete(ticket)

    assert ticket.status == TicketStatus.NEW
    assert ticket.resolved_at is None


def test_close_from_new():
    ticket = make_ticket()

    TicketStateMachine.close(ticket, NOW)

    assert ticket.status == TicketStatus.CLOSED
    assert ticket.resolved_at == NOW


def test_close_after_complete_keeps_resolved_at():
    ticket = owned()
    TicketStateMachine.complete(ticket, NOW)

    TicketStateMachine.close(ticket, NOW + timedelta(days=1))

    assert ticket.status == TicketStatus.CLOSED
    assert ticket.resolved_at == NOW


def test_close_in_progress_rejected():
    ticket = owned()

    with pytest.raises(InvalidTransitionException):
        TicketStateMachine.close(ticket)

    assert ticket.status == TicketStatus.IN_PROGRESS


def test_close_closed_ticket_rejected():
    ticket = make_ticket(status=TicketStatus.CLOSED)

    with pytest.raises(TicketFinalizedException):
        TicketStateMachine.close(ticket)


@pytest.mark.parametrize("status", [TicketStatus.COMPLETED, TicketStatus.CLOSED])
def test_complete_finalized_rejected(status):
    with pytest.raises(TicketFinalizedException):
        TicketStateMachine.complete(make_ticket(status=status))


# ---------- reply ----------

def test_first_staff_reply_sets_first_responded_at_once():
    ticket = make_ticket()

    TicketStateMachine.reply(ticket, "cust-1", "Any news?", is_staff=False, now=NOW)
    assert ticket.first_responded_at is None

    TicketStateMachine.reply(ticket, "alice", "Looking into it", is_staff=True, now=NOW + timedelta(minutes=5))
    TicketStateMachine.reply(ticket, "alice", "Fixed", is_staff=True, now=NOW + timedelta(minutes=30))

    assert ticket.first_responded_at == NOW + timedelta(minutes=5)
    assert len(ticket.replies) == 3


def test_reply_does_not_change_status():
    ticket = make_ticket()

    TicketStateMachine.reply(ticket, "alice", "Hello", is_staff=True)

    assert ticket.status == TicketStatus.NEW
    assert ticket.assignment_state == AssignmentState.UNASSIGNED


def test_reply_message_is_trimmed_and_required():
    ticket = make_ticket()

    reply = TicketStateMachine.reply(ticket, "alice", "  hi there  ", is_staff=True)
    assert reply.message == "hi there"

    with pytest.raises(ValidationException):
        TicketStateMachine.reply(ticket, "alice", "   ", is_staff=True)


@pytest.mark.parametrize("is_staff", [True, False])
def test_reply_without_sender_names_sender(is_staff):
    ticket = make_ticket()

    with pytest.raises(ValidationException, match="sender_id is required"):
        TicketStateMachine.reply(ticket, "  ", "hello", is_staff=is_staff)

    assert ticket.replies == []


@pytest.mark.parametrize("status", [TicketStatus.COMPLETED, TicketStatus.CLOSED])
def test_reply_on_finalized_ticket_rejected(status):
    ticket = make_ticket(status=status)

    with pytest.raises(TicketFinalizedException):
        TicketStateMachine.reply(ticket, "alice", "late", is_staff=True)

    assert ticket.replies == []


# ---------- escalate ----------

def test_escalate_raises_severity_only():
    ticket = make_ticket(severity=TicketSeverity.LOW)
    due = (ticket.first_response_due_at, ticket.resolution_due_at)

    TicketStateMachine.escalate_severity(ticket, TicketSeverity.CRITICAL)

    assert ticket.severity == TicketSeverity.CRITICAL
    assert (ticket.first_response_due_at, ticket.resolution_due_at) == due


@pytest.mark.parametrize("severity", [TicketSeverity.LOW, TicketSeverity.MEDIUM])
def test_escalate_to_same_or_lower_rejected(severity):
    ticket = make_ticket(severity=TicketSeverity.MEDIUM)

    with pytest.raises(InvalidTransitionException):
        TicketStateMachine.escalate_severity(ticket, severity)


def test_escalate_finalized_rejected():
    with pytest.raises(TicketFinalizedException):
        TicketStateMachine.escalate_severity(
            make_ticket(status=TicketStatus.CLOSED), TicketSeverity.HIGH
        )


def test_unassign_finalized_rejected():
    ticket = owned(status=TicketStatus.COMPLETED)

    with pytest.raises(TicketFinalizedException):
        AssignmentManager.unassign(ticket)
