"""
Ticket Domain Layer
====================

Pure business logic for the ticket workflow, with no infrastructure
dependencies.

Contains:
- Entities: Ticket, Reply
- Lifecycle: TicketStateMachine, AssignmentManager
"""

from ticketflow.tickets.domain.entities import (
    MAX_DESCRIPTION_LENGTH,
    MAX_SUBJECT_LENGTH,
    Reply,
    Ticket,
    format_ticket_code,
)
from ticketflow.tickets.domain.state_machine import AssignmentManager, TicketStateMachine

__all__ = [
    "Ticket",
    "Reply",
    "format_ticket_code",
    "MAX_DESCRIPTION_LENGTH",
    "MAX_SUBJECT_LENGTH",
    "TicketStateMachine",
    "AssignmentManager",
]
