"""
Ticket Application Layer
=========================

Contains:
- Services: TicketService (creation, queue, lifecycle commands)
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from ticketflow.tickets.application.dto import (
    AssignRequest,
    EscalateRequest,
    ReplyCreateRequest,
    ReplyResponse,
    TicketCreateRequest,
    TicketDetail,
    TicketQuery,
    TicketSummary,
    TransferRequest,
)
from ticketflow.tickets.application.services import ITicketRepository, TicketService

__all__ = [
    # DTOs
    "TicketCreateRequest",
    "AssignRequest",
    "TransferRequest",
    "EscalateRequest",
    "ReplyCreateRequest",
    "TicketQuery",
    "TicketSummary",
    "TicketDetail",
    "ReplyResponse",
    # Services
    "TicketService",
    # Repository Interfaces
    "ITicketRepository",
]
