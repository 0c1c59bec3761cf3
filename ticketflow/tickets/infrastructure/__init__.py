"""
Ticket Infrastructure Layer
============================

- Models: SQLAlchemy ORM models
- Repositories: Data access layer
"""

from ticketflow.tickets.infrastructure.models import ReplyModel, TicketModel
from ticketflow.tickets.infrastructure.repositories import SQLAlchemyTicketRepository

__all__ = ["TicketModel", "ReplyModel", "SQLAlchemyTicketRepository"]
