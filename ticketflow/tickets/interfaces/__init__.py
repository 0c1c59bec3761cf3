"""
Ticket Interfaces Layer
========================

FastAPI route handlers for the ticket workflow.
"""

from ticketflow.tickets.interfaces.controllers import tickets_router

__all__ = ["tickets_router"]
