"""
Loyalty Interfaces Layer
=========================

FastAPI route handlers for the priority rule store.
"""

from ticketflow.loyalty.interfaces.controllers import priority_rules_router

__all__ = ["priority_rules_router"]
