"""
SLA Interfaces Layer
====================

Interface adapters (controllers) for the SLA module.

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from ticketflow.sla.interfaces.controllers import get_sla_config_provider, sla_router

__all__ = ["sla_router", "get_sla_config_provider"]
