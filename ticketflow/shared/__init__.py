"""
Shared Kernel Module
====================

This module contains shared infrastructure and API elements used across
all bounded contexts (Tickets, SLA and Loyalty).

Architecture Pattern: Modular Monolith
- Each module (tickets, sla, loyalty) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add ticket, SLA or loyalty business logic to the shared kernel.
"""

__version__ = "1.0.0"
