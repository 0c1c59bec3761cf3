"""
Ticketflow
==========

Support-ticket workflow engine: ticket lifecycle, SLA clock, staff
assignment and priority-loyalty rules.
"""

__version__ = "1.0.0"
