"""
SLA Module
==========

Bounded Context for Service Level Agreement policy and evaluation.

Responsibilities:
- Maintain the severity x priority SLA matrix (admin CRUD)
- Resolve first-response and resolution windows for new tickets
- Derive OK / Warning / Overdue status from a ticket's timestamps
- Periodic sweep summarizing SLA health of open tickets
- Config hot-reload via watchdog
"""
