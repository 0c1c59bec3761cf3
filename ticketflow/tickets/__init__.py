"""
Tickets Module
==============

Bounded Context for the support ticket workflow.

Responsibilities:
- Ticket creation with priority level and committed SLA deadlines
- Lifecycle state machine (New, InProgress, Completed, Closed)
- Exclusive ownership: claim, transfer to technical support, unassign
- Conversation replies and first-response tracking
- Support queue listing ordered by SLA urgency
"""
