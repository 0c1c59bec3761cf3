"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional, Any


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Any] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id is not None:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


# ========== Ticket workflow ==========

class InvalidTransitionException(DomainException):
    """A lifecycle guard rejected the command. Refresh the ticket and retry."""

    def __init__(
        self,
        action: str,
        status: Any,
        assignment_state: Any = None,
        reason: Optional[str] = None
    ):
        self.action = action
        self.status = status
        self.assignment_state = assignment_state
        message = f"Cannot {action} a ticket in status {_label(status)}"
        if assignment_state is not None:
            message += f" ({_label(assignment_state)})"
        if reason:
            message += f": {reason}"
        super().__init__(message, {
            "action": action,
            "status": _label(status),
            "assignment_state": _label(assignment_state),
        })


class TicketFinalizedException(DomainException):
    """The ticket is Completed or Closed and accepts no further mutation."""

    def __init__(self, ticket_id: Any, status: Any, action: str):
        self.ticket_id = ticket_id
        self.status = status
        self.action = action
        super().__init__(
            f"Ticket {ticket_id} is {_label(status)}; {action} is not allowed",
            {"ticket_id": str(ticket_id), "status": _label(status), "action": action}
        )


class AlreadyAssignedException(DomainException):
    """The ticket already has an owner (or another claim won the race)."""

    def __init__(self, ticket_id: Any, assignee_id: Optional[str] = None):
        self.ticket_id = ticket_id
        self.assignee_id = assignee_id
        super().__init__(
            f"Ticket {ticket_id} is already assigned",
            {"ticket_id": str(ticket_id), "assignee_id": assignee_id}
        )


class NotOwnerException(DomainException):
    """The acting staff member does not own the ticket."""

    def __init__(self, ticket_id: Any, staff_id: str):
        self.ticket_id = ticket_id
        self.staff_id = staff_id
        super().__init__(
            f"Staff {staff_id} is not the assignee of ticket {ticket_id}",
            {"ticket_id": str(ticket_id), "staff_id": staff_id}
        )


class ConcurrentModificationException(DomainException):
    """Another transaction changed the ticket first."""

    def __init__(self, ticket_id: Any, action: str):
        self.ticket_id = ticket_id
        self.action = action
        super().__init__(
            f"Ticket {ticket_id} was modified concurrently during {action}",
            {"ticket_id": str(ticket_id), "action": action}
        )


# ========== Rule stores ==========

class PriorityOrderingViolationException(DomainException):
    """Activating the rule would break strict spend ordering across levels."""

    def __init__(
        self,
        priority_level: int,
        min_total_spend: Any,
        conflicts: Optional[list] = None
    ):
        self.priority_level = priority_level
        self.min_total_spend = min_total_spend
        self.conflicts = conflicts or []
        super().__init__(
            "Higher priority levels must require a strictly greater minimum total spend "
            f"than lower levels (level {priority_level}, min spend {min_total_spend})",
            {
                "priority_level": priority_level,
                "min_total_spend": str(min_total_spend),
                "conflicts": self.conflicts,
            }
        )


class NoSLARuleConfiguredException(DomainException):
    """The SLA matrix has no active rule for the severity/priority pair."""

    def __init__(self, severity: Any, priority_level: int):
        self.severity = severity
        self.priority_level = priority_level
        super().__init__(
            f"No active SLA rule for severity {_label(severity)} and priority level {priority_level}",
            {"severity": _label(severity), "priority_level": priority_level}
        )


def _label(value: Any) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "value", str(value))
