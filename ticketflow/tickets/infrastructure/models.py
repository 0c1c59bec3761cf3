"""
Ticket Infrastructure Models
=============================

SQLAlchemy ORM models for the tickets module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ticketflow.config import AssignmentState, TicketSeverity, TicketStatus
from ticketflow.infrastructure.database import Base, UTCDateTime, enum_column


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Maps to the 'tickets' table. ``version`` is SQLAlchemy's version
    counter: an UPDATE against a row someone else changed first affects
    zero rows and raises StaleDataError.
    """
    __tablename__ = "tickets"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Business identifier, rendered as TCK-0001
    ticket_number: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    customer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Ticket content
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Classification
    severity: Mapped[TicketSeverity] = mapped_column(enum_column(TicketSeverity), nullable=False)
    priority_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Workflow
    status: Mapped[TicketStatus] = mapped_column(
        enum_column(TicketStatus), nullable=False, default=TicketStatus.NEW
    )
    assignment_state: Mapped[AssignmentState] = mapped_column(
        enum_column(AssignmentState), nullable=False, default=AssignmentState.UNASSIGNED
    )
    assignee_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    # Committed SLA deadlines
    first_response_due_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    resolution_due_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    # SLA tracking
    first_responded_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_tickets_status_assignment", "status", "assignment_state"),
    )


class ReplyModel(Base):
    """
    Database model for Reply entity.

    Maps to the 'ticket_replies' table. Rows are only ever inserted.
    """
    __tablename__ = "ticket_replies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id: Mapped[str] = mapped_column(String(64), nullable=False)
    is_staff_reply: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
