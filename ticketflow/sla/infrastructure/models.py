"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for SLA module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ticketflow.config import TicketSeverity
from ticketflow.infrastructure.database import Base, UTCDateTime, enum_column


class SLARuleModel(Base):
    """
    Database model for SLARule entity.

    Maps to the 'sla_rules' table.
    """
    __tablename__ = "sla_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)

    # Matrix coordinates
    severity: Mapped[TicketSeverity] = mapped_column(enum_column(TicketSeverity), nullable=False)
    priority_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Durations
    first_response_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    resolution_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint("severity", "priority_level", name="uq_sla_rules_cell"),
    )
