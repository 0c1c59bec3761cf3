"""
Loyalty Infrastructure Models
==============================

SQLAlchemy ORM models for the loyalty module.
"""

from decimal import Decimal

from sqlalchemy import Boolean, Integer, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ticketflow.infrastructure.database import Base


class PriorityLoyaltyRuleModel(Base):
    """
    Database model for PriorityLoyaltyRule entity.

    Maps to the 'support_priority_loyalty_rules' table.
    """
    __tablename__ = "support_priority_loyalty_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    min_total_spend: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    priority_level: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("priority_level", "min_total_spend", name="uq_loyalty_rules_level_spend"),
    )
