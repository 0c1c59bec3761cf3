"""
SLA Infrastructure Repositories
=================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database.
"""

from typing import List, Optional

from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketflow.config import TicketSeverity
from ticketflow.core import RepositoryException
from ticketflow.sla.application import ISLARuleRepository
from ticketflow.sla.domain import SLARule
from ticketflow.sla.infrastructure.models import SLARuleModel


class SQLAlchemySLARuleRepository(ISLARuleRepository):
    """
    SQLAlchemy implementation of the SLA matrix repository.

    Handles persistence of SLARule entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_domain(model: SLARuleModel) -> SLARule:
        return SLARule(
            id=model.id,
            name=model.name,
            severity=TicketSeverity(model.severity),
            priority_level=model.priority_level,
            first_response_minutes=model.first_response_minutes,
            resolution_minutes=model.resolution_minutes,
            is_active=model.is_active,
            created_at=model.created_at,
        )

    async def _get_model(self, rule_id: int, for_update: bool = False) -> Optional[SLARuleModel]:
        stmt = select(SLARuleModel).where(SLARuleModel.id == rule_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, rule_id: int, for_update: bool = False) -> Optional[SLARule]:
        """Get rule by ID."""
        model = await self._get_model(rule_id, for_update)
        return self._to_domain(model) if model else None

    async def find_active(self, severity: TicketSeverity, priority_level: int) -> Optional[SLARule]:
        """Get the active rule for a matrix cell."""
        stmt = (
            select(SLARuleModel)
            .where(and_(
                SLARuleModel.is_active.is_(True),
                SLARuleModel.severity == severity,
                SLARuleModel.priority_level == priority_level,
            ))
            .order_by(SLARuleModel.id.asc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def exists_pair(
        self,
        severity: TicketSeverity,
        priority_level: int,
        exclude_id: Optional[int] = None
    ) -> bool:
        """Check whether a rule already covers the matrix cell."""
        stmt = select(SLARuleModel.id).where(and_(
            SLARuleModel.severity == severity,
            SLARuleModel.priority_level == priority_level,
        ))
        if exclude_id is not None:
            stmt = stmt.where(SLARuleModel.id != exclude_id)
        result = await self._session.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def create(self, rule: SLARule) -> SLARule:
        """Create new rule."""
        model = SLARuleModel(
            name=rule.name,
            severity=rule.severity,
            priority_level=rule.priority_level,
            first_response_minutes=rule.first_response_minutes,
            resolution_minutes=rule.resolution_minutes,
            is_active=rule.is_active,
        )

        self._session.add(model)
        await self._session.flush()

        return self._to_domain(model)

    async def update(self, rule: SLARule) -> SLARule:
        """Update existing rule."""
        model = await self._get_model(rule.id)
        if not model:
            raise RepositoryException(f"SLA rule {rule.id} not found")

        model.name = rule.name
        model.severity = rule.severity
        model.priority_level = rule.priority_level
        model.first_response_minutes = rule.first_response_minutes
        model.resolution_minutes = rule.resolution_minutes
        model.is_active = rule.is_active

        await self._session.flush()

        return self._to_domain(model)

    async def delete(self, rule_id: int) -> None:
        """Delete a rule."""
        await self._session.execute(delete(SLARuleModel).where(SLARuleModel.id == rule_id))
        await self._session.flush()

    async def list(
        self,
        filters: dict,
        limit: int = 20,
        offset: int = 0
    ) -> tuple[List[SLARule], int]:
        """List rules with filters."""
        conditions = []
        if "severity" in filters:
            conditions.append(SLARuleModel.severity == filters["severity"])
        if "priority_level" in filters:
            conditions.append(SLARuleModel.priority_level == filters["priority_level"])
        if "is_active" in filters:
            conditions.append(SLARuleModel.is_active.is_(filters["is_active"]))

        stmt = select(SLARuleModel)
        count_stmt = select(func.count()).select_from(SLARuleModel)
        if conditions:
            stmt = stmt.where(and_(*conditions))
            count_stmt = count_stmt.where(and_(*conditions))

        total = (await self._session.execute(count_stmt)).scalar_one()

        stmt = stmt.order_by(
            SLARuleModel.severity,
            SLARuleModel.priority_level,
            SLARuleModel.first_response_minutes,
        ).limit(limit).offset(offset)

        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()], total
