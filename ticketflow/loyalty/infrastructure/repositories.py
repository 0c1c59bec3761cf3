"""
Loyalty Infrastructure Repositories
====================================

SQLAlchemy implementation of the priority rule store.
"""

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketflow.core import RepositoryException
from ticketflow.loyalty.application.services import ILoyaltyRuleRepository
from ticketflow.loyalty.domain import PriorityLoyaltyRule
from ticketflow.loyalty.infrastructure.models import PriorityLoyaltyRuleModel

# Advisory lock id shared by every priority rule writer
RULE_STORE_LOCK_KEY = 7_300_001


class SQLAlchemyLoyaltyRuleRepository(ILoyaltyRuleRepository):
    """Handles persistence of PriorityLoyaltyRule entities using async SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_domain(model: PriorityLoyaltyRuleModel) -> PriorityLoyaltyRule:
        return PriorityLoyaltyRule(
            id=model.id,
            min_total_spend=Decimal(model.min_total_spend),
            priority_level=model.priority_level,
            is_active=model.is_active,
        )

    async def get_by_id(self, rule_id: int) -> Optional[PriorityLoyaltyRule]:
        result = await self._session.execute(
            select(PriorityLoyaltyRuleModel).where(PriorityLoyaltyRuleModel.id == rule_id)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def lock_all(self) -> List[PriorityLoyaltyRule]:
        """
        Serialize rule-store writers, then read every rule.

        Row locks alone miss rules inserted concurrently, so PostgreSQL
        takes a transaction-scoped advisory lock. SQLite already admits a
        single writer at a time.
        """
        if self._session.get_bind().dialect.name == "postgresql":
            await self._session.execute(select(func.pg_advisory_xact_lock(RULE_STORE_LOCK_KEY)))

        stmt = (
            select(PriorityLoyaltyRuleModel)
            .order_by(PriorityLoyaltyRuleModel.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    async def list_active(self) -> List[PriorityLoyaltyRule]:
        result = await self._session.execute(
            select(PriorityLoyaltyRuleModel)
            .where(PriorityLoyaltyRuleModel.is_active.is_(True))
            .order_by(PriorityLoyaltyRuleModel.priority_level, PriorityLoyaltyRuleModel.min_total_spend)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def list(
        self,
        filters: dict,
        limit: int = 20,
        offset: int = 0
    ) -> tuple[List[PriorityLoyaltyRule], int]:
        conditions = []
        if "priority_level" in filters:
            conditions.append(PriorityLoyaltyRuleModel.priority_level == filters["priority_level"])
        if "is_active" in filters:
            conditions.append(PriorityLoyaltyRuleModel.is_active.is_(filters["is_active"]))

        stmt = select(PriorityLoyaltyRuleModel)
        count_stmt = select(func.count()).select_from(PriorityLoyaltyRuleModel)
        if conditions:
            stmt = stmt.where(and_(*conditions))
            count_stmt = count_stmt.where(and_(*conditions))

        total = (await self._session.execute(count_stmt)).scalar_one()

        stmt = stmt.order_by(
            PriorityLoyaltyRuleModel.priority_level,
            PriorityLoyaltyRuleModel.min_total_spend,
            PriorityLoyaltyRuleModel.id,
        ).limit(limit).offset(offset)

        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()], total

    async def create(self, rule: PriorityLoyaltyRule) -> PriorityLoyaltyRule:
        model = PriorityLoyaltyRuleModel(
            min_total_spend=rule.min_total_spend,
            priority_level=rule.priority_level,
            is_active=rule.is_active,
        )
        self._session.add(model)
        await self._session.flush()
        return self._to_domain(model)

    async def update(self, rule: PriorityLoyaltyRule) -> PriorityLoyaltyRule:
        model = await self._session.get(PriorityLoyaltyRuleModel, rule.id)
        if not model:
            raise RepositoryException(f"Priority rule {rule.id} not found")

        model.min_total_spend = rule.min_total_spend
        model.priority_level = rule.priority_level
        model.is_active = rule.is_active
        await self._session.flush()
        return self._to_domain(model)

    async def deactivate_level(self, priority_level: int, keep_id: int) -> int:
        result = await self._session.execute(
            update(PriorityLoyaltyRuleModel)
            .where(and_(
                PriorityLoyaltyRuleModel.priority_level == priority_level,
                PriorityLoyaltyRuleModel.is_active.is_(True),
                PriorityLoyaltyRuleModel.id != keep_id,
            ))
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        await self._session.flush()
        return result.rowcount or 0

    async def delete(self, rule_id: int) -> None:
        await self._session.execute(
            delete(PriorityLoyaltyRuleModel).where(PriorityLoyaltyRuleModel.id == rule_id)
        )
        await self._session.flush()
