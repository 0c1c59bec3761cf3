"""
Loyalty Application Services
=============================

Rule store operations. Every mutation takes the rule-store write lock,
validates against that snapshot, writes, and re-checks the active set the
write produced before the transaction commits. A rejected change raises,
and the caller's rollback leaves the table untouched.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional

from ticketflow.config import PriorityLevel
from ticketflow.core import (
    PriorityOrderingViolationException,
    ResourceNotFoundException,
    ValidationException,
)
from ticketflow.loyalty.domain import PriorityLoyaltyRule, PriorityRulePolicy
from ticketflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ILoyaltyRuleRepository(ABC):
    """Interface for priority loyalty rule data access."""

    @abstractmethod
    async def get_by_id(self, rule_id: int) -> Optional[PriorityLoyaltyRule]:
        """Get rule by ID."""

    @abstractmethod
    async def lock_all(self) -> List[PriorityLoyaltyRule]:
        """Every rule, locked for the rest of the transaction."""

    @abstractmethod
    async def list_active(self) -> List[PriorityLoyaltyRule]:
        """Active rules, unlocked."""

    @abstractmethod
    async def list(
        self,
        filters: dict,
        limit: int = 20,
        offset: int = 0
    ) -> tuple[List[PriorityLoyaltyRule], int]:
        """List rules with filters; returns (page, total)."""

    @abstractmethod
    async def create(self, rule: PriorityLoyaltyRule) -> PriorityLoyaltyRule:
        """Persist a new rule."""

    @abstractmethod
    async def update(self, rule: PriorityLoyaltyRule) -> PriorityLoyaltyRule:
        """Persist changes to an existing rule."""

    @abstractmethod
    async def deactivate_level(self, priority_level: int, keep_id: int) -> int:
        """Deactivate active rules of a level except keep_id; returns count."""

    @abstractmethod
    async def delete(self, rule_id: int) -> None:
        """Delete a rule."""


# ========== Application Services ==========

class PriorityRuleService:
    """
    Priority rule store.

    Invariant over active rules: at most one per level, and a higher level
    requires a strictly greater minimum spend than every lower level.
    """

    def __init__(self, rule_repository: ILoyaltyRuleRepository):
        self._rule_repo = rule_repository

    # ---------- Queries ----------

    async def list_rules(
        self,
        priority_level: Optional[int] = None,
        active: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20
    ) -> tuple[List[PriorityLoyaltyRule], int]:
        filters = {}
        if priority_level is not None:
            filters["priority_level"] = priority_level
        if active is not None:
            filters["is_active"] = active

        return await self._rule_repo.list(
            filters, limit=page_size, offset=(page - 1) * page_size
        )

    async def get_rule(self, rule_id: int) -> PriorityLoyaltyRule:
        rule = await self._rule_repo.get_by_id(rule_id)
        if rule is None:
            raise ResourceNotFoundException("Priority rule", rule_id)
        return rule

    async def resolve_priority_level(self, total_spend: Decimal) -> int:
        if total_spend < 0:
            raise ValidationException("total_spend must be >= 0")
        active_rules = await self._rule_repo.list_active()
        return PriorityRulePolicy.resolve_level(total_spend, active_rules)

    async def effective_priority_level(
        self,
        total_spend: Decimal,
        plan_level: int = PriorityLevel.STANDARD
    ) -> int:
        """Loyalty level from spend, lifted by the customer's support plan."""
        if not PriorityLevel.STANDARD <= plan_level <= PriorityLevel.VIP:
            raise ValidationException(
                f"plan_level must be between {PriorityLevel.STANDARD} and {PriorityLevel.VIP}",
                {"plan_level": plan_level}
            )
        loyalty_level = await self.resolve_priority_level(total_spend)
        return PriorityRulePolicy.effective_level(loyalty_level, plan_level)

    # ---------- Commands ----------

    async def create_rule(self, rule: PriorityLoyaltyRule) -> PriorityLoyaltyRule:
        rule.id = None
        rule.validate()
        snapshot = await self._rule_repo.lock_all()
        self._ensure_unique_pair(rule, snapshot)
        if rule.is_active:
            self._ensure_ordering(rule, snapshot)

        created = await self._rule_repo.create(rule)
        if created.is_active:
            await self._deactivate_siblings(created)
            await self._verify_written(created)

        logger.info(
            "Priority rule created",
            extra={
                "rule_id": created.id,
                "priority_level": created.priority_level,
                "min_total_spend": str(created.min_total_spend),
                "is_active": created.is_active
            }
        )
        return created

    async def update_rule(self, rule_id: int, changes: PriorityLoyaltyRule) -> PriorityLoyaltyRule:
        snapshot = await self._rule_repo.lock_all()
        if not any(r.id == rule_id for r in snapshot):
            raise ResourceNotFoundException("Priority rule", rule_id)

        changes.id = rule_id
        changes.validate()
        self._ensure_unique_pair(changes, snapshot)
        if changes.is_active:
            self._ensure_ordering(changes, snapshot)

        updated = await self._rule_repo.update(changes)
        if updated.is_active:
            await self._deactivate_siblings(updated)
            await self._verify_written(updated)

        logger.info(
            "Priority rule updated",
            extra={"rule_id": rule_id, "is_active": updated.is_active}
        )
        return updated

    async def toggle_rule(self, rule_id: int) -> PriorityLoyaltyRule:
        snapshot = await self._rule_repo.lock_all()
        rule = next((r for r in snapshot if r.id == rule_id), None)
        if rule is None:
            raise ResourceNotFoundException("Priority rule", rule_id)

        rule.is_active = not rule.is_active
        if rule.is_active:
            self._ensure_ordering(rule, snapshot)

        updated = await self._rule_repo.update(rule)
        if updated.is_active:
            await self._deactivate_siblings(updated)
            await self._verify_written(updated)

        logger.info(
            "Priority rule toggled",
            extra={"rule_id": rule_id, "is_active": updated.is_active}
        )
        return updated

    async def remove_rule(self, rule_id: int) -> None:
        rule = await self._rule_repo.get_by_id(rule_id)
        if rule is None:
            raise ResourceNotFoundException("Priority rule", rule_id)
        await self._rule_repo.delete(rule_id)
        logger.info("Priority rule removed", extra={"rule_id": rule_id})

    # ---------- Helpers ----------

    @staticmethod
    def _ensure_unique_pair(
        rule: PriorityLoyaltyRule,
        snapshot: List[PriorityLoyaltyRule]
    ) -> None:
        for other in snapshot:
            if other.id == rule.id:
                continue
            if (other.priority_level == rule.priority_level
                    and other.min_total_spend == rule.min_total_spend):
                raise ValidationException(
                    "A rule with the same priority level and minimum spend already exists",
                    {"rule_id": other.id}
                )

    @staticmethod
    def _ensure_ordering(
        rule: PriorityLoyaltyRule,
        snapshot: List[PriorityLoyaltyRule]
    ) -> None:
        try:
            PriorityRulePolicy.ensure_ordering(rule, [r for r in snapshot if r.is_active])
        except PriorityOrderingViolationException:
            logger.warning(
                "Priority rule rejected by ordering check",
                extra={
                    "rule_id": rule.id,
                    "priority_level": rule.priority_level,
                    "min_total_spend": str(rule.min_total_spend)
                }
            )
            raise

    async def _deactivate_siblings(self, rule: PriorityLoyaltyRule) -> None:
        count = await self._rule_repo.deactivate_level(rule.priority_level, keep_id=rule.id)
        if count:
            logger.info(
                "Deactivated other rules of the same level",
                extra={"priority_level": rule.priority_level, "deactivated": count}
            )

    async def _verify_written(self, rule: PriorityLoyaltyRule) -> None:
        """Check an activated rule against the active set as this transaction now sees it."""
        self._ensure_ordering(rule, await self._rule_repo.list_active())
