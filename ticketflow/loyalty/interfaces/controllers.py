"""
Loyalty Controllers (API Routes)
=================================

FastAPI routes for the priority-loyalty rule store.
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketflow.config import PriorityLevel, settings
from ticketflow.infrastructure.database import get_session
from ticketflow.loyalty.application import (
    PriorityResolveResponse,
    PriorityRuleResponse,
    PriorityRuleService,
    PriorityRuleToggleResponse,
    PriorityRuleWriteRequest,
)
from ticketflow.loyalty.domain import PriorityLoyaltyRule, PriorityRulePolicy
from ticketflow.loyalty.infrastructure import SQLAlchemyLoyaltyRuleRepository
from ticketflow.shared.api.schemas import PagedResult, clamp_paging

router = APIRouter(prefix="/priority-rules", tags=["Priority Rules"])


# ========== Dependencies ==========

async def get_priority_rule_service(
    session: AsyncSession = Depends(get_session)
) -> PriorityRuleService:
    """Get priority rule service instance."""
    return PriorityRuleService(SQLAlchemyLoyaltyRuleRepository(session))


def _rule_from_request(request: PriorityRuleWriteRequest) -> PriorityLoyaltyRule:
    return PriorityLoyaltyRule(
        id=None,
        min_total_spend=request.min_total_spend,
        priority_level=request.priority_level,
        is_active=request.is_active,
    )


# ========== Route Handlers ==========

@router.get(
    "",
    response_model=PagedResult[PriorityRuleResponse],
    summary="List priority loyalty rules",
)
async def list_priority_rules(
    priority_level: Optional[int] = Query(None, description="Filter by priority level"),
    active: Optional[bool] = Query(None, description="Filter by active flag"),
    page: int = Query(1),
    page_size: int = Query(20),
    service: PriorityRuleService = Depends(get_priority_rule_service)
):
    page, page_size = clamp_paging(page, page_size, settings.max_page_size)
    rules, total = await service.list_rules(priority_level, active, page, page_size)
    return PagedResult[PriorityRuleResponse](
        page=page,
        page_size=page_size,
        total_items=total,
        items=[PriorityRuleResponse.from_domain(r) for r in rules]
    )


@router.get(
    "/resolve",
    response_model=PriorityResolveResponse,
    summary="Priority level for a spend amount",
    description="""
    Re-evaluates the loyalty level for a cumulative spend against the
    currently active rules. `plan_level` is the customer's active support
    plan level (0 when none); the effective level is the higher of the two.
    """
)
async def resolve_priority_level(
    total_spend: Decimal = Query(..., description="Customer cumulative spend"),
    plan_level: int = Query(
        PriorityLevel.STANDARD,
        ge=PriorityLevel.STANDARD,
        le=PriorityLevel.VIP,
        description="Support plan priority level"
    ),
    service: PriorityRuleService = Depends(get_priority_rule_service)
):
    loyalty_level = await service.resolve_priority_level(total_spend)
    return PriorityResolveResponse(
        total_spend=total_spend,
        loyalty_level=loyalty_level,
        plan_level=plan_level,
        effective_level=PriorityRulePolicy.effective_level(loyalty_level, plan_level)
    )


@router.get("/{rule_id}", response_model=PriorityRuleResponse, summary="Get one priority rule")
async def get_priority_rule(
    rule_id: int,
    service: PriorityRuleService = Depends(get_priority_rule_service)
):
    return PriorityRuleResponse.from_domain(await service.get_rule(rule_id))


@router.post(
    "",
    response_model=PriorityRuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create priority rule",
    description="""
    An active rule must keep spend strictly increasing with level across
    all active rules (422 otherwise). Activating a rule deactivates the
    other active rule of the same level.
    """
)
async def create_priority_rule(
    request: PriorityRuleWriteRequest,
    service: PriorityRuleService = Depends(get_priority_rule_service)
):
    created = await service.create_rule(_rule_from_request(request))
    return PriorityRuleResponse.from_domain(created)


@router.put("/{rule_id}", response_model=PriorityRuleResponse, summary="Update priority rule")
async def update_priority_rule(
    rule_id: int,
    request: PriorityRuleWriteRequest,
    service: PriorityRuleService = Depends(get_priority_rule_service)
):
    updated = await service.update_rule(rule_id, _rule_from_request(request))
    return PriorityRuleResponse.from_domain(updated)


@router.patch(
    "/{rule_id}/toggle",
    response_model=PriorityRuleToggleResponse,
    summary="Flip the active flag of a priority rule"
)
async def toggle_priority_rule(
    rule_id: int,
    service: PriorityRuleService = Depends(get_priority_rule_service)
):
    rule = await service.toggle_rule(rule_id)
    return PriorityRuleToggleResponse(rule_id=rule.id, is_active=rule.is_active)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete priority rule")
async def delete_priority_rule(
    rule_id: int,
    service: PriorityRuleService = Depends(get_priority_rule_service)
):
    await service.remove_rule(rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Export router for inclusion in main app
priority_rules_router = router
