"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA matrix administration and SLA visibility.

Controllers are thin - they delegate to application services.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketflow.config import TicketSeverity, settings
from ticketflow.infrastructure.database import get_session
from ticketflow.shared.api.schemas import PagedResult, clamp_paging
from ticketflow.shared.infrastructure.logging import get_logger
from ticketflow.sla.application import (
    ISLAConfigProvider,
    SLARuleResponse,
    SLARuleService,
    SLARuleToggleResponse,
    SLARuleWriteRequest,
    SLASummaryResponse,
    SLASweepService,
    StaticConfigProvider,
)
from ticketflow.sla.domain import SLARule
from ticketflow.sla.infrastructure import SQLAlchemySLARuleRepository

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA"])


# ========== Example payloads for Swagger ==========

SLA_RULE_EXAMPLE = {
    "sla_rule_id": 3,
    "name": "High / VIP",
    "severity": "High",
    "priority_level": 2,
    "first_response_minutes": 30,
    "resolution_minutes": 240,
    "is_active": True,
    "created_at": "2024-01-15T10:00:00Z"
}

SLA_SUMMARY_EXAMPLE = {
    "evaluated_at": "2024-01-15T10:05:00Z",
    "total": 12,
    "ok": 9,
    "warning": 2,
    "overdue": 1,
    "first_response_overdue": 0
}


# ========== Dependencies ==========

def get_sla_config_provider(request: Request) -> ISLAConfigProvider:
    """Hot-reloaded config from app state, or defaults when running without one."""
    provider = getattr(request.app.state, "sla_config_manager", None)
    return provider or StaticConfigProvider()


async def get_sla_rule_service(
    session: AsyncSession = Depends(get_session)
) -> SLARuleService:
    """Get SLA rule service instance."""
    return SLARuleService(SQLAlchemySLARuleRepository(session))


async def get_sweep_service(
    session: AsyncSession = Depends(get_session),
    config_provider: ISLAConfigProvider = Depends(get_sla_config_provider)
) -> SLASweepService:
    """Get SLA sweep service instance."""
    from ticketflow.tickets.infrastructure import SQLAlchemyTicketRepository
    return SLASweepService(SQLAlchemyTicketRepository(session), config_provider)


def _rule_from_request(request: SLARuleWriteRequest) -> SLARule:
    return SLARule(
        id=None,
        name=request.name,
        severity=request.severity,
        priority_level=request.priority_level,
        first_response_minutes=request.first_response_minutes,
        resolution_minutes=request.resolution_minutes,
        is_active=request.is_active,
    )


# ========== Route Handlers ==========

@router.get(
    "/rules",
    response_model=PagedResult[SLARuleResponse],
    summary="List SLA matrix rules",
)
async def list_sla_rules(
    severity: Optional[TicketSeverity] = Query(None, description="Filter by severity"),
    priority_level: Optional[int] = Query(None, ge=0, description="Filter by priority level"),
    active: Optional[bool] = Query(None, description="Filter by active flag"),
    page: int = Query(1, description="1-based page number"),
    page_size: int = Query(20, description="Rows per page"),
    service: SLARuleService = Depends(get_sla_rule_service)
):
    page, page_size = clamp_paging(page, page_size, settings.max_page_size)
    rules, total = await service.list_rules(severity, priority_level, active, page, page_size)
    return PagedResult[SLARuleResponse](
        page=page,
        page_size=page_size,
        total_items=total,
        items=[SLARuleResponse.from_domain(r) for r in rules]
    )


@router.get(
    "/rules/{rule_id}",
    response_model=SLARuleResponse,
    summary="Get one SLA rule",
    responses={
        200: {"content": {"application/json": {"example": SLA_RULE_EXAMPLE}}},
        404: {"description": "Rule not found"}
    }
)
async def get_sla_rule(
    rule_id: int,
    service: SLARuleService = Depends(get_sla_rule_service)
):
    return SLARuleResponse.from_domain(await service.get_rule(rule_id))


@router.post(
    "/rules",
    response_model=SLARuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create SLA rule",
    description="""
    Add a cell to the severity x priority matrix.

    Rejected with 400 when another rule already covers the same
    (severity, priority_level) pair or when resolution_minutes is
    shorter than first_response_minutes.
    """
)
async def create_sla_rule(
    request: SLARuleWriteRequest,
    service: SLARuleService = Depends(get_sla_rule_service)
):
    created = await service.create_rule(_rule_from_request(request))
    return SLARuleResponse.from_domain(created)


@router.put(
    "/rules/{rule_id}",
    response_model=SLARuleResponse,
    summary="Update SLA rule"
)
async def update_sla_rule(
    rule_id: int,
    request: SLARuleWriteRequest,
    service: SLARuleService = Depends(get_sla_rule_service)
):
    updated = await service.update_rule(rule_id, _rule_from_request(request))
    return SLARuleResponse.from_domain(updated)


@router.patch(
    "/rules/{rule_id}/toggle",
    response_model=SLARuleToggleResponse,
    summary="Flip the active flag of an SLA rule"
)
async def toggle_sla_rule(
    rule_id: int,
    service: SLARuleService = Depends(get_sla_rule_service)
):
    rule = await service.toggle_rule(rule_id)
    return SLARuleToggleResponse(sla_rule_id=rule.id, is_active=rule.is_active)


@router.delete(
    "/rules/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete SLA rule"
)
async def delete_sla_rule(
    rule_id: int,
    service: SLARuleService = Depends(get_sla_rule_service)
):
    await service.remove_rule(rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/summary",
    response_model=SLASummaryResponse,
    summary="SLA counts over open tickets",
    description="""
    Runs the same evaluation as the background sweep, on demand.

    Only tickets in New or InProgress status are counted.
    """,
    responses={200: {"content": {"application/json": {"example": SLA_SUMMARY_EXAMPLE}}}}
)
async def get_sla_summary(
    service: SLASweepService = Depends(get_sweep_service)
):
    summary = await service.evaluate_open_tickets()
    return SLASummaryResponse(**summary.__dict__)


# Export router for inclusion in main app
sla_router = router
