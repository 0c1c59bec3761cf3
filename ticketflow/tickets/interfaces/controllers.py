"""
Ticket Controllers (API Routes)
================================

FastAPI routes for the ticket workflow.

Controllers are thin - they delegate to TicketService. The acting staff
member is identified by the X-Actor-Id header.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketflow.config import AssignmentState, SLAState, TicketSeverity, TicketStatus, settings
from ticketflow.core import ValidationException
from ticketflow.infrastructure.database import get_session
from ticketflow.loyalty.application import PriorityRuleService
from ticketflow.loyalty.infrastructure import SQLAlchemyLoyaltyRuleRepository
from ticketflow.shared.api.schemas import PagedResult, clamp_paging
from ticketflow.sla.application import ISLAConfigProvider, SLAPolicyResolver
from ticketflow.sla.infrastructure import SQLAlchemySLARuleRepository
from ticketflow.sla.interfaces import get_sla_config_provider
from ticketflow.tickets.application import (
    AssignRequest,
    EscalateRequest,
    ReplyCreateRequest,
    ReplyResponse,
    TicketCreateRequest,
    TicketDetail,
    TicketQuery,
    TicketService,
    TicketSummary,
    TransferRequest,
)
from ticketflow.tickets.infrastructure import SQLAlchemyTicketRepository

router = APIRouter(prefix="/tickets", tags=["Tickets"])


# ========== Example payloads for Swagger ==========

TICKET_CREATE_EXAMPLE = {
    "customer_id": "cust-1042",
    "subject": "Activation key rejected",
    "description": "The key from order #5531 says it was already used.",
    "severity": "High",
    "total_spend": "750000",
    "plan_priority_level": 0
}


# ========== Dependencies ==========

async def get_ticket_service(
    session: AsyncSession = Depends(get_session),
    config_provider: ISLAConfigProvider = Depends(get_sla_config_provider)
) -> TicketService:
    """Get ticket service instance bound to the request session."""
    return TicketService(
        SQLAlchemyTicketRepository(session),
        PriorityRuleService(SQLAlchemyLoyaltyRuleRepository(session)),
        SLAPolicyResolver(SQLAlchemySLARuleRepository(session)),
        config_provider,
    )


def get_actor_id(x_actor_id: Optional[str] = Header(None)) -> str:
    """Acting staff member; identity is established upstream."""
    if not x_actor_id or not x_actor_id.strip():
        raise ValidationException("X-Actor-Id header is required")
    return x_actor_id.strip()


def _detail(service: TicketService, ticket) -> TicketDetail:
    return TicketDetail.from_domain(
        ticket,
        service.sla_status(ticket),
        service.first_response_status(ticket),
    )


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=TicketDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Open a ticket",
    description="""
    Priority level is the higher of the customer's loyalty level (from
    `total_spend`) and `plan_priority_level`. Both SLA due dates are
    committed now from the SLA matrix and never move afterwards.
    """,
    openapi_extra={
        "requestBody": {"content": {"application/json": {"example": TICKET_CREATE_EXAMPLE}}}
    }
)
async def create_ticket(
    request: TicketCreateRequest,
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.create_ticket(
        customer_id=request.customer_id,
        subject=request.subject,
        description=request.description,
        severity=request.severity,
        total_spend=request.total_spend,
        plan_priority_level=request.plan_priority_level,
    )
    return _detail(service, ticket)


@router.get(
    "",
    response_model=PagedResult[TicketSummary],
    summary="Support queue",
    description="""
    Ordered Overdue, Warning, OK; then unassigned first; then by the
    deadline that matters next (first response while unassigned,
    resolution once owned); then newest ticket code first.
    """
)
async def list_tickets(
    ticket_status: Optional[TicketStatus] = Query(None, alias="status"),
    severity: Optional[TicketSeverity] = Query(None),
    sla_status: Optional[SLAState] = Query(None),
    assignment_state: Optional[AssignmentState] = Query(None),
    q: Optional[str] = Query(None, description="Search subject, customer or ticket code"),
    page: int = Query(1),
    page_size: int = Query(20),
    service: TicketService = Depends(get_ticket_service)
):
    page, page_size = clamp_paging(page, page_size, settings.max_page_size)
    rows, total = await service.list_tickets(TicketQuery(
        status=ticket_status,
        severity=severity,
        sla_status=sla_status,
        assignment_state=assignment_state,
        q=q,
        page=page,
        page_size=page_size,
    ))
    return PagedResult[TicketSummary](
        page=page,
        page_size=page_size,
        total_items=total,
        items=[TicketSummary.from_domain(ticket, sla) for ticket, sla in rows]
    )


@router.get("/{ticket_id}", response_model=TicketDetail, summary="Ticket detail")
async def get_ticket(
    ticket_id: UUID,
    service: TicketService = Depends(get_ticket_service)
):
    return _detail(service, await service.get_ticket(ticket_id))


@router.post("/{ticket_id}/assign", response_model=TicketDetail, summary="Assign or claim")
async def assign_ticket(
    ticket_id: UUID,
    request: Optional[AssignRequest] = None,
    actor_id: str = Depends(get_actor_id),
    service: TicketService = Depends(get_ticket_service)
):
    staff_id = (request.staff_id if request else None) or actor_id
    return _detail(service, await service.claim(ticket_id, staff_id))


@router.post(
    "/{ticket_id}/transfer-tech",
    response_model=TicketDetail,
    summary="Transfer to technical support"
)
async def transfer_ticket(
    ticket_id: UUID,
    request: TransferRequest,
    actor_id: str = Depends(get_actor_id),
    service: TicketService = Depends(get_ticket_service)
):
    return _detail(service, await service.transfer(ticket_id, actor_id, request.staff_id))


@router.post("/{ticket_id}/unassign", response_model=TicketDetail, summary="Return to queue")
async def unassign_ticket(
    ticket_id: UUID,
    service: TicketService = Depends(get_ticket_service)
):
    return _detail(service, await service.unassign(ticket_id))


@router.post("/{ticket_id}/complete", response_model=TicketDetail, summary="Mark completed")
async def complete_ticket(
    ticket_id: UUID,
    service: TicketService = Depends(get_ticket_service)
):
    return _detail(service, await service.complete(ticket_id))


@router.post("/{ticket_id}/close", response_model=TicketDetail, summary="Close ticket")
async def close_ticket(
    ticket_id: UUID,
    service: TicketService = Depends(get_ticket_service)
):
    return _detail(service, await service.close(ticket_id))


@router.post("/{ticket_id}/escalate", response_model=TicketDetail, summary="Raise severity")
async def escalate_ticket(
    ticket_id: UUID,
    request: EscalateRequest,
    service: TicketService = Depends(get_ticket_service)
):
    return _detail(service, await service.escalate(ticket_id, request.severity))


@router.post(
    "/{ticket_id}/replies",
    response_model=ReplyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post a reply"
)
async def create_reply(
    ticket_id: UUID,
    request: ReplyCreateRequest,
    actor_id: str = Depends(get_actor_id),
    service: TicketService = Depends(get_ticket_service)
):
    reply = await service.reply(ticket_id, actor_id, request.message, request.is_staff_reply)
    return ReplyResponse.model_validate(reply)


# Export router for inclusion in main app
tickets_router = router
