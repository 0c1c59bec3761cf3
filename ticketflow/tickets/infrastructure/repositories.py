"""
Ticket Infrastructure Repositories
===================================

Concrete implementation of the ticket repository using SQLAlchemy.
"""

import re
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import Float, and_, case, func, literal, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ticketflow.config import ACTIVE_STATUSES, AssignmentState, SLAState
from ticketflow.core import ConcurrentModificationException, RepositoryException
from ticketflow.infrastructure.database import epoch_seconds
from ticketflow.tickets.application.dto import TicketQuery
from ticketflow.tickets.application.services import SLA_SORT_RANK, ITicketRepository
from ticketflow.tickets.domain import Reply, Ticket
from ticketflow.tickets.infrastructure.models import ReplyModel, TicketModel

TICKET_CODE_PATTERN = re.compile(r"^\s*TCK-(\d+)\s*$", re.IGNORECASE)


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Handles persistence of Ticket entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session
        # Rows loaded for update. The session only holds weak references, and
        # save() must write against the version the guard was evaluated on.
        self._locked: dict[UUID, TicketModel] = {}

    # ---------- Mapping ----------

    @staticmethod
    def _to_domain(model: TicketModel, replies: Optional[List[ReplyModel]] = None) -> Ticket:
        return Ticket(
            id=model.id,
            ticket_number=model.ticket_number,
            customer_id=model.customer_id,
            subject=model.subject,
            description=model.description,
            severity=model.severity,
            priority_level=model.priority_level,
            first_response_due_at=model.first_response_due_at,
            resolution_due_at=model.resolution_due_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
            status=model.status,
            assignment_state=model.assignment_state,
            assignee_id=model.assignee_id,
            first_responded_at=model.first_responded_at,
            resolved_at=model.resolved_at,
            version=model.version,
            replies=[SQLAlchemyTicketRepository._reply_to_domain(r) for r in replies or []],
        )

    @staticmethod
    def _reply_to_domain(model: ReplyModel) -> Reply:
        return Reply(
            reply_id=model.id,
            ticket_id=model.ticket_id,
            sender_id=model.sender_id,
            is_staff_reply=model.is_staff_reply,
            message=model.message,
            sent_at=model.sent_at,
        )

    # ---------- Reads ----------

    async def next_ticket_number(self) -> int:
        result = await self._session.execute(select(func.max(TicketModel.ticket_number)))
        return (result.scalar_one_or_none() or 0) + 1

    async def get(self, ticket_id: UUID, with_replies: bool = False) -> Optional[Ticket]:
        result = await self._session.execute(
            select(TicketModel).where(TicketModel.id == ticket_id)
        )
        model = result.scalar_one_or_none()
        if not model:
            return None
        replies = await self._get_replies(ticket_id) if with_replies else None
        return self._to_domain(model, replies)

    async def get_for_update(self, ticket_id: UUID) -> Optional[Ticket]:
        stmt = (
            select(TicketModel)
            .where(TicketModel.id == ticket_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None
        self._locked[ticket_id] = model
        return self._to_domain(model)

    async def _get_replies(self, ticket_id: UUID) -> List[ReplyModel]:
        result = await self._session.execute(
            select(ReplyModel)
            .where(ReplyModel.ticket_id == ticket_id)
            .order_by(ReplyModel.sent_at, ReplyModel.id)
        )
        return list(result.scalars().all())

    @staticmethod
    def _queue_conditions(query: TicketQuery) -> list:
        conditions = []
        if query.status is not None:
            conditions.append(TicketModel.status == query.status)
        if query.severity is not None:
            conditions.append(TicketModel.severity == query.severity)
        if query.assignment_state is not None:
            conditions.append(TicketModel.assignment_state == query.assignment_state)
        if query.q and query.q.strip():
            term = query.q.strip()
            pattern = f"%{term}%"
            matches = [
                TicketModel.subject.ilike(pattern),
                TicketModel.customer_id.ilike(pattern),
            ]
            code = TICKET_CODE_PATTERN.match(term)
            if code:
                matches.append(TicketModel.ticket_number == int(code.group(1)))
            conditions.append(or_(*matches))
        return conditions

    @staticmethod
    def _sla_rank(now: datetime, warning_ratio: float):
        """SLAClock.sla_status as a SQL expression, mapped to its queue rank."""
        now_s = literal(now.timestamp(), Float)
        created = epoch_seconds(TicketModel.created_at)
        due = epoch_seconds(TicketModel.resolution_due_at)
        warning_from = due - (due - created) * literal(warning_ratio, Float)
        return case(
            (TicketModel.resolved_at.is_not(None), SLA_SORT_RANK[SLAState.OK]),
            (now_s > due, SLA_SORT_RANK[SLAState.OVERDUE]),
            (now_s > warning_from, SLA_SORT_RANK[SLAState.WARNING]),
            else_=SLA_SORT_RANK[SLAState.OK],
        )

    async def queue_page(
        self,
        query: TicketQuery,
        now: datetime,
        warning_ratio: float
    ) -> tuple[List[Ticket], int]:
        conditions = self._queue_conditions(query)
        sla_rank = self._sla_rank(now, warning_ratio)
        if query.sla_status is not None:
            conditions.append(sla_rank == SLA_SORT_RANK[query.sla_status])

        unassigned = TicketModel.assignment_state == AssignmentState.UNASSIGNED
        count_stmt = select(func.count()).select_from(TicketModel)
        stmt = select(TicketModel)
        if conditions:
            count_stmt = count_stmt.where(and_(*conditions))
            stmt = stmt.where(and_(*conditions))

        total = (await self._session.execute(count_stmt)).scalar_one()

        stmt = stmt.order_by(
            sla_rank,
            case((unassigned, 0), else_=1),
            case((unassigned, TicketModel.first_response_due_at), else_=TicketModel.resolution_due_at),
            TicketModel.ticket_number.desc(),
        ).limit(query.page_size).offset((query.page - 1) * query.page_size)

        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()], total

    async def list_active(self) -> List[Ticket]:
        result = await self._session.execute(
            select(TicketModel).where(TicketModel.status.in_(ACTIVE_STATUSES))
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    # ---------- Writes ----------

    async def add(self, ticket: Ticket) -> Ticket:
        model = TicketModel(
            id=ticket.id,
            ticket_number=ticket.ticket_number,
            customer_id=ticket.customer_id,
            subject=ticket.subject,
            description=ticket.description,
            severity=ticket.severity,
            priority_level=ticket.priority_level,
            status=ticket.status,
            assignment_state=ticket.assignment_state,
            assignee_id=ticket.assignee_id,
            first_response_due_at=ticket.first_response_due_at,
            resolution_due_at=ticket.resolution_due_at,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )
        self._session.add(model)
        await self._session.flush()
        return self._to_domain(model)

    async def save(self, ticket: Ticket) -> Ticket:
        model = self._locked.pop(ticket.id, None) or await self._session.get(TicketModel, ticket.id)
        if not model:
            raise RepositoryException(f"Ticket {ticket.id} not found")
        if model.version != ticket.version:
            raise ConcurrentModificationException(ticket.id, "save")

        # Immutable after creation: code, customer, content, priority, deadlines
        model.severity = ticket.severity
        model.status = ticket.status
        model.assignment_state = ticket.assignment_state
        model.assignee_id = ticket.assignee_id
        model.first_responded_at = ticket.first_responded_at
        model.resolved_at = ticket.resolved_at
        model.updated_at = ticket.updated_at

        new_replies = [r for r in ticket.replies if r.reply_id is None]
        reply_models = [
            ReplyModel(
                ticket_id=ticket.id,
                sender_id=r.sender_id,
                is_staff_reply=r.is_staff_reply,
                message=r.message,
                sent_at=r.sent_at,
            )
            for r in new_replies
        ]
        self._session.add_all(reply_models)

        try:
            await self._session.flush()
        except StaleDataError as e:
            raise ConcurrentModificationException(ticket.id, "save") from e

        for reply, reply_model in zip(new_replies, reply_models):
            reply.reply_id = reply_model.id
        ticket.version = model.version
        return ticket
