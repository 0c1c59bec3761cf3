"""
Tests for TicketService against a real (SQLite) database.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from ticketflow.config import AssignmentState, SLAState, TicketSeverity, TicketStatus
from ticketflow.core import (
    AlreadyAssignedException,
    ConcurrentModificationException,
    InvalidTransitionException,
    NotOwnerException,
    ResourceNotFoundException,
    TicketFinalizedException,
    ValidationException,
)
from ticketflow.loyalty.domain import PriorityLoyaltyRule
from ticketflow.sla.application import SLASweepService, StaticConfigProvider
from ticketflow.sla.domain import SLARule
from ticketflow.tickets.application import TicketQuery
from ticketflow.tickets.infrastructure import ReplyModel, SQLAlchemyTicketRepository, TicketModel

from conftest import T0


async def add_sla_rule(sla_rule_service, severity, level, first, resolution):
    return await sla_rule_service.create_rule(SLARule(
        id=None,
        name=f"{severity.value} / {level}",
        severity=severity,
        priority_level=level,
        first_response_minutes=first,
        resolution_minutes=resolution,
    ))


async def open_ticket(service, session, **kwargs):
    kwargs.setdefault("customer_id", "cust-1")
    kwargs.setdefault("subject", "Key rejected")
    kwargs.setdefault("now", T0)
    ticket = await service.create_ticket(**kwargs)
    await session.commit()
    return ticket


# ---------- creation ----------

async def test_create_commits_deadlines_from_matrix(ticket_service, sla_rule_service, session):
    await add_sla_rule(sla_rule_service, TicketSeverity.HIGH, 1, 120, 1440)

    ticket = await open_ticket(
        ticket_service, session, severity=TicketSeverity.HIGH, plan_priority_level=1
    )

    assert ticket.ticket_code == "TCK-0001"
    assert ticket.status == TicketStatus.NEW
    assert ticket.assignment_state == AssignmentState.UNASSIGNED
    assert ticket.priority_level == 1
    assert ticket.first_response_due_at == T0 + timedelta(hours=2)
    assert ticket.resolution_due_at == T0 + timedelta(hours=24)


async def test_ticket_codes_increase(ticket_service, session):
    first = await open_ticket(ticket_service, session)
    second = await open_ticket(ticket_service, session)

    assert (first.ticket_code, second.ticket_code) == ("TCK-0001", "TCK-0002")


async def test_missing_matrix_cell_falls_back_to_default_pair(ticket_service, session, sla_config):
    ticket = await open_ticket(ticket_service, session, severity=TicketSeverity.CRITICAL)

    assert ticket.first_response_due_at == T0 + timedelta(minutes=sla_config.default_first_response_minutes)
    assert ticket.resolution_due_at == T0 + timedelta(minutes=sla_config.default_resolution_minutes)


async def test_inactive_matrix_cell_is_a_gap(ticket_service, sla_rule_service, session):
    rule = await add_sla_rule(sla_rule_service, TicketSeverity.MEDIUM, 0, 10, 20)
    await sla_rule_service.toggle_rule(rule.id)

    ticket = await open_ticket(ticket_service, session)

    assert ticket.resolution_due_at == T0 + timedelta(minutes=480)


async def test_priority_level_from_loyalty_spend(ticket_service, priority_service, sla_rule_service, session):
    await priority_service.create_rule(PriorityLoyaltyRule(None, Decimal("500000"), 1))
    await priority_service.create_rule(PriorityLoyaltyRule(None, Decimal("2000000"), 2))
    await add_sla_rule(sla_rule_service, TicketSeverity.MEDIUM, 2, 15, 120)

    vip = await open_ticket(ticket_service, session, total_spend=Decimal("2500000"))
    plan_only = await open_ticket(ticket_service, session, total_spend=Decimal("10"), plan_priority_level=1)

    assert vip.priority_level == 2
    assert vip.resolution_due_at == T0 + timedelta(minutes=120)
    assert plan_only.priority_level == 1


@pytest.mark.parametrize("plan_level", [-1, 3, 7])
async def test_plan_level_outside_known_levels_rejected(ticket_service, session, plan_level):
    with pytest.raises(ValidationException):
        await open_ticket(ticket_service, session, plan_priority_level=plan_level)
    await session.rollback()

    count = (await session.execute(select(func.count()).select_from(TicketModel))).scalar_one()
    assert count == 0


# ---------- SLA over the lifecycle ----------

async def test_sla_status_through_resolution(ticket_service, sla_rule_service, session):
    await add_sla_rule(sla_rule_service, TicketSeverity.HIGH, 1, 120, 1440)
    ticket = await open_ticket(
        ticket_service, session, severity=TicketSeverity.HIGH, plan_priority_level=1
    )

    assert ticket_service.sla_status(ticket, T0 + timedelta(hours=23)) == SLAState.WARNING
    assert ticket_service.sla_status(ticket, T0 + timedelta(hours=25)) == SLAState.OVERDUE

    await ticket_service.claim(ticket.id, "alice", now=T0 + timedelta(hours=1))
    done = await ticket_service.complete(ticket.id, now=T0 + timedelta(hours=26))

    assert done.resolved_at == T0 + timedelta(hours=26)
    assert ticket_service.sla_status(done, T0 + timedelta(hours=27)) == SLAState.OK


# ---------- assignment ----------

async def test_claim_then_second_claim_rejected(ticket_service, session):
    ticket = await open_ticket(ticket_service, session)

    claimed = await ticket_service.claim(ticket.id, "alice")
    await session.commit()

    assert claimed.status == TicketStatus.IN_PROGRESS
    assert claimed.assignee_id == "alice"
    with pytest.raises(AlreadyAssignedException):
        await ticket_service.claim(ticket.id, "bob")


async def test_concurrent_claims_exactly_one_wins(session_maker, service_factory, sla_config):
    async with session_maker() as session:
        ticket = await service_factory(session, sla_config).create_ticket("cust-1", "Race", now=T0)
        await session.commit()

    async def competing_claim():
        async with session_maker() as other:
            await service_factory(other, sla_config).claim(ticket.id, "alice")
            await other.commit()

    class RacingRepository(SQLAlchemyTicketRepository):
        """Lets the competitor commit between our read and our write."""

        async def get_for_update(self, ticket_id):
            loaded = await super().get_for_update(ticket_id)
            await competing_claim()
            return loaded

    async with session_maker() as session:
        racing = service_factory(session, sla_config, RacingRepository(session))
        with pytest.raises(AlreadyAssignedException):
            await racing.claim(ticket.id, "bob")
        await session.rollback()

    async with session_maker() as session:
        stored = await service_factory(session, sla_config).get_ticket(ticket.id)

    assert stored.assignee_id == "alice"
    assert stored.assignment_state == AssignmentState.ASSIGNED


async def test_save_rejects_snapshot_older_than_the_row(session_maker, service_factory, sla_config):
    async with session_maker() as session:
        ticket = await service_factory(session, sla_config).create_ticket("cust-1", "Race", now=T0)
        await session.commit()

    async with session_maker() as session:
        stale = await SQLAlchemyTicketRepository(session).get(ticket.id)

    async with session_maker() as session:
        await service_factory(session, sla_config).claim(ticket.id, "alice")
        await session.commit()

    stale.assignee_id = "bob"
    async with session_maker() as session:
        with pytest.raises(ConcurrentModificationException):
            await SQLAlchemyTicketRepository(session).save(stale)
        await session.rollback()

    async with session_maker() as session:
        stored = await service_factory(session, sla_config).get_ticket(ticket.id)

    assert stored.assignee_id == "alice"
    assert stored.version == 2


async def test_transfer_by_non_owner_keeps_ownership(ticket_service, session):
    ticket = await open_ticket(ticket_service, session)
    await ticket_service.claim(ticket.id, "alice")
    await session.commit()

    with pytest.raises(NotOwnerException):
        await ticket_service.transfer(ticket.id, "mallory", "tech-1")
    await session.rollback()

    stored = await ticket_service.get_ticket(ticket.id)
    assert stored.assignee_id == "alice"
    assert stored.assignment_state == AssignmentState.ASSIGNED


async def test_transfer_and_unassign(ticket_service, session):
    ticket = await open_ticket(ticket_service, session)
    await ticket_service.claim(ticket.id, "alice")

    transferred = await ticket_service.transfer(ticket.id, "alice", "tech-1")
    assert transferred.assignment_state == AssignmentState.TECHNICAL
    assert transferred.assignee_id == "tech-1"

    released = await ticket_service.unassign(ticket.id)
    assert released.assignment_state == AssignmentState.UNASSIGNED
    assert released.assignee_id is None
    assert released.status == TicketStatus.IN_PROGRESS


async def test_unknown_ticket_raises_not_found(ticket_service):
    with pytest.raises(ResourceNotFoundException):
        await ticket_service.claim(uuid4(), "alice")


# ---------- replies & timestamps ----------

async def test_first_responded_at_is_set_once(ticket_service, session):
    ticket = await open_ticket(ticket_service, session)

    await ticket_service.reply(ticket.id, "cust-1", "hello?", is_staff=False, now=T0 + timedelta(minutes=1))
    await ticket_service.reply(ticket.id, "alice", "on it", is_staff=True, now=T0 + timedelta(minutes=5))
    await ticket_service.reply(ticket.id, "alice", "done", is_staff=True, now=T0 + timedelta(minutes=9))
    await session.commit()

    stored = await ticket_service.get_ticket(ticket.id)
    assert stored.first_responded_at == T0 + timedelta(minutes=5)
    assert stored.status == TicketStatus.NEW
    assert [r.message for r in stored.ordered_replies()] == ["hello?", "on it", "done"]
    assert all(r.reply_id is not None for r in stored.replies)


async def test_resolved_at_never_moves(ticket_service, session):
    ticket = await open_ticket(ticket_service, session)
    await ticket_service.claim(ticket.id, "alice")
    await ticket_service.complete(ticket.id, now=T0 + timedelta(hours=2))

    closed = await ticket_service.close(ticket.id, now=T0 + timedelta(days=3))

    assert closed.status == TicketStatus.CLOSED
    assert closed.resolved_at == T0 + timedelta(hours=2)


async def test_reply_on_closed_ticket_writes_nothing(ticket_service, session):
    ticket = await open_ticket(ticket_service, session)
    await ticket_service.close(ticket.id)
    await session.commit()

    with pytest.raises(TicketFinalizedException):
        await ticket_service.reply(ticket.id, "alice", "too late", is_staff=True)
    await session.rollback()

    count = (await session.execute(select(func.count()).select_from(ReplyModel))).scalar_one()
    assert count == 0


async def test_close_in_progress_rejected_and_status_kept(ticket_service, session):
    ticket = await open_ticket(ticket_service, session)
    await ticket_service.claim(ticket.id, "alice")
    await session.commit()

    with pytest.raises(InvalidTransitionException):
        await ticket_service.close(ticket.id)
    await session.rollback()

    assert (await ticket_service.get_ticket(ticket.id)).status == TicketStatus.IN_PROGRESS


async def test_escalate_keeps_deadlines(ticket_service, session):
    ticket = await open_ticket(ticket_service, session, severity=TicketSeverity.LOW)

    escalated = await ticket_service.escalate(ticket.id, TicketSeverity.CRITICAL)

    assert escalated.severity == TicketSeverity.CRITICAL
    assert escalated.resolution_due_at == ticket.resolution_due_at


# ---------- queue ----------

async def test_queue_order_and_filters(ticket_service, sla_rule_service, session):
    await add_sla_rule(sla_rule_service, TicketSeverity.LOW, 0, 60, 600)
    await add_sla_rule(sla_rule_service, TicketSeverity.HIGH, 0, 30, 120)

    # HIGH (120 min) is overdue at T0+3h; LOW (600 min) is OK
    low_unassigned = await open_ticket(ticket_service, session, severity=TicketSeverity.LOW)
    low_owned = await open_ticket(ticket_service, session, severity=TicketSeverity.LOW)
    high = await open_ticket(ticket_service, session, severity=TicketSeverity.HIGH)
    await ticket_service.claim(low_owned.id, "alice")
    await session.commit()

    now = T0 + timedelta(hours=3)
    rows, total = await ticket_service.list_tickets(TicketQuery(), now=now)

    assert total == 3
    assert [t.id for t, _ in rows] == [high.id, low_unassigned.id, low_owned.id]
    assert rows[0][1] == SLAState.OVERDUE

    overdue, overdue_total = await ticket_service.list_tickets(
        TicketQuery(sla_status=SLAState.OVERDUE), now=now
    )
    assert overdue_total == 1 and overdue[0][0].id == high.id

    owned, _ = await ticket_service.list_tickets(
        TicketQuery(assignment_state=AssignmentState.ASSIGNED), now=now
    )
    assert [t.id for t, _ in owned] == [low_owned.id]

    by_code, _ = await ticket_service.list_tickets(TicketQuery(q="TCK-0002"), now=now)
    assert [t.id for t, _ in by_code] == [low_owned.id]


async def test_queue_ties_break_on_newest_code(ticket_service, session):
    first = await open_ticket(ticket_service, session)
    second = await open_ticket(ticket_service, session)

    rows, _ = await ticket_service.list_tickets(TicketQuery(), now=T0)

    assert [t.id for t, _ in rows] == [second.id, first.id]


async def test_queue_paging(ticket_service, session):
    for _ in range(5):
        await open_ticket(ticket_service, session)

    page, total = await ticket_service.list_tickets(TicketQuery(page=2, page_size=2), now=T0)

    assert total == 5
    assert [t.ticket_code for t, _ in page] == ["TCK-0003", "TCK-0002"]


async def test_queue_sla_status_matches_ticket_status(ticket_service, sla_rule_service, session):
    await add_sla_rule(sla_rule_service, TicketSeverity.HIGH, 0, 30, 120)
    ticket = await open_ticket(ticket_service, session, severity=TicketSeverity.HIGH)

    # 120 min SLA, warning window 24 min
    for minutes, expected in [(90, SLAState.OK), (100, SLAState.WARNING), (121, SLAState.OVERDUE)]:
        now = T0 + timedelta(minutes=minutes)
        assert ticket_service.sla_status(ticket, now) == expected
        rows, total = await ticket_service.list_tickets(TicketQuery(sla_status=expected), now=now)
        assert total == 1
        assert [(t.id, sla) for t, sla in rows] == [(ticket.id, expected)]


async def test_queue_resolved_ticket_is_ok_after_deadline(ticket_service, sla_rule_service, session):
    await add_sla_rule(sla_rule_service, TicketSeverity.HIGH, 0, 30, 120)
    done = await open_ticket(ticket_service, session, severity=TicketSeverity.HIGH)
    late = await open_ticket(ticket_service, session, severity=TicketSeverity.HIGH)
    await ticket_service.claim(done.id, "alice", now=T0 + timedelta(minutes=10))
    await ticket_service.complete(done.id, now=T0 + timedelta(minutes=60))
    await session.commit()

    rows, total = await ticket_service.list_tickets(TicketQuery(), now=T0 + timedelta(hours=5))

    assert total == 2
    assert [(t.id, sla) for t, sla in rows] == [(late.id, SLAState.OVERDUE), (done.id, SLAState.OK)]


# ---------- sweep ----------

async def test_sweep_counts_open_tickets_only(ticket_service, sla_rule_service, session, sla_config):
    await add_sla_rule(sla_rule_service, TicketSeverity.HIGH, 0, 30, 120)
    await open_ticket(ticket_service, session, severity=TicketSeverity.HIGH)
    await open_ticket(ticket_service, session, severity=TicketSeverity.LOW)
    closed = await open_ticket(ticket_service, session)
    await ticket_service.close(closed.id)
    await session.commit()

    sweep = SLASweepService(SQLAlchemyTicketRepository(session), StaticConfigProvider(sla_config))
    summary = await sweep.evaluate_open_tickets(now=T0 + timedelta(hours=3))

    assert summary.total == 2
    assert summary.overdue == 1
    assert summary.first_response_overdue == 2
