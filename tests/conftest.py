"""
Shared fixtures: a throwaway SQLite database per test and service builders
bound to a session.
"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from ticketflow.infrastructure.database import (
    close_database,
    create_tables,
    drop_tables,
    get_session_maker,
    init_database,
)
from ticketflow.loyalty.application import PriorityRuleService
from ticketflow.loyalty.infrastructure import SQLAlchemyLoyaltyRuleRepository
from ticketflow.sla.application import SLAPolicyResolver, SLARuleService, StaticConfigProvider
from ticketflow.sla.domain import SLAConfig
from ticketflow.sla.infrastructure import SQLAlchemySLARuleRepository
from ticketflow.tickets.application import TicketService
from ticketflow.tickets.infrastructure import SQLAlchemyTicketRepository

T0 = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    """File-backed so that separate sessions see each other's commits."""
    init_database(f"sqlite+aiosqlite:///{tmp_path / 'ticketflow_test.db'}")
    await create_tables()
    yield get_session_maker()
    await drop_tables()
    await close_database()


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def sla_config():
    return SLAConfig()


def build_ticket_service(session, config: SLAConfig = None, ticket_repository=None) -> TicketService:
    return TicketService(
        ticket_repository or SQLAlchemyTicketRepository(session),
        PriorityRuleService(SQLAlchemyLoyaltyRuleRepository(session)),
        SLAPolicyResolver(SQLAlchemySLARuleRepository(session)),
        StaticConfigProvider(config),
    )


@pytest.fixture
def service_factory():
    """For tests that need services on more than one session."""
    return build_ticket_service


@pytest.fixture
def ticket_service(session, sla_config):
    return build_ticket_service(session, sla_config)


@pytest.fixture
def priority_service(session):
    return PriorityRuleService(SQLAlchemyLoyaltyRuleRepository(session))


@pytest.fixture
def sla_rule_service(session):
    return SLARuleService(SQLAlchemySLARuleRepository(session))
