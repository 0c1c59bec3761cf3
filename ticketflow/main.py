"""
Ticketflow - Main Application
==============================

Support ticket workflow engine for the admin console.

Modules:
- Tickets: lifecycle state machine, assignment, replies, support queue
- SLA: severity x priority matrix, SLA clock, background sweep
- Loyalty: spend thresholds mapping customers to priority levels

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects, state machine
- Infrastructure: Database, config watcher, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

# Configuration
from ticketflow.config import settings

# Infrastructure
from ticketflow.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)

# SLA Module - External services
from ticketflow.sla.application import SLASweepService
from ticketflow.sla.infrastructure import SLAConfigManager, SLAScheduler

# Module Routers
from ticketflow.loyalty.interfaces import priority_rules_router
from ticketflow.sla.interfaces import sla_router
from ticketflow.tickets.infrastructure import SQLAlchemyTicketRepository
from ticketflow.tickets.interfaces import tickets_router

# Shared
from ticketflow.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)
from ticketflow.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load SLA configuration and watch it for changes
    4. Start SLA sweep scheduler (unless disabled)

    SHUTDOWN:
    1. Stop SLA scheduler
    2. Stop config watcher
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting ticketflow", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()
    # Development convenience; production schemas come from migrations
    await create_tables()

    sla_config_manager = SLAConfigManager()
    sla_config_manager.load(settings.sla_config_path)
    sla_config_manager.start_watching()
    app.state.sla_config_manager = sla_config_manager

    sla_scheduler = None
    if settings.sla_evaluation_interval > 0:
        async def sla_evaluation_job():
            """Background SLA sweep over open tickets."""
            async with get_session_context() as session:
                sweep = SLASweepService(SQLAlchemyTicketRepository(session), sla_config_manager)
                await sweep.evaluate_open_tickets()

        sla_scheduler = SLAScheduler(interval_seconds=settings.sla_evaluation_interval)
        await sla_scheduler.start(sla_evaluation_job)
    else:
        logger.info("SLA sweep disabled")
    app.state.sla_scheduler = sla_scheduler

    logger.info("ticketflow started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down ticketflow")

    if sla_scheduler:
        await sla_scheduler.stop()

    sla_config_manager.stop_watching()

    await close_database()

    logger.info("ticketflow shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Ticketflow API",
    description="""
    ## Support Ticket Workflow Engine

    ### Tickets
    - `POST /tickets` - Open a ticket (priority and SLA deadlines fixed at creation)
    - `GET /tickets` - Support queue ordered by SLA urgency
    - `GET /tickets/{id}` - Ticket detail with conversation
    - `POST /tickets/{id}/assign | transfer-tech | unassign | complete | close | escalate | replies`

    ### SLA
    - `/sla/rules` - Severity x priority matrix administration
    - `GET /sla/summary` - OK / Warning / Overdue counts over open tickets

    ### Priority rules
    - `/priority-rules` - Spend thresholds for Priority (1) and VIP (2)
    - `GET /priority-rules/resolve` - Priority level for a spend amount

    Acting staff is identified by the `X-Actor-Id` header.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)
app.state.settings = settings

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
register_exception_handlers(app)

# === Include Module Routers ===
app.include_router(tickets_router)
app.include_router(sla_router)
app.include_router(priority_rules_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "database": "connected",
                        "sla_config": "loaded",
                        "sla_scheduler": "running"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports database connectivity, SLA configuration and scheduler state.
    """
    checks = {}

    try:
        async with get_session_context() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "connected"
    except (SQLAlchemyError, RuntimeError) as e:
        logger.warning("Health check database query failed", extra={"error": str(e)})
        checks["database"] = "unavailable"

    config_manager = getattr(request.app.state, "sla_config_manager", None)
    checks["sla_config"] = "loaded" if config_manager else "defaults"

    scheduler = getattr(request.app.state, "sla_scheduler", None)
    checks["sla_scheduler"] = "running" if scheduler and scheduler.is_running else "stopped"

    return {
        "status": "healthy" if checks["database"] == "connected" else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "tickets": {"prefix": "/tickets"},
            "sla": {"prefix": "/sla"},
            "priority_rules": {"prefix": "/priority-rules"}
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ticketflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
