"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="ticketflow", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/tickets",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Configuration ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA configuration YAML file"
    )
    sla_evaluation_interval: int = Field(
        default=300,
        description="Seconds between SLA sweeps (0 disables the sweep)",
        ge=0
    )

    # ========== Listing ==========
    max_page_size: int = Field(
        default=100,
        description="Upper bound for page_size on ticket listings",
        ge=1
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    NEW = "New"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CLOSED = "Closed"


class TicketSeverity(str, Enum):
    """Ticket severity, ordered from least to most severe."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return SEVERITY_ORDER.index(self)


class AssignmentState(str, Enum):
    """Who currently owns a ticket."""
    UNASSIGNED = "Unassigned"
    ASSIGNED = "Assigned"       # Customer care staff
    TECHNICAL = "Technical"     # Handed over to technical support


class SLAState(str, Enum):
    """SLA status states, ordered by urgency."""
    OK = "OK"
    WARNING = "Warning"
    OVERDUE = "Overdue"


class PriorityLevel:
    """Customer support priority levels."""
    STANDARD = 0
    PRIORITY = 1
    VIP = 2


# ========== Lists for validation ==========

SEVERITY_ORDER = [
    TicketSeverity.LOW, TicketSeverity.MEDIUM,
    TicketSeverity.HIGH, TicketSeverity.CRITICAL
]
FINAL_STATUSES = (TicketStatus.COMPLETED, TicketStatus.CLOSED)
ACTIVE_STATUSES = (TicketStatus.NEW, TicketStatus.IN_PROGRESS)
# Level 0 is the implicit default and is never configured by a loyalty rule
CONFIGURABLE_PRIORITY_LEVELS = [PriorityLevel.PRIORITY, PriorityLevel.VIP]
