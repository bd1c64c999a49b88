"""Configuration management for TeamPulse."""

import os
from dataclasses import dataclass, field
from typing import Optional, List
from dotenv import load_dotenv

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite:///database/teampulse.db"


@dataclass
class AgentConfig:
    """Main process configuration."""

    debug_mode: bool = False
    log_level: str = "INFO"
    database_url: str = DEFAULT_DATABASE_URL


@dataclass
class TransformConfig:
    """Transformer and orchestrator configuration."""

    default_lookback_days: int = 30
    lease_timeout_minutes: int = 60  # A run older than this is treated as abandoned
    default_org_id: str = "default"
    github_placeholder_domain: str = "github.local"
    source_order: List[str] = field(
        default_factory=lambda: ["email", "slack", "jira", "github"]
    )


@dataclass
class SchedulerConfig:
    """Celery broker and beat configuration."""

    broker_url: str = "redis://localhost:6379/0"
    result_backend: Optional[str] = None
    transform_schedule_minutes: int = 15


@dataclass
class InsightConfig:
    """Limits for the data handed to the insight summarizer."""

    slack_sample_limit: int = 50
    min_text_length: int = 10
    insight_ttl_days: int = 7


class Settings:
    """Main settings manager."""

    def __init__(self):
        self.agent = self._load_agent_config()
        self.transform = self._load_transform_config()
        self.scheduler = self._load_scheduler_config()
        self.insights = self._load_insight_config()

    @staticmethod
    def _load_agent_config() -> AgentConfig:
        return AgentConfig(
            debug_mode=os.getenv("DEBUG_MODE", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        )

    @staticmethod
    def _load_transform_config() -> TransformConfig:
        # Handle empty string env vars by treating them as defaults
        lookback = os.getenv("TRANSFORM_LOOKBACK_DAYS") or "30"
        lease = os.getenv("TRANSFORM_LEASE_TIMEOUT_MINUTES") or "60"

        return TransformConfig(
            default_lookback_days=int(lookback),
            lease_timeout_minutes=int(lease),
            default_org_id=os.getenv("DEFAULT_ORG_ID") or "default",
            github_placeholder_domain=os.getenv("GITHUB_PLACEHOLDER_DOMAIN")
            or "github.local",
        )

    @staticmethod
    def _load_scheduler_config() -> SchedulerConfig:
        """Load Celery configuration.

        The result backend reuses the application database, the same way
        task results are kept next to the rest of the data.
        """
        database_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
        if database_url.startswith("postgres://"):
            result_backend = "db+postgresql://" + database_url.split("://", 1)[1]
        else:
            result_backend = "db+" + database_url

        return SchedulerConfig(
            broker_url=os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0"),
            result_backend=os.getenv("CELERY_RESULT_BACKEND") or result_backend,
            transform_schedule_minutes=int(
                os.getenv("TRANSFORM_SCHEDULE_MINUTES") or "15"
            ),
        )

    @staticmethod
    def _load_insight_config() -> InsightConfig:
        return InsightConfig(
            slack_sample_limit=int(os.getenv("INSIGHT_SLACK_SAMPLE_LIMIT") or "50"),
            min_text_length=int(os.getenv("INSIGHT_MIN_TEXT_LENGTH") or "10"),
            insight_ttl_days=int(os.getenv("INSIGHT_TTL_DAYS") or "7"),
        )


settings = Settings()
