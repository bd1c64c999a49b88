"""Generated insight model."""

from sqlalchemy import Column, Integer, String, Text, Float, DateTime, JSON, Index
from datetime import datetime, timezone

from .base import Base
from teampulse.utils.timezone import isoformat


INSIGHT_CATEGORIES = (
    "observation",
    "anomaly",
    "trend",
    "suggestion",
    "risk",
    "praise",
    "workload",
    "process",
)

INSIGHT_PERSONAS = ("hr", "engineering", "product", "all")


class Insight(Base):
    """Natural-language insight returned by the external summarizer."""

    __tablename__ = "insights"

    id = Column(Integer, primary_key=True, autoincrement=True)
    org_id = Column(String(255), nullable=False, index=True)
    category = Column(String(50), nullable=False, default="observation")
    persona = Column(String(20), nullable=False)
    title = Column(String(500), nullable=False)
    body = Column(Text, nullable=False)
    confidence = Column(Float, nullable=False, default=0.5)  # 0-1
    related_metric = Column(String(255), nullable=True)  # e.g., "SPACE - Satisfaction"
    related_project_id = Column(String(255), nullable=True, index=True)
    related_email = Column(String(255), nullable=True, index=True)
    sources = Column(JSON, nullable=False, default=list)  # e.g., ["Slack", "GitHub"]
    generated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    expires_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_insights_org_generated", "org_id", "generated_at"),
        Index("ix_insights_org_persona_generated", "org_id", "persona", "generated_at"),
    )

    def __repr__(self):
        return f"<Insight(org={self.org_id}, persona={self.persona}, title={self.title!r})>"

    def to_dict(self):
        return {
            "id": self.id,
            "org_id": self.org_id,
            "category": self.category,
            "persona": self.persona,
            "title": self.title,
            "body": self.body,
            "confidence": self.confidence,
            "related_metric": self.related_metric,
            "related_project_id": self.related_project_id,
            "related_email": self.related_email,
            "sources": self.sources or [],
            "generated_at": isoformat(self.generated_at),
            "expires_at": isoformat(self.expires_at),
        }
