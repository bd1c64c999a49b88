"""Canonical activity log model."""

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    JSON,
    UniqueConstraint,
    Index,
)
from datetime import datetime, timezone

from .base import Base
from .refs import make_ref
from teampulse.utils.timezone import isoformat


SOURCES = ("email", "slack", "github", "jira")

ACTIVITY_TYPES = (
    "message",
    "commit",
    "pull_request",
    "review",
    "ticket_created",
    "status_change",
    "ticket_updated",
    "deployment",
)


class Activity(Base):
    """
    One normalized event derived from a raw source record.

    Rows are written once by the transformer that owns the source and are
    never updated afterwards. ``(source, source_ref_id)`` is the idempotency
    key that makes transformer re-runs safe.
    """

    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    org_id = Column(String(255), nullable=False, index=True)
    source = Column(String(20), nullable=False)
    activity_type = Column(String(50), nullable=False)
    actor_email = Column(String(255), nullable=False, index=True)
    actor_identity_id = Column(Integer, nullable=True)  # Soft key to identities.id
    project_alias = Column(String(255), nullable=False, default="unknown")
    project_id = Column(String(36), nullable=True)  # Soft key to projects.project_id
    timestamp = Column(DateTime(timezone=True), nullable=False)
    metadata_json = Column(JSON, nullable=False, default=dict)
    source_ref_id = Column(String(512), nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("source", "source_ref_id", name="uq_activity_source_ref"),
        Index("ix_activities_org_time", "org_id", "timestamp"),
        Index("ix_activities_actor_time", "actor_email", "timestamp"),
        Index("ix_activities_project_alias_source", "project_alias", "source"),
        Index("ix_activities_project_id_source", "project_id", "source"),
    )

    @property
    def meta(self) -> dict:
        """Metadata dict, never None."""
        return self.metadata_json or {}

    @property
    def project_ref(self):
        return make_ref(self.project_id, self.project_alias)

    @property
    def actor_ref(self):
        return make_ref(self.actor_identity_id, self.actor_email)

    def __repr__(self):
        return (
            f"<Activity(source={self.source}, type={self.activity_type}, "
            f"ref={self.source_ref_id}, actor={self.actor_email})>"
        )

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "org_id": self.org_id,
            "source": self.source,
            "activity_type": self.activity_type,
            "actor_email": self.actor_email,
            "actor_identity_id": self.actor_identity_id,
            "project_alias": self.project_alias,
            "project_id": self.project_id,
            "timestamp": isoformat(self.timestamp),
            "metadata": self.meta,
            "source_ref_id": self.source_ref_id,
        }
