"""Canonical project models."""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Boolean,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base
from teampulse.utils.timezone import isoformat


# Alias kinds per source: repo full names, channel ids, Jira keys, subject tokens
ALIAS_SOURCES = ("github", "slack", "jira", "email")


class Project(Base):
    """Project record unifying per-source aliases."""

    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(String(36), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    org_id = Column(String(255), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    aliases = relationship(
        "ProjectAlias",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectAlias.id",
    )

    def aliases_by_source(self):
        """Alias lists keyed by source, every source present."""
        grouped = {source: [] for source in ALIAS_SOURCES}
        for row in self.aliases:
            grouped.setdefault(row.source, []).append(row.alias)
        return grouped

    def __repr__(self):
        return f"<Project(project_id={self.project_id}, name={self.name}, org={self.org_id})>"

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "org_id": self.org_id,
            "aliases": self.aliases_by_source(),
            "is_active": self.is_active,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class ProjectAlias(Base):
    """
    One per-source alias of a project.

    The unique constraint on (source, alias) means an alias maps to at most
    one project per source type.
    """

    __tablename__ = "project_aliases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(
        String(36),
        ForeignKey("projects.project_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    source = Column(String(20), nullable=False)
    alias = Column(String(255), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    project = relationship("Project", back_populates="aliases")

    __table_args__ = (
        UniqueConstraint("source", "alias", name="uq_project_alias_source"),
    )

    def __repr__(self):
        return f"<ProjectAlias(project={self.project_id}, source={self.source}, alias={self.alias})>"
