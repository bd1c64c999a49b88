"""Canonical person identity models."""

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base
from teampulse.utils.timezone import isoformat


class Identity(Base):
    """Person record unifying accounts across email, GitHub, Slack and Jira."""

    __tablename__ = "identities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    primary_email = Column(String(255), unique=True, nullable=False)
    display_name = Column(String(255), nullable=False)
    org_id = Column(String(255), nullable=False, default="default", index=True)
    default_project_id = Column(String(36), nullable=True)

    # Linked source accounts
    github_login = Column(String(255), nullable=True, index=True)
    github_id = Column(String(50), nullable=True)
    slack_user_id = Column(String(50), nullable=True, index=True)
    slack_team_id = Column(String(50), nullable=True)
    jira_account_id = Column(String(255), nullable=True, index=True)

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

    alternate_email_rows = relationship(
        "IdentityAlternateEmail",
        back_populates="identity",
        cascade="all, delete-orphan",
        order_by="IdentityAlternateEmail.id",
    )

    @property
    def alternate_emails(self):
        return [row.email for row in self.alternate_email_rows]

    def __repr__(self):
        return f"<Identity(id={self.id}, primary_email={self.primary_email})>"

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "primary_email": self.primary_email,
            "alternate_emails": self.alternate_emails,
            "display_name": self.display_name,
            "org_id": self.org_id,
            "default_project_id": self.default_project_id,
            "github_login": self.github_login,
            "github_id": self.github_id,
            "slack_user_id": self.slack_user_id,
            "slack_team_id": self.slack_team_id,
            "jira_account_id": self.jira_account_id,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class IdentityAlternateEmail(Base):
    """Alternate address of an identity. One row per (identity, email)."""

    __tablename__ = "identity_alternate_emails"

    id = Column(Integer, primary_key=True, autoincrement=True)
    identity_id = Column(
        Integer,
        ForeignKey("identities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email = Column(String(255), nullable=False, index=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    identity = relationship("Identity", back_populates="alternate_email_rows")

    __table_args__ = (
        UniqueConstraint("identity_id", "email", name="uq_identity_alternate_email"),
    )

    def __repr__(self):
        return f"<IdentityAlternateEmail(identity_id={self.identity_id}, email={self.email})>"
