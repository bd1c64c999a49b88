"""Raw per-source tables written by the ingestion jobs.

The transformers only read these. Column names follow what the ingestion
jobs store, so lists and nested payloads are JSON columns.
"""

from sqlalchemy import (
    Column,
    Integer,
    BigInteger,
    Float,
    String,
    Text,
    DateTime,
    JSON,
)
from datetime import datetime, timezone

from .base import Base


class EmailMetadataRecord(Base):
    """Email metadata synced from a mailbox."""

    __tablename__ = "email_metadata"

    id = Column(Integer, primary_key=True, autoincrement=True)
    org_id = Column(String(255), nullable=True, index=True)
    user_email = Column(String(255), nullable=True)  # Mailbox owner
    message_id = Column(String(512), unique=True, nullable=False)
    sender = Column(String(255), nullable=True)
    receivers = Column(JSON, nullable=False, default=list)
    subject = Column(Text, nullable=True)
    body = Column(Text, nullable=True)
    timestamp = Column(BigInteger, nullable=True, index=True)  # Epoch milliseconds
    thread_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<EmailMetadataRecord(message_id={self.message_id}, org={self.org_id})>"


class SlackMessageRecord(Base):
    """Slack message captured from the Events API."""

    __tablename__ = "slack_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(255), unique=True, nullable=False)
    team_id = Column(String(50), nullable=True, index=True)
    user_id = Column(String(50), nullable=True)
    user_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    channel_id = Column(String(50), nullable=True)
    text = Column(Text, nullable=True)
    timestamp = Column(Float, nullable=True, index=True)  # Epoch seconds
    thread_ts = Column(Float, nullable=True)
    mentions = Column(JSON, nullable=False, default=list)  # [{id, name, email, type}]
    attachments = Column(JSON, nullable=False, default=list)  # [{name, url}]
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<SlackMessageRecord(event_id={self.event_id}, team={self.team_id})>"


class JiraIssueRecord(Base):
    """Jira issue snapshot with its changelog and worklogs."""

    __tablename__ = "jira_issues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    workspace = Column(String(255), nullable=True, index=True)
    ticket = Column(String(50), unique=True, nullable=False)
    assignee = Column(String(255), nullable=True)
    assignee_email = Column(String(255), nullable=True)
    assignee_account_id = Column(String(255), nullable=True)
    reporter = Column(String(255), nullable=True)
    reporter_email = Column(String(255), nullable=True)
    status = Column(String(100), nullable=True)
    priority = Column(String(50), nullable=True)
    issue_type = Column(String(50), nullable=True)
    labels = Column(JSON, nullable=False, default=list)
    components = Column(JSON, nullable=False, default=list)
    # [{field, fromString, toString}]
    status_changes = Column(JSON, nullable=False, default=list)
    # [{author, timeSpent, timeSpentSeconds, started}]
    worklogs = Column(JSON, nullable=False, default=list)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True, index=True)

    def __repr__(self):
        return f"<JiraIssueRecord(ticket={self.ticket}, workspace={self.workspace})>"


class GitHubWebhookEventRecord(Base):
    """GitHub App webhook delivery."""

    __tablename__ = "github_webhook_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String(100), nullable=False)
    event_action = Column(String(100), nullable=True)
    installation_id = Column(BigInteger, nullable=True, index=True)
    repository_id = Column(BigInteger, nullable=True)
    repository_full_name = Column(String(255), nullable=True)
    sender_id = Column(BigInteger, nullable=True)
    sender_login = Column(String(255), nullable=True)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=True, index=True)

    def __repr__(self):
        return f"<GitHubWebhookEventRecord(id={self.id}, type={self.event_type}, action={self.event_action})>"


class GitHubUserRecord(Base):
    """GitHub user who authorized the app; source of login to email lookups."""

    __tablename__ = "github_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    github_id = Column(BigInteger, nullable=True)
    login = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    installation_id = Column(BigInteger, nullable=True)

    def __repr__(self):
        return f"<GitHubUserRecord(login={self.login})>"
