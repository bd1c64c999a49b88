"""Typed raw records, one dataclass per source.

These solve the "detached object" problem the same way the other DTOs do:
data is copied off the SQLAlchemy row while the session is active, and every
optional field gets an explicit default so mappers never have to probe
dicts for missing keys.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any, Union

from dateutil import parser as date_parser

from teampulse.utils.timezone import ensure_utc


def _parse_datetime(value) -> Optional[datetime]:
    """Accept datetimes or ISO strings stored inside JSON columns."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(date_parser.isoparse(str(value)))


@dataclass
class EmailRawMessage:
    """Email metadata record."""
    message_id: str
    org_id: Optional[str] = None
    user_email: Optional[str] = None
    sender: Optional[str] = None
    receivers: List[str] = field(default_factory=list)
    subject: Optional[str] = None
    has_body: bool = False
    timestamp_ms: Optional[int] = None
    thread_id: Optional[str] = None

    source = "email"

    @classmethod
    def from_orm(cls, row):
        """Create from an EmailMetadataRecord. Must be called while the session is still active!"""
        if row is None:
            return None
        return cls(
            message_id=row.message_id,
            org_id=row.org_id,
            user_email=row.user_email,
            sender=row.sender,
            receivers=list(row.receivers or []),
            subject=row.subject,
            has_body=bool(row.body),
            timestamp_ms=row.timestamp,
            thread_id=row.thread_id,
        )


@dataclass
class SlackMention:
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    type: str = "user"


@dataclass
class SlackRawEvent:
    """Slack message event."""
    event_id: str
    team_id: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    email: Optional[str] = None
    channel_id: Optional[str] = None
    text: Optional[str] = None
    timestamp: Optional[float] = None  # Epoch seconds
    thread_ts: Optional[float] = None
    mentions: List[SlackMention] = field(default_factory=list)
    attachment_count: int = 0

    source = "slack"

    @classmethod
    def from_orm(cls, row):
        """Create from a SlackMessageRecord."""
        if row is None:
            return None
        mentions = [
            SlackMention(
                id=m.get("id"),
                name=m.get("name"),
                email=m.get("email"),
                type=m.get("type") or "user",
            )
            for m in (row.mentions or [])
            if isinstance(m, dict)
        ]
        return cls(
            event_id=row.event_id,
            team_id=row.team_id,
            user_id=row.user_id,
            user_name=row.user_name,
            email=row.email,
            channel_id=row.channel_id,
            text=row.text,
            timestamp=row.timestamp,
            thread_ts=row.thread_ts,
            mentions=mentions,
            attachment_count=len(row.attachments or []),
        )


@dataclass
class JiraStatusChange:
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    field_name: str = "status"


@dataclass
class JiraWorklog:
    author: Optional[str] = None
    time_spent: Optional[str] = None
    time_spent_seconds: int = 0
    started: Optional[datetime] = None


@dataclass
class JiraRawIssue:
    """Jira issue with its status changelog and worklogs."""
    ticket: str
    workspace: Optional[str] = None
    assignee: Optional[str] = None
    assignee_email: Optional[str] = None
    reporter: Optional[str] = None
    reporter_email: Optional[str] = None
    priority: Optional[str] = None
    issue_type: Optional[str] = None
    labels: List[str] = field(default_factory=list)
    components: List[str] = field(default_factory=list)
    status_changes: List[JiraStatusChange] = field(default_factory=list)
    worklogs: List[JiraWorklog] = field(default_factory=list)
    assigned_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    source = "jira"

    @classmethod
    def from_orm(cls, row):
        """Create from a JiraIssueRecord."""
        if row is None:
            return None
        changes = [
            JiraStatusChange(
                from_status=c.get("fromString"),
                to_status=c.get("toString"),
                field_name=c.get("field") or "status",
            )
            for c in (row.status_changes or [])
        ]
        worklogs = [
            JiraWorklog(
                author=w.get("author"),
                time_spent=w.get("timeSpent"),
                time_spent_seconds=w.get("timeSpentSeconds") or 0,
                started=_parse_datetime(w.get("started")),
            )
            for w in (row.worklogs or [])
        ]
        return cls(
            ticket=row.ticket,
            workspace=row.workspace,
            assignee=row.assignee,
            assignee_email=row.assignee_email,
            reporter=row.reporter,
            reporter_email=row.reporter_email,
            priority=row.priority,
            issue_type=row.issue_type,
            labels=list(row.labels or []),
            components=list(row.components or []),
            status_changes=changes,
            worklogs=worklogs,
            assigned_at=ensure_utc(row.assigned_at),
            created_at=ensure_utc(row.created_at),
            updated_at=ensure_utc(row.updated_at),
        )


@dataclass
class GitHubRawEvent:
    """GitHub webhook delivery."""
    id: str
    event_type: str
    event_action: Optional[str] = None
    installation_id: Optional[int] = None
    repository_id: Optional[int] = None
    repository_full_name: Optional[str] = None
    sender_login: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    source = "github"

    @classmethod
    def from_orm(cls, row):
        """Create from a GitHubWebhookEventRecord."""
        if row is None:
            return None
        return cls(
            id=str(row.id),
            event_type=row.event_type,
            event_action=row.event_action,
            installation_id=row.installation_id,
            repository_id=row.repository_id,
            repository_full_name=row.repository_full_name,
            sender_login=row.sender_login,
            payload=dict(row.payload or {}),
            created_at=ensure_utc(row.created_at),
        )


RawRecord = Union[EmailRawMessage, SlackRawEvent, JiraRawIssue, GitHubRawEvent]
