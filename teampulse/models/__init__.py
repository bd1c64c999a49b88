"""Models package for TeamPulse."""

# Import base first
from .base import Base

# Import all model classes for easy access
from .activity import Activity, SOURCES, ACTIVITY_TYPES
from .identity import Identity, IdentityAlternateEmail
from .project import Project, ProjectAlias, ALIAS_SOURCES
from .transform_state import TransformState
from .insight import Insight
from .raw_sources import (
    EmailMetadataRecord,
    SlackMessageRecord,
    JiraIssueRecord,
    GitHubWebhookEventRecord,
    GitHubUserRecord,
)
from .refs import Resolved, Unresolved

__all__ = [
    "Base",
    "Activity",
    "SOURCES",
    "ACTIVITY_TYPES",
    "Identity",
    "IdentityAlternateEmail",
    "Project",
    "ProjectAlias",
    "ALIAS_SOURCES",
    "TransformState",
    "Insight",
    "EmailMetadataRecord",
    "SlackMessageRecord",
    "JiraIssueRecord",
    "GitHubWebhookEventRecord",
    "GitHubUserRecord",
    "Resolved",
    "Unresolved",
]
