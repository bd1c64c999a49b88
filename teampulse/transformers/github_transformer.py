"""GitHub webhook events -> commit, pull_request, review and deployment activities."""

import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from teampulse.models.raw import GitHubRawEvent
from teampulse.models.raw_sources import GitHubWebhookEventRecord, GitHubUserRecord
from teampulse.transformers.base import BaseTransformer, ActivityDraft, Skipped
from teampulse.utils.timezone import utc_now

logger = logging.getLogger(__name__)

PULL_REQUEST_ACTIONS = {"opened", "closed", "merged", "reopened"}

EVENT_ACTIVITY_TYPES = {
    "push": "commit",
    "pull_request": "pull_request",
    "pull_request_review": "review",
    "deployment": "deployment",
    "deployment_status": "deployment",
}


def get_activity_type(event_type: str, event_action: Optional[str]) -> Optional[str]:
    """Map a webhook event type/action pair to an activity type, or None."""
    activity_type = EVENT_ACTIVITY_TYPES.get(event_type)
    if activity_type == "pull_request" and event_action not in PULL_REQUEST_ACTIONS:
        return None
    return activity_type


class LoginEmailCache:
    """GitHub login -> email lookups backed by the github_users table.

    Created per run and handed to the transformer, so nothing is shared
    between runs or tests. Unknown logins are cached as None.
    """

    def __init__(self, db: Session, placeholder_domain: str = "github.local"):
        self.db = db
        self.placeholder_domain = placeholder_domain
        self._emails: Dict[str, Optional[str]] = {}

    def lookup(self, login: Optional[str]) -> Optional[str]:
        if not login:
            return None
        if login not in self._emails:
            user = (
                self.db.query(GitHubUserRecord)
                .filter(GitHubUserRecord.login == login)
                .first()
            )
            self._emails[login] = user.email if user and user.email else None
        return self._emails[login]

    def email_for(self, login: Optional[str]) -> str:
        """Known email, or a placeholder so the activity is never dropped."""
        return self.lookup(login) or f"{login or 'unknown'}@{self.placeholder_domain}"


def build_metadata(event: GitHubRawEvent) -> Dict:
    metadata = {
        "event_type": event.event_type,
        "event_action": event.event_action,
        "sender_login": event.sender_login,
        "repository_id": event.repository_id,
    }
    payload = event.payload or {}
    pull_request = payload.get("pull_request") or {}

    if event.event_type == "push":
        metadata["commits"] = len(payload.get("commits") or [])
        metadata["ref"] = payload.get("ref")
        metadata["before"] = payload.get("before")
        metadata["after"] = payload.get("after")
    elif event.event_type == "pull_request":
        metadata["pr_number"] = pull_request.get("number")
        metadata["pr_title"] = pull_request.get("title")
        metadata["pr_state"] = pull_request.get("state")
        metadata["merged"] = pull_request.get("merged")
    elif event.event_type == "pull_request_review":
        metadata["pr_number"] = pull_request.get("number")
        metadata["review_state"] = (payload.get("review") or {}).get("state")
    elif event.event_type in ("deployment", "deployment_status"):
        metadata["environment"] = (payload.get("deployment") or {}).get("environment")
        metadata["deployment_state"] = (payload.get("deployment_status") or {}).get("state")

    return metadata


class GitHubTransformer(BaseTransformer):
    """One activity per mapped webhook event, keyed ``github:{event_type}:{id}``."""

    source = "github"
    raw_type = GitHubRawEvent

    def __init__(self, db: Session, resolver=None, email_cache: Optional[LoginEmailCache] = None):
        super().__init__(db, resolver)
        self.email_cache = email_cache

    def fetch(self, since, scope) -> List[GitHubWebhookEventRecord]:
        query = self.db.query(GitHubWebhookEventRecord)
        if since is not None:
            query = query.filter(GitHubWebhookEventRecord.created_at >= since)
        if scope:
            query = query.filter(GitHubWebhookEventRecord.installation_id == int(scope))
        return query.order_by(GitHubWebhookEventRecord.id.asc()).all()

    def transform(self, since=None, scope=None, cancel_event=None):
        if self.email_cache is None:
            # Fresh cache per run unless one was injected
            self.email_cache = LoginEmailCache(self.db)
            try:
                return super().transform(since, scope, cancel_event)
            finally:
                self.email_cache = None
        return super().transform(since, scope, cancel_event)

    def describe(self, row: GitHubWebhookEventRecord) -> str:
        return f"{row.event_type}:{row.id}"

    def map_record(self, event: GitHubRawEvent):
        ref = f"github:{event.event_type}:{event.id}"
        activity_type = get_activity_type(event.event_type, event.event_action)
        if not activity_type:
            return [Skipped(ref, f"unmapped event {event.event_type}/{event.event_action}")]

        full_name = event.repository_full_name or ""
        return [
            ActivityDraft(
                source_ref_id=ref,
                org_id=full_name.split("/")[0] or "default",
                activity_type=activity_type,
                actor_email=self.email_cache.email_for(event.sender_login),
                project_alias=full_name or "unknown",
                timestamp=event.created_at or utc_now(),
                metadata=build_metadata(event),
            )
        ]
