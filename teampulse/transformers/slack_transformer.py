"""Slack messages -> message activities."""

import logging
from typing import List

from teampulse.models.raw import SlackRawEvent
from teampulse.models.raw_sources import SlackMessageRecord
from teampulse.services.identity_service import normalize_email
from teampulse.transformers.base import BaseTransformer, ActivityDraft, Skipped
from teampulse.utils.timezone import from_epoch_seconds, to_epoch_seconds, utc_now

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 500
MISSING_EMAIL = "No Email"  # Placeholder written by the Slack ingestion job


class SlackTransformer(BaseTransformer):
    """One ``message`` activity per Slack event, keyed ``slack:{event_id}``."""

    source = "slack"
    raw_type = SlackRawEvent

    def fetch(self, since, scope) -> List[SlackMessageRecord]:
        query = self.db.query(SlackMessageRecord)
        if since is not None:
            query = query.filter(SlackMessageRecord.timestamp >= int(to_epoch_seconds(since)))
        if scope:
            query = query.filter(SlackMessageRecord.team_id == scope)
        return query.order_by(SlackMessageRecord.id.asc()).all()

    def describe(self, row: SlackMessageRecord) -> str:
        return row.event_id

    def map_record(self, raw: SlackRawEvent):
        ref = f"slack:{raw.event_id}"
        if not raw.email or raw.email == MISSING_EMAIL:
            # Can't link an identity without an email
            return [Skipped(ref, "no email")]

        return [
            ActivityDraft(
                source_ref_id=ref,
                org_id=raw.team_id or "default",
                activity_type="message",
                actor_email=raw.email,
                project_alias=raw.channel_id or "general",
                timestamp=from_epoch_seconds(raw.timestamp) or utc_now(),
                metadata={
                    "user_id": raw.user_id,
                    "user_name": raw.user_name,
                    "channel_id": raw.channel_id,
                    "text": raw.text[:MAX_TEXT_LENGTH] if raw.text is not None else None,
                    "thread_ts": raw.thread_ts,
                    "mention_count": len(raw.mentions),
                    "mentions": [
                        {"email": normalize_email(m.email) or None, "type": m.type}
                        for m in raw.mentions
                    ],
                    "has_attachments": raw.attachment_count > 0,
                },
            )
        ]
