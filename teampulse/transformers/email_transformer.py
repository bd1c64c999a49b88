"""Email metadata -> message activities."""

import logging
import re
from typing import Optional, List

from teampulse.models.raw import EmailRawMessage
from teampulse.models.raw_sources import EmailMetadataRecord
from teampulse.services.identity_service import normalize_email
from teampulse.transformers.base import BaseTransformer, ActivityDraft, Skipped
from teampulse.utils.timezone import from_epoch_millis, to_epoch_millis, utc_now

logger = logging.getLogger(__name__)

# Subject patterns in priority order
BRACKET_TAG = re.compile(r"\[([^\]]+)\]")  # "[Alpha] Sprint planning"
LEADING_TOKEN = re.compile(r"^([A-Za-z0-9_-]+):")  # "BETA: kickoff"
REPLY_TOKEN = re.compile(r"^(RE:|FW:|FWD:)?\s*([A-Za-z0-9_-]+)\s*[-:]", re.IGNORECASE)


def extract_project_from_subject(subject: Optional[str]) -> str:
    """Derive a project alias from an email subject.

    Returns:
        Lowercased tag, "general" when no pattern matches, "unknown" for an
        empty subject
    """
    if not subject:
        return "unknown"

    match = BRACKET_TAG.search(subject)
    if match:
        return match.group(1).strip().lower()

    match = LEADING_TOKEN.match(subject)
    if match:
        return match.group(1).lower()

    match = REPLY_TOKEN.match(subject)
    if match and match.group(2):
        return match.group(2).lower()

    return "general"


class EmailTransformer(BaseTransformer):
    """One ``message`` activity per email, keyed ``email:{message_id}``."""

    source = "email"
    raw_type = EmailRawMessage

    def fetch(self, since, scope) -> List[EmailMetadataRecord]:
        query = self.db.query(EmailMetadataRecord)
        if since is not None:
            query = query.filter(EmailMetadataRecord.timestamp >= to_epoch_millis(since))
        if scope:
            query = query.filter(EmailMetadataRecord.org_id == scope)
        return query.order_by(EmailMetadataRecord.id.asc()).all()

    def describe(self, row: EmailMetadataRecord) -> str:
        return row.message_id

    def map_record(self, raw: EmailRawMessage):
        ref = f"email:{raw.message_id}"
        actor = normalize_email(raw.sender or raw.user_email)
        if not actor:
            return [Skipped(ref, "no sender")]

        return [
            ActivityDraft(
                source_ref_id=ref,
                org_id=raw.org_id or "default",
                activity_type="message",
                actor_email=actor,
                project_alias=extract_project_from_subject(raw.subject),
                timestamp=from_epoch_millis(raw.timestamp_ms) or utc_now(),
                metadata={
                    "receivers": [normalize_email(r) for r in raw.receivers if r],
                    "thread_id": raw.thread_id,
                    "subject": raw.subject,
                    "has_body": raw.has_body,
                },
            )
        ]
