"""Data slices for the external insight summarizer, and storage for its output.

The summarizer itself (model, prompts) lives outside this package. It
receives one JSON-compatible slice per persona and returns free text that
should contain a JSON array of insight candidates.
"""

import json
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from config.settings import settings
from teampulse.models.activity import Activity
from teampulse.models.insight import Insight, INSIGHT_CATEGORIES, INSIGHT_PERSONAS
from teampulse.metrics.common import is_blocked_status, is_completed_status, is_merged_pr
from teampulse.services.project_service import normalize_alias
from teampulse.utils.timezone import ensure_utc, isoformat, utc_now

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "observation"
DEFAULT_CONFIDENCE = 0.5
ACTIVE_USER_SAMPLE = 5

DEFAULT_SOURCES = {
    "hr": ["Slack"],
    "product": ["Jira"],
    "engineering": ["GitHub"],
    "all": ["Slack", "Jira", "GitHub", "Email"],
}

CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
LINE_COMMENT = re.compile(r"//.*$", re.MULTILINE)
BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")


def _window(start: datetime, end: datetime) -> Dict[str, Optional[str]]:
    return {"start": isoformat(start), "end": isoformat(end)}


def _activities(db: Session, org_id: str, source: str, start: datetime, end: datetime,
                activity_type=None, limit=None):
    query = db.query(Activity).filter(
        Activity.org_id == org_id,
        Activity.source == source,
        Activity.timestamp >= ensure_utc(start),
        Activity.timestamp <= ensure_utc(end),
    )
    if activity_type:
        query = query.filter(Activity.activity_type == activity_type)
    query = query.order_by(Activity.timestamp.asc(), Activity.id.asc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def build_hr_slice(db: Session, org_id: str, start: datetime, end: datetime) -> Dict[str, Any]:
    """Sampled Slack messages for the HR persona.

    At most ``slack_sample_limit`` messages are read; only texts longer than
    ``min_text_length`` characters are passed on.
    """
    limit = settings.insights.slack_sample_limit
    min_length = settings.insights.min_text_length

    messages = _activities(db, org_id, "slack", start, end, activity_type="message", limit=limit)

    texts = [
        m.meta.get("text") for m in messages
        if m.meta.get("text") and len(m.meta.get("text")) > min_length
    ]
    active_users = list(dict.fromkeys(m.actor_email for m in messages))

    return {
        "persona": "hr",
        "org_id": org_id,
        "period": _window(start, end),
        "message_count": len(messages),
        "texts": texts,
        "active_users": active_users[:ACTIVE_USER_SAMPLE],
    }


def build_product_slice(
    db: Session,
    org_id: str,
    start: datetime,
    end: datetime,
    project_alias: Optional[str] = None,
) -> Dict[str, Any]:
    """Jira created / completed / blocked counts for the product persona."""
    activities = _activities(db, org_id, "jira", start, end)
    if project_alias:
        alias = normalize_alias(project_alias)
        activities = [a for a in activities if a.project_alias == alias]

    created = [a for a in activities if a.activity_type == "ticket_created"]
    status_changes = [a for a in activities if a.activity_type == "status_change"]
    completed = [s for s in status_changes if is_completed_status(s.meta.get("to_status"))]
    blocked = [s for s in status_changes if is_blocked_status(s.meta.get("to_status"))]

    return {
        "persona": "product",
        "org_id": org_id,
        "project_alias": project_alias,
        "period": _window(start, end),
        "tickets_created": len(created),
        "tickets_completed": len(completed),
        "tickets_open": max(0, len(created) - len(completed)),
        "blocked_transitions": len(blocked),
        "sample_tickets": [a.meta.get("ticket") for a in created[:3]],
    }


def build_engineering_slice(
    db: Session,
    org_id: str,
    start: datetime,
    end: datetime,
    project_alias: Optional[str] = None,
) -> Dict[str, Any]:
    """GitHub commit / PR / review counts for the engineering persona."""
    activities = _activities(db, org_id, "github", start, end)
    if project_alias:
        alias = normalize_alias(project_alias)
        activities = [a for a in activities if a.project_alias == alias]

    commits = [a for a in activities if a.activity_type == "commit"]
    pull_requests = [a for a in activities if a.activity_type == "pull_request"]
    reviews = [a for a in activities if a.activity_type == "review"]
    contributors = list(dict.fromkeys(a.actor_email for a in commits + pull_requests))

    return {
        "persona": "engineering",
        "org_id": org_id,
        "project_alias": project_alias,
        "period": _window(start, end),
        "commits": len(commits),
        "pull_requests": len(pull_requests),
        "merged": sum(1 for pr in pull_requests if is_merged_pr(pr.meta)),
        "reviews": len(reviews),
        "contributors": contributors[:ACTIVE_USER_SAMPLE],
    }


SLICE_BUILDERS = {
    "hr": build_hr_slice,
    "product": build_product_slice,
    "engineering": build_engineering_slice,
}


def build_slice(
    db: Session,
    persona: str,
    org_id: str,
    start: datetime,
    end: datetime,
    project_alias: Optional[str] = None,
) -> Dict[str, Any]:
    """Slice for one persona. The HR slice is org-wide and ignores the alias."""
    if persona not in SLICE_BUILDERS:
        raise ValueError(f"No data slice for persona: {persona}")
    if persona == "hr":
        return build_hr_slice(db, org_id, start, end)
    return SLICE_BUILDERS[persona](db, org_id, start, end, project_alias=project_alias)


def _try_json(text: str):
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None


def _extract_json(text: str):
    """Best-effort JSON extraction from summarizer output.

    Tries the whole text, then a fenced code block, then the widest
    ``[...]`` span, then the widest ``{...}`` span.
    """
    stripped = BLOCK_COMMENT.sub("", LINE_COMMENT.sub("", text)).strip()

    for candidate in (stripped, text.strip()):
        parsed = _try_json(candidate)
        if parsed is not None:
            return parsed

    match = CODE_FENCE.search(stripped)
    if match:
        parsed = _try_json(match.group(1))
        if parsed is not None:
            return parsed

    for open_char, close_char in (("[", "]"), ("{", "}")):
        first = stripped.find(open_char)
        last = stripped.rfind(close_char)
        if first != -1 and last > first:
            parsed = _try_json(stripped[first:last + 1])
            if parsed is not None:
                return parsed

    return None


def parse_insight_candidates(text: Optional[str]) -> List[Dict[str, Any]]:
    """Insight dicts found in summarizer output; empty list when none parse.

    Accepts a bare JSON array or an object wrapping it as ``{"insights": [...]}``.
    Entries without a title or body are dropped.
    """
    if not text:
        return []

    parsed = _extract_json(text)
    if isinstance(parsed, dict) and isinstance(parsed.get("insights"), list):
        parsed = parsed["insights"]
    if not isinstance(parsed, list):
        logger.warning("Summarizer output contained no insight list")
        return []

    candidates = [
        item for item in parsed
        if isinstance(item, dict) and item.get("title") and item.get("body")
    ]
    if len(candidates) < len(parsed):
        logger.debug(f"Dropped {len(parsed) - len(candidates)} malformed insight entries")
    return candidates


def _confidence(value) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if confidence != confidence:  # NaN
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, confidence))


class InsightStore:
    """Persists summarizer output and reads back unexpired insights."""

    def __init__(self, db: Session, ttl_days: Optional[int] = None):
        self.db = db
        self.ttl = timedelta(
            days=ttl_days if ttl_days is not None else settings.insights.insight_ttl_days
        )

    def save(
        self,
        org_id: str,
        persona: str,
        candidates: List[Dict[str, Any]],
        related_project_id: Optional[str] = None,
        related_email: Optional[str] = None,
        generated_at: Optional[datetime] = None,
    ) -> List[Insight]:
        """Store candidates, filling defaults for missing fields.

        Raises:
            ValueError: for an unknown persona
        """
        if persona not in INSIGHT_PERSONAS:
            raise ValueError(f"Unknown persona: {persona}")

        generated_at = ensure_utc(generated_at) if generated_at else utc_now()
        saved = []
        for candidate in candidates:
            category = candidate.get("category") or DEFAULT_CATEGORY
            if category not in INSIGHT_CATEGORIES:
                logger.debug(f"Unrecognized insight category '{category}', using {DEFAULT_CATEGORY}")
                category = DEFAULT_CATEGORY

            sources = candidate.get("source") or candidate.get("sources") or DEFAULT_SOURCES[persona]
            if isinstance(sources, str):
                sources = [sources]

            insight = Insight(
                org_id=org_id,
                category=category,
                persona=persona,
                title=str(candidate["title"])[:500],
                body=str(candidate["body"]),
                confidence=_confidence(candidate.get("confidence", DEFAULT_CONFIDENCE)),
                related_metric=candidate.get("related_metric") or candidate.get("relatedMetric"),
                related_project_id=related_project_id,
                related_email=related_email,
                sources=list(sources),
                generated_at=generated_at,
                expires_at=generated_at + self.ttl,
            )
            self.db.add(insight)
            saved.append(insight)

        self.db.commit()
        logger.info(f"Saved {len(saved)} {persona} insights for org {org_id}")
        return saved

    def get_recent(
        self,
        org_id: str,
        persona: Optional[str] = None,
        limit: int = 20,
        now: Optional[datetime] = None,
    ) -> List[Insight]:
        """Newest unexpired insights for an org, optionally for one persona."""
        now = ensure_utc(now) if now else utc_now()
        query = self.db.query(Insight).filter(
            Insight.org_id == org_id,
            (Insight.expires_at.is_(None)) | (Insight.expires_at > now),
        )
        if persona:
            query = query.filter(Insight.persona == persona)
        return query.order_by(Insight.generated_at.desc(), Insight.id.desc()).limit(limit).all()
