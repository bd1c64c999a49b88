"""Helpers shared by the SPACE, FLOW and DORA engines."""

import math
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from teampulse.models.activity import Activity
from teampulse.services.project_service import normalize_alias
from teampulse.utils.timezone import ensure_utc, isoformat

COMPLETED_STATUS_MARKERS = ("done", "closed", "resolved")
BLOCKED_STATUS_MARKER = "blocked"

SECONDS_PER_HOUR = 3600.0
SECONDS_PER_DAY = 86400.0


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for positive values (2.5 -> 3, 0.25 -> 0.3).

    Python's round() rounds halves to even, which would make scores such as
    30.5 come out as 30.
    """
    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5) / factor
    return int(rounded) if digits == 0 else rounded


def period_days(start: datetime, end: datetime) -> int:
    """Whole days in the window, rounded up, never less than 1."""
    seconds = (ensure_utc(end) - ensure_utc(start)).total_seconds()
    return max(1, math.ceil(seconds / SECONDS_PER_DAY))


def period_weeks(start: datetime, end: datetime) -> float:
    return max(1.0, period_days(start, end) / 7)


def hours_between(earlier: datetime, later: datetime) -> float:
    return (ensure_utc(later) - ensure_utc(earlier)).total_seconds() / SECONDS_PER_HOUR


def nearest_rank(sorted_values: List[float], percentile: float) -> float:
    """Nearest-rank percentile: ``sorted_values[floor(percentile * n)]``.

    No interpolation. The index is clamped to the last element so p100 is
    the maximum. Returns 0 for an empty list.
    """
    if not sorted_values:
        return 0
    index = min(int(math.floor(percentile * len(sorted_values))), len(sorted_values) - 1)
    return sorted_values[index]


@dataclass
class DurationSummary:
    """avg/min/max/p50/p90 of a list of durations in hours, 1 decimal."""
    avg: float = 0
    min: float = 0
    max: float = 0
    p50: float = 0
    p90: float = 0


def summarize_durations(values: Iterable[float]) -> DurationSummary:
    ordered = sorted(values)
    if not ordered:
        return DurationSummary()
    return DurationSummary(
        avg=round_half_up(sum(ordered) / len(ordered), 1),
        min=round_half_up(ordered[0], 1),
        max=round_half_up(ordered[-1], 1),
        p50=round_half_up(nearest_rank(ordered, 0.5), 1),
        p90=round_half_up(nearest_rank(ordered, 0.9), 1),
    )


def status_contains(status: Optional[str], markers) -> bool:
    if not status:
        return False
    lowered = status.lower()
    return any(marker in lowered for marker in markers)


def is_completed_status(status: Optional[str]) -> bool:
    """Done, Closed, Resolved and any custom status containing them."""
    return status_contains(status, COMPLETED_STATUS_MARKERS)


def is_blocked_status(status: Optional[str]) -> bool:
    return status_contains(status, (BLOCKED_STATUS_MARKER,))


def is_merged_pr(metadata: Dict[str, Any]) -> bool:
    return metadata.get("merged") is True or (
        metadata.get("event_action") == "closed" and metadata.get("pr_state") == "merged"
    )


def classify_deployment_frequency(per_day: float) -> str:
    if per_day >= 1:
        return "elite"  # Multiple per day
    if per_day >= 0.14:
        return "high"  # ~Once per week
    if per_day >= 0.03:
        return "medium"  # ~Once per month
    return "low"


def classify_lead_time(avg_hours: float) -> str:
    if avg_hours <= 24:
        return "elite"
    if avg_hours <= 168:
        return "high"
    if avg_hours <= 720:
        return "medium"
    return "low"


def classify_failure_rate(rate: float) -> str:
    if rate <= 5:
        return "elite"
    if rate <= 10:
        return "high"
    if rate <= 15:
        return "medium"
    return "low"


def classify_mttr(avg_hours: float) -> str:
    if avg_hours <= 1:
        return "elite"
    if avg_hours <= 24:
        return "high"
    if avg_hours <= 168:
        return "medium"
    return "low"


def project_activities(
    db: Session,
    project_id_or_alias: str,
    source: str,
    start: datetime,
    end: datetime,
) -> List[Activity]:
    """Activities of one source for a project id or raw alias within [start, end]."""
    alias = normalize_alias(project_id_or_alias)
    start, end = ensure_utc(start), ensure_utc(end)
    return (
        db.query(Activity)
        .filter(
            or_(Activity.project_id == project_id_or_alias, Activity.project_alias == alias),
            Activity.source == source,
            Activity.timestamp >= start,
            Activity.timestamp <= end,
        )
        .order_by(Activity.timestamp.asc(), Activity.id.asc())
        .all()
    )


def to_json_dict(result) -> Dict[str, Any]:
    """dataclasses.asdict with datetimes rendered as ISO strings."""
    def convert(value):
        if isinstance(value, datetime):
            return isoformat(value)
        if isinstance(value, dict):
            return {k: convert(v) for k, v in value.items()}
        if isinstance(value, list):
            return [convert(v) for v in value]
        return value

    return convert(asdict(result))
