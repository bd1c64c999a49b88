"""SPACE metrics: per-person wellbeing and activity analytics.

S - Satisfaction & well-being
P - Performance
A - Activity
C - Communication & collaboration
E - Efficiency & flow
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from teampulse.models.activity import Activity
from teampulse.metrics.common import (
    is_completed_status,
    is_merged_pr,
    period_days,
    round_half_up,
    to_json_dict,
)
from teampulse.services.identity_service import normalize_email
from teampulse.utils.timezone import ensure_utc, utc_day_key

logger = logging.getLogger(__name__)

IDEAL_DEV_RATIO = 0.7  # ~70% development work, 30% communication
DEV_ACTIVITY_TYPES = ("commit", "pull_request", "review", "ticket_updated")
PEAK_HOURS = 3


@dataclass
class SpaceEmployee:
    email: str


@dataclass
class SpaceSatisfaction:
    activity_balance_score: int = 0  # 0-100
    workload_variance: float = 0  # Std deviation of daily activity counts


@dataclass
class SpacePerformance:
    completed_tickets: int = 0
    pull_requests_merged: int = 0
    deployments_contributed: int = 0


@dataclass
class SpaceActivity:
    total_activities: int = 0
    commit_count: int = 0
    message_count: int = 0
    ticket_updates: int = 0
    avg_activities_per_day: float = 0


@dataclass
class SpaceCommunication:
    messages_received: int = 0  # Needs mentions addressed to this person
    mentions_given: int = 0
    collaboration_score: int = 0  # 0-100
    unique_collaborators: int = 0


@dataclass
class SpaceEfficiency:
    avg_response_time: float = 0  # Needs thread correlation
    focus_time_ratio: float = 0
    peak_activity_hours: List[str] = field(default_factory=list)


@dataclass
class SpaceMetrics:
    employee: SpaceEmployee
    period: Dict[str, datetime]
    satisfaction: SpaceSatisfaction
    performance: SpacePerformance
    activity: SpaceActivity
    communication: SpaceCommunication
    efficiency: SpaceEfficiency

    def to_dict(self) -> Dict[str, Any]:
        return to_json_dict(self)


def activity_balance_score(dev_activities: int, total_activities: int) -> int:
    """100 at a 70/30 dev/communication split, falling 1 point per percent away."""
    dev_ratio = dev_activities / total_activities if total_activities > 0 else 0
    return round_half_up(max(0.0, 100 - abs(dev_ratio - IDEAL_DEV_RATIO) * 100))


def workload_variance(activities: List[Activity]) -> float:
    """Population standard deviation of per-day activity counts (UTC days)."""
    daily = defaultdict(int)
    for act in activities:
        daily[utc_day_key(act.timestamp)] += 1

    counts = list(daily.values())
    if not counts:
        return 0
    mean = sum(counts) / len(counts)
    variance = sum((c - mean) ** 2 for c in counts) / len(counts)
    return round_half_up(math.sqrt(variance), 1)


def peak_activity_hours(activities: List[Activity], top: int = PEAK_HOURS) -> List[str]:
    """Busiest UTC hours, ties kept in first-seen order."""
    hour_counts: Dict[int, int] = {}
    for act in activities:
        hour = ensure_utc(act.timestamp).hour
        hour_counts[hour] = hour_counts.get(hour, 0) + 1

    ranked = sorted(hour_counts.items(), key=lambda item: -item[1])
    return [f"{hour}:00" for hour, _ in ranked[:top]]


def collaborators(messages: List[Activity], self_email: str) -> set:
    """Mentioned people and message receivers, excluding the person themselves."""
    people = set()
    for msg in messages:
        for mention in msg.meta.get("mentions") or []:
            email = normalize_email((mention or {}).get("email"))
            if email and email != self_email:
                people.add(email)
        for receiver in msg.meta.get("receivers") or []:
            email = normalize_email(receiver)
            if email and email != self_email:
                people.add(email)
    return people


def calculate_space_metrics(
    db: Session, email: str, start: datetime, end: datetime
) -> SpaceMetrics:
    """Calculate SPACE metrics for one person over [start, end]."""
    normalized_email = normalize_email(email)
    start, end = ensure_utc(start), ensure_utc(end)

    activities = (
        db.query(Activity)
        .filter(
            Activity.actor_email == normalized_email,
            Activity.timestamp >= start,
            Activity.timestamp <= end,
        )
        .order_by(Activity.timestamp.asc(), Activity.id.asc())
        .all()
    )

    by_type: Dict[str, List[Activity]] = defaultdict(list)
    for act in activities:
        by_type[act.activity_type].append(act)

    commits = by_type["commit"]
    pull_requests = by_type["pull_request"]
    messages = by_type["message"]
    status_changes = by_type["status_change"]
    ticket_updates = by_type["ticket_updated"]

    dev_activities = sum(len(by_type[t]) for t in DEV_ACTIVITY_TYPES)
    total = len(activities)
    days = period_days(start, end)
    people = collaborators(messages, normalized_email)

    logger.debug(f"SPACE: {total} activities over {days} days")

    return SpaceMetrics(
        employee=SpaceEmployee(email=normalized_email),
        period={"start": start, "end": end},
        satisfaction=SpaceSatisfaction(
            activity_balance_score=activity_balance_score(dev_activities, total),
            workload_variance=workload_variance(activities),
        ),
        performance=SpacePerformance(
            completed_tickets=sum(
                1 for s in status_changes if is_completed_status(s.meta.get("to_status"))
            ),
            pull_requests_merged=sum(1 for pr in pull_requests if is_merged_pr(pr.meta)),
            deployments_contributed=len(by_type["deployment"]),
        ),
        activity=SpaceActivity(
            total_activities=total,
            commit_count=len(commits),
            message_count=len(messages),
            ticket_updates=len(status_changes) + len(ticket_updates),
            avg_activities_per_day=round_half_up(total / days, 1),
        ),
        communication=SpaceCommunication(
            messages_received=0,
            mentions_given=sum(len(m.meta.get("mentions") or []) for m in messages),
            collaboration_score=min(100, len(people) * 10),
            unique_collaborators=len(people),
        ),
        efficiency=SpaceEfficiency(
            avg_response_time=0,
            focus_time_ratio=round_half_up(dev_activities / total, 2) if total > 0 else 0,
            peak_activity_hours=peak_activity_hours(activities),
        ),
    )


def get_org_space_overview(
    db: Session, org_id: str, start: datetime, end: datetime
) -> List[Dict[str, Any]]:
    """Per-person activity totals for an org, busiest first."""
    activities = (
        db.query(Activity.actor_email, Activity.activity_type, Activity.metadata_json)
        .filter(
            Activity.org_id == org_id,
            Activity.timestamp >= ensure_utc(start),
            Activity.timestamp <= ensure_utc(end),
        )
        .all()
    )

    overview: Dict[str, Dict[str, Any]] = {}
    for actor_email, activity_type, metadata in activities:
        row = overview.setdefault(
            actor_email,
            {"email": actor_email, "total_activities": 0, "completed_tickets": 0},
        )
        row["total_activities"] += 1
        if activity_type == "status_change" and is_completed_status((metadata or {}).get("to_status")):
            row["completed_tickets"] += 1

    return sorted(overview.values(), key=lambda r: (-r["total_activities"], r["email"]))
