"""FLOW metrics: per-project delivery analytics from Jira activities.

- Flow velocity: completed work items per week
- Flow time: hours from creation to completion
- Flow load: items created but not completed
- Flow efficiency: throughput and blocked items
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from teampulse.models.activity import Activity
from teampulse.metrics.common import (
    hours_between,
    is_blocked_status,
    is_completed_status,
    period_days,
    period_weeks,
    project_activities,
    round_half_up,
    summarize_durations,
    to_json_dict,
)
from teampulse.utils.timezone import ensure_utc

logger = logging.getLogger(__name__)


@dataclass
class FlowVelocity:
    completed_items: int = 0
    velocity_per_week: float = 0
    velocity_trend: str = "stable"  # Needs history to compute up/down


@dataclass
class FlowTime:
    avg_flow_time: float = 0  # Hours from creation to completion
    min_flow_time: float = 0
    max_flow_time: float = 0
    p50_flow_time: float = 0
    p90_flow_time: float = 0


@dataclass
class FlowLoad:
    active_items: int = 0
    new_items: int = 0
    completed_items: int = 0
    net_change: int = 0


@dataclass
class FlowEfficiency:
    flow_efficiency: float = 0  # Needs active/waiting time tracking
    throughput_rate: float = 0  # Items per day
    blocked_items: int = 0


@dataclass
class FlowDistribution:
    by_type: Dict[str, int] = field(default_factory=dict)
    by_priority: Dict[str, int] = field(default_factory=dict)


@dataclass
class FlowMetrics:
    project: Dict[str, str]
    period: Dict[str, datetime]
    velocity: FlowVelocity
    time: FlowTime
    load: FlowLoad
    efficiency: FlowEfficiency
    distribution: FlowDistribution

    def to_dict(self) -> Dict[str, Any]:
        return to_json_dict(self)


def _ticket(act: Activity) -> str:
    return act.meta.get("ticket") or "unknown"


def flow_times(tickets: Dict[str, List[Activity]], completed: set) -> List[float]:
    """Hours from ticket_created to the first completing status change.

    Only positive durations count.
    """
    durations = []
    for ticket in completed:
        acts = tickets.get(ticket, [])
        created = next((a for a in acts if a.activity_type == "ticket_created"), None)
        done = next(
            (
                a for a in acts
                if a.activity_type == "status_change"
                and is_completed_status(a.meta.get("to_status"))
            ),
            None,
        )
        if created and done:
            hours = hours_between(created.timestamp, done.timestamp)
            if hours > 0:
                durations.append(hours)
    return durations


def calculate_flow_metrics(
    db: Session, project_id_or_alias: str, start: datetime, end: datetime
) -> FlowMetrics:
    """Calculate FLOW metrics for a project id or alias over [start, end]."""
    start, end = ensure_utc(start), ensure_utc(end)
    activities = project_activities(db, project_id_or_alias, "jira", start, end)

    tickets: Dict[str, List[Activity]] = defaultdict(list)
    for act in activities:
        tickets[_ticket(act)].append(act)

    created = [a for a in activities if a.activity_type == "ticket_created"]
    status_changes = [a for a in activities if a.activity_type == "status_change"]

    completed_tickets = {
        _ticket(s) for s in status_changes if is_completed_status(s.meta.get("to_status"))
    }
    blocked_tickets = {
        _ticket(s) for s in status_changes if is_blocked_status(s.meta.get("to_status"))
    }
    completed_items = len(completed_tickets)
    new_items = len(created)
    days = period_days(start, end)

    by_type: Dict[str, int] = {}
    by_priority: Dict[str, int] = {}
    for act in created:
        issue_type = act.meta.get("issue_type") or "Unknown"
        priority = act.meta.get("priority") or "Unknown"
        by_type[issue_type] = by_type.get(issue_type, 0) + 1
        by_priority[priority] = by_priority.get(priority, 0) + 1

    summary = summarize_durations(flow_times(tickets, completed_tickets))
    created_tickets = {_ticket(a) for a in created}

    return FlowMetrics(
        project={"project_id": project_id_or_alias, "project_alias": project_id_or_alias},
        period={"start": start, "end": end},
        velocity=FlowVelocity(
            completed_items=completed_items,
            velocity_per_week=round_half_up(completed_items / period_weeks(start, end), 1),
        ),
        time=FlowTime(
            avg_flow_time=summary.avg,
            min_flow_time=summary.min,
            max_flow_time=summary.max,
            p50_flow_time=summary.p50,
            p90_flow_time=summary.p90,
        ),
        load=FlowLoad(
            active_items=max(0, len(created_tickets) - completed_items),
            new_items=new_items,
            completed_items=completed_items,
            net_change=new_items - completed_items,
        ),
        efficiency=FlowEfficiency(
            flow_efficiency=0,
            throughput_rate=round_half_up(completed_items / days, 2),
            blocked_items=len(blocked_tickets),
        ),
        distribution=FlowDistribution(by_type=by_type, by_priority=by_priority),
    )


def get_org_flow_overview(
    db: Session, org_id: str, start: datetime, end: datetime
) -> List[Dict[str, Any]]:
    """Per-project new and completed items for an org, most completed first."""
    rows = (
        db.query(Activity.project_alias, Activity.activity_type, Activity.metadata_json)
        .filter(
            Activity.org_id == org_id,
            Activity.source == "jira",
            Activity.timestamp >= ensure_utc(start),
            Activity.timestamp <= ensure_utc(end),
        )
        .all()
    )

    overview: Dict[str, Dict[str, Any]] = {}
    for alias, activity_type, metadata in rows:
        row = overview.setdefault(
            alias, {"project_alias": alias, "new_items": 0, "completed_items": 0}
        )
        if activity_type == "ticket_created":
            row["new_items"] += 1
        elif activity_type == "status_change" and is_completed_status((metadata or {}).get("to_status")):
            row["completed_items"] += 1

    return sorted(overview.values(), key=lambda r: (-r["completed_items"], r["project_alias"]))
