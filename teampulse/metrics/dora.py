"""DORA metrics: per-project engineering delivery analytics from GitHub activities.

- Deployment frequency: how often code is deployed
- Lead time for changes: hours from commit to the next deployment
- Change failure rate: share of deployments that failed
- Mean time to restore: not computable without incident data, reported as
  zero with a default "high" level
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from teampulse.models.activity import Activity
from teampulse.metrics.common import (
    classify_deployment_frequency,
    classify_failure_rate,
    classify_lead_time,
    hours_between,
    is_merged_pr,
    period_days,
    period_weeks,
    project_activities,
    round_half_up,
    summarize_durations,
    to_json_dict,
)
from teampulse.utils.timezone import ensure_utc, utc_day_key

logger = logging.getLogger(__name__)

LEAD_TIME_CAP_HOURS = 720  # 30 days; longer gaps are treated as unlinked
FAILED_DEPLOYMENT_STATES = ("failure", "error")
DEFAULT_MTTR_LEVEL = "high"


@dataclass
class DeploymentFrequency:
    total_deployments: int = 0
    deployments_per_day: float = 0
    deployments_per_week: float = 0
    level: str = "low"


@dataclass
class LeadTimeForChanges:
    avg_lead_time: float = 0  # Hours from commit to deploy
    min_lead_time: float = 0
    max_lead_time: float = 0
    p50_lead_time: float = 0
    p90_lead_time: float = 0
    level: str = "elite"


@dataclass
class ChangeFailureRate:
    total_changes: int = 0
    failed_changes: int = 0
    failure_rate: float = 0  # Percentage
    level: str = "elite"


@dataclass
class MeanTimeToRestore:
    avg_restore_time: float = 0
    incidents: int = 0
    level: str = DEFAULT_MTTR_LEVEL


@dataclass
class CodeActivity:
    total_commits: int = 0
    total_prs: int = 0
    merged_prs: int = 0
    avg_review_time: float = 0  # Hours, estimated from the PR/review ratio
    contributors: int = 0


@dataclass
class DoraMetrics:
    project: Dict[str, str]
    period: Dict[str, datetime]
    deployment_frequency: DeploymentFrequency
    lead_time_for_changes: LeadTimeForChanges
    change_failure_rate: ChangeFailureRate
    mean_time_to_restore: MeanTimeToRestore
    code_activity: CodeActivity

    def to_dict(self) -> Dict[str, Any]:
        return to_json_dict(self)


def latest_deployment_per_day(deployments: List[Activity]) -> List[datetime]:
    """Keep only the latest deployment of each UTC calendar day."""
    by_day: Dict[str, datetime] = {}
    for dep in deployments:
        ts = ensure_utc(dep.timestamp)
        day = utc_day_key(ts)
        if day not in by_day or ts > by_day[day]:
            by_day[day] = ts
    return sorted(by_day.values())


def lead_times(commits: List[Activity], deployment_times: List[datetime]) -> List[float]:
    """Hours from each commit to the earliest deployment at or after it."""
    times = []
    for commit in commits:
        committed = ensure_utc(commit.timestamp)
        next_deployment = next((d for d in deployment_times if d >= committed), None)
        if next_deployment is None:
            continue
        hours = hours_between(committed, next_deployment)
        if 0 <= hours < LEAD_TIME_CAP_HOURS:
            times.append(hours)
    return times


def calculate_dora_metrics(
    db: Session, project_id_or_alias: str, start: datetime, end: datetime
) -> DoraMetrics:
    """Calculate DORA metrics for a project id or alias over [start, end]."""
    start, end = ensure_utc(start), ensure_utc(end)
    activities = project_activities(db, project_id_or_alias, "github", start, end)

    commits = [a for a in activities if a.activity_type == "commit"]
    pull_requests = [a for a in activities if a.activity_type == "pull_request"]
    reviews = [a for a in activities if a.activity_type == "review"]
    deployments = [a for a in activities if a.activity_type == "deployment"]

    days = period_days(start, end)
    total_deployments = len(deployments)
    per_day = round_half_up(total_deployments / days, 2)

    summary = summarize_durations(lead_times(commits, latest_deployment_per_day(deployments)))

    failed = sum(
        1 for d in deployments if d.meta.get("deployment_state") in FAILED_DEPLOYMENT_STATES
    )
    failure_rate = round_half_up(failed / total_deployments * 100, 1) if total_deployments > 0 else 0

    avg_review_time = 0
    if pull_requests and reviews:
        avg_review_time = round_half_up(24 * len(pull_requests) / len(reviews), 1)

    return DoraMetrics(
        project={"project_id": project_id_or_alias, "project_alias": project_id_or_alias},
        period={"start": start, "end": end},
        deployment_frequency=DeploymentFrequency(
            total_deployments=total_deployments,
            deployments_per_day=per_day,
            deployments_per_week=round_half_up(total_deployments / period_weeks(start, end), 1),
            level=classify_deployment_frequency(per_day),
        ),
        lead_time_for_changes=LeadTimeForChanges(
            avg_lead_time=summary.avg,
            min_lead_time=summary.min,
            max_lead_time=summary.max,
            p50_lead_time=summary.p50,
            p90_lead_time=summary.p90,
            level=classify_lead_time(summary.avg),
        ),
        change_failure_rate=ChangeFailureRate(
            total_changes=total_deployments,
            failed_changes=failed,
            failure_rate=failure_rate,
            level=classify_failure_rate(failure_rate),
        ),
        mean_time_to_restore=MeanTimeToRestore(),
        code_activity=CodeActivity(
            total_commits=len(commits),
            total_prs=len(pull_requests),
            merged_prs=sum(1 for pr in pull_requests if is_merged_pr(pr.meta)),
            avg_review_time=avg_review_time,
            contributors=len({a.actor_email for a in activities}),
        ),
    )


def get_org_dora_overview(
    db: Session, org_id: str, start: datetime, end: datetime
) -> List[Dict[str, Any]]:
    """Per-project deployments, commits and PRs for an org, most deployments first."""
    rows = (
        db.query(Activity.project_alias, Activity.activity_type)
        .filter(
            Activity.org_id == org_id,
            Activity.source == "github",
            Activity.timestamp >= ensure_utc(start),
            Activity.timestamp <= ensure_utc(end),
        )
        .all()
    )

    counted = {"deployment": "deployments", "commit": "commits", "pull_request": "prs"}
    overview: Dict[str, Dict[str, Any]] = {}
    for alias, activity_type in rows:
        row = overview.setdefault(
            alias, {"project_alias": alias, "deployments": 0, "commits": 0, "prs": 0}
        )
        if activity_type in counted:
            row[counted[activity_type]] += 1

    return sorted(overview.values(), key=lambda r: (-r["deployments"], r["project_alias"]))
