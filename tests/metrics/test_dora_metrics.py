"""Tests for DORA metrics."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from teampulse.metrics.dora import calculate_dora_metrics, get_org_dora_overview, lead_times

START = datetime(2025, 1, 8, tzinfo=timezone.utc)
END = datetime(2025, 1, 15, tzinfo=timezone.utc)


def at(day, hour):
    return datetime(2025, 1, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def github_week(make_activity):
    def gh(activity_type, ts, actor="alice@acme.io", alias="acme/api", **meta):
        return make_activity(source="github", activity_type=activity_type, timestamp=ts,
                             actor_email=actor, project_alias=alias, metadata_json=meta)

    gh("deployment", at(10, 9), deployment_state="success")
    gh("deployment", at(10, 18), deployment_state="failure")
    gh("deployment", at(12, 12), deployment_state="success")
    gh("commit", at(10, 8))
    gh("commit", at(11, 12))
    gh("commit", at(13, 10))  # Never deployed
    gh("pull_request", at(11, 9), merged=True, event_action="closed")
    gh("pull_request", at(11, 10), actor="bob@acme.io", event_action="opened")
    gh("review", at(11, 11))
    gh("commit", at(11, 12), alias="acme/web")


class TestCalculateDoraMetrics:

    def test_project_week(self, db_session, github_week):
        metrics = calculate_dora_metrics(db_session, "Acme/API", START, END)

        freq = metrics.deployment_frequency
        assert freq.total_deployments == 3
        assert freq.deployments_per_day == 0.43
        assert freq.deployments_per_week == 3.0
        assert freq.level == "high"

        lead = metrics.lead_time_for_changes
        assert lead.avg_lead_time == 17.0
        assert lead.min_lead_time == 10.0
        assert lead.max_lead_time == 24.0
        assert lead.p50_lead_time == 24.0
        assert lead.p90_lead_time == 24.0
        assert lead.level == "elite"

        failure = metrics.change_failure_rate
        assert failure.total_changes == 3
        assert failure.failed_changes == 1
        assert failure.failure_rate == 33.3
        assert failure.level == "low"

        code = metrics.code_activity
        assert code.total_commits == 3
        assert code.total_prs == 2
        assert code.merged_prs == 1
        assert code.avg_review_time == 48.0
        assert code.contributors == 2

    def test_no_deployments(self, db_session, make_activity):
        """Test a project without deployments reports zeros, not errors."""
        make_activity(timestamp=at(10, 8))

        metrics = calculate_dora_metrics(db_session, "acme/api", START, END)

        assert metrics.deployment_frequency.total_deployments == 0
        assert metrics.deployment_frequency.deployments_per_day == 0
        assert metrics.deployment_frequency.level == "low"
        assert metrics.lead_time_for_changes.avg_lead_time == 0
        assert metrics.change_failure_rate.failure_rate == 0
        assert metrics.change_failure_rate.level == "elite"
        assert metrics.mean_time_to_restore.avg_restore_time == 0
        assert metrics.mean_time_to_restore.level == "high"

    def test_lookup_by_project_id(self, db_session, make_activity):
        make_activity(activity_type="deployment", timestamp=at(10, 8),
                      project_alias="renamed/repo", project_id="p-123")

        metrics = calculate_dora_metrics(db_session, "p-123", START, END)

        assert metrics.deployment_frequency.total_deployments == 1


class TestLeadTimes:

    def test_gaps_of_thirty_days_or_more_are_dropped(self):
        deployed = at(31, 0)
        commits = [
            SimpleNamespace(timestamp=deployed - timedelta(hours=719)),
            SimpleNamespace(timestamp=deployed - timedelta(hours=720)),
        ]

        assert lead_times(commits, [deployed]) == [719]

    def test_commit_after_last_deployment_is_ignored(self):
        assert lead_times([SimpleNamespace(timestamp=at(12, 0))], [at(10, 0)]) == []


class TestOrgDoraOverview:

    def test_sorted_by_deployments(self, db_session, github_week):
        overview = get_org_dora_overview(db_session, "acme", START, END)

        assert overview[0] == {"project_alias": "acme/api", "deployments": 3, "commits": 3, "prs": 2}
        assert overview[1] == {"project_alias": "acme/web", "deployments": 0, "commits": 1, "prs": 0}
