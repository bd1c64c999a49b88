"""Tests for SPACE metrics."""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from teampulse.metrics.space import (
    activity_balance_score,
    calculate_space_metrics,
    get_org_space_overview,
    peak_activity_hours,
)

START = datetime(2025, 1, 8, 12, tzinfo=timezone.utc)
END = datetime(2025, 1, 15, 12, tzinfo=timezone.utc)


def at(day, hour):
    return datetime(2025, 1, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def alice_week(make_activity):
    make_activity(source="jira", activity_type="status_change", timestamp=at(12, 10),
                  project_alias="proj", metadata_json={"ticket": "PROJ-1", "to_status": "Done"})
    make_activity(source="github", activity_type="pull_request", timestamp=at(13, 10),
                  metadata_json={"merged": True, "event_action": "closed"})
    make_activity(source="slack", activity_type="message", timestamp=at(13, 15),
                  project_alias="c1",
                  metadata_json={"mentions": [{"email": "bob@acme.io", "type": "user"}]})
    make_activity(source="github", activity_type="commit", timestamp=at(14, 10))
    make_activity(source="github", activity_type="commit", timestamp=at(14, 11))
    # Other person and out-of-window rows must not count
    make_activity(actor_email="bob@acme.io", timestamp=at(14, 9))
    make_activity(timestamp=at(1, 9))


class TestActivityBalanceScore:

    @pytest.mark.parametrize(
        "dev,total,score",
        [(0, 10, 30), (7, 10, 100), (10, 10, 70), (6, 10, 90)],
    )
    def test_formula(self, dev, total, score):
        assert activity_balance_score(dev, total) == score


class TestPeakActivityHours:

    def test_ties_keep_first_seen_order_and_cap_at_three(self):
        hours = [15, 9, 15, 9, 3, 20, 20]
        activities = [SimpleNamespace(timestamp=at(13, h)) for h in hours]

        assert peak_activity_hours(activities) == ["15:00", "9:00", "20:00"]

    def test_hours_are_not_zero_padded(self):
        assert peak_activity_hours([SimpleNamespace(timestamp=at(13, 8))]) == ["8:00"]


class TestCalculateSpaceMetrics:

    def test_full_week(self, db_session, alice_week):
        metrics = calculate_space_metrics(db_session, "Alice@Acme.io", START, END)

        assert metrics.employee.email == "alice@acme.io"
        assert metrics.activity.total_activities == 5
        assert metrics.activity.commit_count == 2
        assert metrics.activity.message_count == 1
        assert metrics.activity.ticket_updates == 1
        assert metrics.activity.avg_activities_per_day == 0.7
        assert metrics.performance.completed_tickets == 1
        assert metrics.performance.pull_requests_merged == 1
        assert metrics.performance.deployments_contributed == 0
        assert metrics.satisfaction.activity_balance_score == 90
        assert metrics.satisfaction.workload_variance == 0.5
        assert metrics.communication.mentions_given == 1
        assert metrics.communication.unique_collaborators == 1
        assert metrics.communication.collaboration_score == 10
        assert metrics.efficiency.focus_time_ratio == 0.6
        assert metrics.efficiency.peak_activity_hours == ["10:00", "15:00", "11:00"]

    def test_no_activity(self, db_session):
        metrics = calculate_space_metrics(db_session, "nobody@acme.io", START, END)

        assert metrics.activity.total_activities == 0
        assert metrics.satisfaction.workload_variance == 0
        assert metrics.efficiency.peak_activity_hours == []
        assert metrics.efficiency.focus_time_ratio == 0

    def test_to_dict_is_json_ready(self, db_session, alice_week):
        data = calculate_space_metrics(db_session, "alice@acme.io", START, END).to_dict()

        assert data["period"]["start"] == "2025-01-08T12:00:00+00:00"
        assert data["satisfaction"]["activity_balance_score"] == 90


class TestOrgSpaceOverview:

    def test_sorted_by_total(self, db_session, alice_week):
        overview = get_org_space_overview(db_session, "acme", START, END)

        assert [row["email"] for row in overview] == ["alice@acme.io", "bob@acme.io"]
        assert overview[0]["total_activities"] == 5
        assert overview[0]["completed_tickets"] == 1
        assert overview[1]["total_activities"] == 1
