"""Tests for the Jira transformer fan-out."""

from teampulse.models import Activity
from teampulse.transformers.jira_transformer import JiraTransformer


def _refs(db_session):
    return sorted(a.source_ref_id for a in db_session.query(Activity).all())


class TestJiraTransformer:
    """One issue -> created, status and worklog activities."""

    def test_fan_out_creates_one_activity_per_sub_event(self, db_session, make_jira):
        """Test created + 2 status changes + 1 worklog give 4 distinct refs."""
        make_jira(
            ticket="PROJ-1",
            status_changes=[
                {"field": "status", "fromString": "To Do", "toString": "In Progress"},
                {"field": "status", "fromString": "In Progress", "toString": "Done"},
            ],
            worklogs=[
                {"author": "Alice", "timeSpent": "2h", "timeSpentSeconds": 7200,
                 "started": "2025-01-15T09:00:00.000+0000"},
            ],
        )

        result = JiraTransformer(db_session).transform()

        assert result.processed == 1
        assert result.created == 4
        assert _refs(db_session) == [
            "jira:PROJ-1:created",
            "jira:PROJ-1:status:0",
            "jira:PROJ-1:status:1",
            "jira:PROJ-1:worklog:0",
        ]

    def test_rerun_creates_nothing(self, db_session, make_jira):
        make_jira(status_changes=[{"field": "status", "fromString": "To Do", "toString": "Done"}])

        JiraTransformer(db_session).transform()
        second = JiraTransformer(db_session).transform()

        assert second.created == 0
        assert second.skipped == 2
        assert db_session.query(Activity).count() == 2

    def test_new_transition_only_adds_new_activity(self, db_session, make_jira):
        """Test refs are positional, so an appended change is the only new row."""
        issue = make_jira(status_changes=[{"field": "status", "fromString": "To Do", "toString": "In Progress"}])
        JiraTransformer(db_session).transform()

        issue.status_changes = issue.status_changes + [
            {"field": "status", "fromString": "In Progress", "toString": "Done"}
        ]
        db_session.commit()
        result = JiraTransformer(db_session).transform()

        assert result.created == 1
        assert "jira:PROJ-1:status:1" in _refs(db_session)

    def test_status_change_metadata(self, db_session, make_jira):
        make_jira(status_changes=[{"field": "status", "fromString": "Review", "toString": "Done"}])

        JiraTransformer(db_session).transform()

        change = db_session.query(Activity).filter(Activity.activity_type == "status_change").one()
        assert change.meta["from_status"] == "Review"
        assert change.meta["to_status"] == "Done"
        assert change.meta["ticket"] == "PROJ-1"
        assert change.actor_email == "alice@acme.io"
        assert change.project_alias == "proj"

    def test_missing_reporter_email_skips_created_event(self, db_session, make_jira):
        make_jira(reporter_email=None)

        result = JiraTransformer(db_session).transform()

        assert result.created == 0
        assert result.skipped == 1

    def test_worklog_by_reporter_is_attributed_to_reporter(self, db_session, make_jira):
        make_jira(worklogs=[{"author": "Bob", "timeSpent": "1h", "timeSpentSeconds": 3600}])

        JiraTransformer(db_session).transform()

        worklog = db_session.query(Activity).filter(Activity.activity_type == "ticket_updated").one()
        assert worklog.actor_email == "bob@acme.io"
        assert worklog.meta["time_spent_seconds"] == 3600

    def test_worklog_without_author_is_skipped(self, db_session, make_jira):
        make_jira(worklogs=[{"timeSpent": "1h", "timeSpentSeconds": 3600}])

        result = JiraTransformer(db_session).transform()

        assert result.created == 1  # ticket_created only
        assert result.skipped == 1

    def test_unparseable_worklog_date_fails_only_that_issue(self, db_session, make_jira):
        make_jira(ticket="GOOD-1")
        make_jira(ticket="BAD-1", worklogs=[{"author": "x", "started": "not-a-date"}])
        make_jira(ticket="GOOD-2")

        result = JiraTransformer(db_session).transform()

        assert result.processed == 3
        assert result.created == 2
        assert result.errors == 1
        assert _refs(db_session) == ["jira:GOOD-1:created", "jira:GOOD-2:created"]

    def test_changelog_entry_that_is_not_an_object(self, db_session, make_jira):
        make_jira(ticket="BAD-1", status_changes=["Done"])
        make_jira(ticket="GOOD-1")

        result = JiraTransformer(db_session).transform()

        assert result.created == 1
        assert result.errors == 1
        assert _refs(db_session) == ["jira:GOOD-1:created"]
