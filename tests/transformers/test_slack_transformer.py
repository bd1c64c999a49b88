"""Tests for the Slack transformer."""

from teampulse.models import Activity
from teampulse.transformers.slack_transformer import SlackTransformer


class TestSlackTransformer:
    """Slack events -> message activities."""

    def test_creates_message_with_metadata(self, db_session, make_slack):
        make_slack(
            event_id="Ev-A",
            mentions=[{"id": "U2", "name": "bob", "email": "Bob@Acme.io", "type": "user"}],
            attachments=[{"name": "log.txt"}],
        )

        result = SlackTransformer(db_session).transform()

        assert result.created == 1
        activity = db_session.query(Activity).one()
        assert activity.source_ref_id == "slack:Ev-A"
        assert activity.org_id == "T1"
        assert activity.project_alias == "c-general"
        assert activity.meta["mention_count"] == 1
        assert activity.meta["mentions"] == [{"email": "bob@acme.io", "type": "user"}]
        assert activity.meta["has_attachments"] is True

    def test_skips_messages_without_email(self, db_session, make_slack):
        """Test events without a usable email are skipped, not errors."""
        make_slack(email=None)
        make_slack(email="No Email")

        result = SlackTransformer(db_session).transform()

        assert result.processed == 2
        assert result.skipped == 2
        assert result.errors == 0
        assert db_session.query(Activity).count() == 0

    def test_text_is_truncated(self, db_session, make_slack):
        make_slack(text="x" * 800)

        SlackTransformer(db_session).transform()

        assert len(db_session.query(Activity).one().meta["text"]) == 500

    def test_missing_channel_uses_general(self, db_session, make_slack):
        make_slack(channel_id=None)

        SlackTransformer(db_session).transform()

        assert db_session.query(Activity).one().project_alias == "general"

    def test_rerun_is_idempotent(self, db_session, make_slack):
        make_slack()

        SlackTransformer(db_session).transform()
        second = SlackTransformer(db_session).transform()

        assert second.created == 0
        assert second.skipped == 1
        assert db_session.query(Activity).count() == 1

    def test_malformed_row_is_counted_and_batch_continues(self, db_session, make_slack):
        make_slack(event_id="Ev-bad", attachments=3)
        make_slack(event_id="Ev-good")

        result = SlackTransformer(db_session).transform()

        assert result.created == 1
        assert result.errors == 1
        assert db_session.query(Activity).one().source_ref_id == "slack:Ev-good"
