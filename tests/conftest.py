"""Pytest configuration and shared fixtures."""

import os
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set test environment variables before importing settings
os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from teampulse.models import (  # noqa: E402
    Activity,
    Base,
    EmailMetadataRecord,
    GitHubUserRecord,
    GitHubWebhookEventRecord,
    JiraIssueRecord,
    SlackMessageRecord,
)

BASE_TIME = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_engine():
    """Create in-memory database engine for testing."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture
def db_session(db_engine):
    """Create database session for testing."""
    SessionLocal = sessionmaker(bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite engine, for tests that open several sessions."""
    engine = create_engine(f"sqlite:///{tmp_path / 'teampulse.db'}", echo=False)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(file_engine):
    """Session factory bound to the file-backed engine."""
    return sessionmaker(bind=file_engine)


@pytest.fixture
def make_email(db_session):
    """Insert an email_metadata row."""
    counter = {"n": 0}

    def _make(session=None, **overrides):
        counter["n"] += 1
        values = {
            "org_id": "acme",
            "user_email": "owner@acme.io",
            "message_id": f"msg-{counter['n']}",
            "sender": "Alice@Acme.io",
            "receivers": ["Bob@acme.io"],
            "subject": "[Alpha] Sprint planning",
            "body": "See agenda",
            "timestamp": int(BASE_TIME.timestamp() * 1000),
            "thread_id": "t-1",
        }
        values.update(overrides)
        row = EmailMetadataRecord(**values)
        target = session or db_session
        target.add(row)
        target.commit()
        return row

    return _make


@pytest.fixture
def make_slack(db_session):
    """Insert a slack_messages row."""
    counter = {"n": 0}

    def _make(session=None, **overrides):
        counter["n"] += 1
        values = {
            "event_id": f"Ev{counter['n']}",
            "team_id": "T1",
            "user_id": "U1",
            "user_name": "alice",
            "email": "alice@acme.io",
            "channel_id": "C-GENERAL",
            "text": "Deploy went out, thanks everyone for the help",
            "timestamp": BASE_TIME.timestamp(),
            "mentions": [],
            "attachments": [],
        }
        values.update(overrides)
        row = SlackMessageRecord(**values)
        target = session or db_session
        target.add(row)
        target.commit()
        return row

    return _make


@pytest.fixture
def make_jira(db_session):
    """Insert a jira_issues row."""
    counter = {"n": 0}

    def _make(session=None, **overrides):
        counter["n"] += 1
        values = {
            "workspace": "PROJ",
            "ticket": f"PROJ-{counter['n']}",
            "assignee": "Alice",
            "assignee_email": "alice@acme.io",
            "reporter": "Bob",
            "reporter_email": "bob@acme.io",
            "status": "In Progress",
            "priority": "High",
            "issue_type": "Bug",
            "labels": [],
            "components": [],
            "status_changes": [],
            "worklogs": [],
            "created_at": BASE_TIME,
            "updated_at": BASE_TIME,
        }
        values.update(overrides)
        row = JiraIssueRecord(**values)
        target = session or db_session
        target.add(row)
        target.commit()
        return row

    return _make


@pytest.fixture
def make_github_event(db_session):
    """Insert a github_webhook_events row."""

    def _make(session=None, **overrides):
        values = {
            "event_type": "push",
            "event_action": None,
            "installation_id": 42,
            "repository_id": 7,
            "repository_full_name": "acme/api",
            "sender_login": "alice-gh",
            "payload": {"ref": "refs/heads/main", "commits": [{"id": "a"}, {"id": "b"}]},
            "created_at": BASE_TIME,
        }
        values.update(overrides)
        row = GitHubWebhookEventRecord(**values)
        target = session or db_session
        target.add(row)
        target.commit()
        return row

    return _make


@pytest.fixture
def make_github_user(db_session):
    """Insert a github_users row."""

    def _make(login, email, session=None):
        row = GitHubUserRecord(login=login, email=email)
        target = session or db_session
        target.add(row)
        target.commit()
        return row

    return _make


@pytest.fixture
def make_activity(db_session):
    """Insert an activity directly, bypassing the transformers."""
    counter = {"n": 0}

    def _make(session=None, **overrides):
        counter["n"] += 1
        values = {
            "org_id": "acme",
            "source": "github",
            "activity_type": "commit",
            "actor_email": "alice@acme.io",
            "project_alias": "acme/api",
            "timestamp": BASE_TIME,
            "metadata_json": {},
            "source_ref_id": f"test:{counter['n']}",
        }
        values.update(overrides)
        row = Activity(**values)
        target = session or db_session
        target.add(row)
        target.commit()
        return row

    return _make
