"""Tests for the transform orchestrator."""

import threading
from datetime import timedelta

import pytest

from teampulse.models import Activity, TransformState
from teampulse.transformers.base import TransformResult
from teampulse.transformers.runner import ALREADY_RUNNING, CANCELLED, TransformerRunner
from teampulse.utils.timezone import ensure_utc, utc_now


class StubTransformer:
    """Records the watermark it was called with and returns a canned result."""

    def __init__(self, result=None, error=None):
        self.result = result or TransformResult(processed=1, created=1)
        self.error = error
        self.calls = []

    def transform(self, since=None, scope=None, cancel_event=None):
        self.calls.append(since)
        if self.error:
            raise self.error
        return self.result


def _state(session_factory, source):
    session = session_factory()
    try:
        return session.query(TransformState).filter(TransformState.source == source).first()
    finally:
        session.close()


def _runner(session_factory, **transformers):
    return TransformerRunner(
        session_factory,
        transformers={name: (lambda db, t=t: t) for name, t in transformers.items()},
        lease_timeout=timedelta(minutes=60),
        lookback_days=30,
        source_order=list(transformers),
    )


class TestRunTransformer:

    def test_unknown_source(self, session_factory):
        result = _runner(session_factory, email=StubTransformer()).run_transformer("bogus")

        assert result.success is False
        assert result.error == "Unknown source: bogus"

    def test_success_updates_state(self, session_factory):
        stub = StubTransformer()
        result = _runner(session_factory, email=stub).run_transformer("email")

        assert result.success is True
        assert result.result.created == 1
        state = _state(session_factory, "email")
        assert state.is_running is False
        assert state.last_success_at is not None
        assert state.last_run_at is not None
        assert state.last_error is None

    def test_first_run_uses_lookback_window(self, session_factory):
        stub = StubTransformer()
        before = utc_now()

        _runner(session_factory, email=stub).run_transformer("email")

        since = ensure_utc(stub.calls[0])
        assert before - timedelta(days=30, minutes=1) <= since <= utc_now() - timedelta(days=30)

    def test_second_run_starts_from_last_success(self, session_factory):
        stub = StubTransformer()
        runner = _runner(session_factory, email=stub)

        runner.run_transformer("email")
        first_success = ensure_utc(_state(session_factory, "email").last_success_at)
        runner.run_transformer("email")

        assert ensure_utc(stub.calls[1]) == first_success

    def test_failure_keeps_watermark(self, session_factory):
        """Test a failed run records the error but keeps last_success_at."""
        ok = StubTransformer()
        _runner(session_factory, email=ok).run_transformer("email")
        watermark = _state(session_factory, "email").last_success_at

        result = _runner(
            session_factory, email=StubTransformer(error=RuntimeError("boom"))
        ).run_transformer("email")

        assert result.success is False
        assert result.error == "boom"
        state = _state(session_factory, "email")
        assert state.last_success_at == watermark
        assert state.last_error == "boom"
        assert state.is_running is False

    def test_cancelled_run_is_a_failure(self, session_factory):
        stub = StubTransformer(result=TransformResult(processed=2, created=2, cancelled=True))

        result = _runner(session_factory, email=stub).run_transformer("email", cancel_event=threading.Event())

        assert result.success is False
        assert result.error == CANCELLED
        assert result.result.created == 2
        state = _state(session_factory, "email")
        assert state.last_success_at is None
        assert state.last_error == CANCELLED

    def test_malformed_row_does_not_hold_back_watermark(self, session_factory, make_email):
        """Test a bad raw row is a per-record error and the run still succeeds."""
        session = session_factory()
        make_email(session=session, message_id="m-bad", receivers=5)
        make_email(session=session, message_id="m-good")
        session.close()

        result = TransformerRunner(session_factory, lookback_days=3650).run_transformer("email")

        assert result.success is True
        assert result.result.created == 1
        assert result.result.errors == 1
        state = _state(session_factory, "email")
        assert state.last_success_at is not None
        assert state.last_error is None


class TestSingleFlight:

    def test_running_source_is_rejected(self, session_factory):
        """Test a fresh running flag blocks a second run."""
        session = session_factory()
        session.add(TransformState(source="email", is_running=True, run_started_at=utc_now()))
        session.commit()
        session.close()
        stub = StubTransformer()

        result = _runner(session_factory, email=stub).run_transformer("email")

        assert result.success is False
        assert result.error == ALREADY_RUNNING
        assert stub.calls == []

    def test_stale_lease_is_taken_over(self, session_factory):
        session = session_factory()
        session.add(TransformState(
            source="email", is_running=True, run_started_at=utc_now() - timedelta(hours=2)
        ))
        session.commit()
        session.close()

        result = _runner(session_factory, email=StubTransformer()).run_transformer("email")

        assert result.success is True
        assert _state(session_factory, "email").is_running is False

    def test_nested_run_of_same_source_is_rejected(self, session_factory):
        """Test a run started while another holds the flag returns already-running."""
        inner_results = []

        class Reentrant:
            def transform(self, since=None, scope=None, cancel_event=None):
                inner_results.append(runner.run_transformer("email"))
                return TransformResult()

        runner = TransformerRunner(
            session_factory,
            transformers={"email": lambda db: Reentrant()},
            lease_timeout=timedelta(minutes=60),
            lookback_days=30,
        )

        outer = runner.run_transformer("email")

        assert outer.success is True
        assert inner_results[0].success is False
        assert inner_results[0].error == ALREADY_RUNNING


class TestRunAll:

    def test_failure_is_isolated(self, session_factory):
        """Test a failing source does not stop the ones after it."""
        runner = _runner(
            session_factory,
            email=StubTransformer(),
            slack=StubTransformer(error=RuntimeError("slack down")),
            jira=StubTransformer(),
            github=StubTransformer(),
        )

        results = runner.run_all()

        assert [r.source for r in results] == ["email", "slack", "jira", "github"]
        assert [r.success for r in results] == [True, False, True, True]
        assert results[1].error == "slack down"

    def test_cancelled_before_start_skips_sources(self, session_factory):
        cancel = threading.Event()
        cancel.set()
        stub = StubTransformer()

        results = _runner(session_factory, email=stub).run_all(cancel_event=cancel)

        assert results[0].error == CANCELLED
        assert stub.calls == []

    def test_real_transformers_end_to_end(self, session_factory, make_email, make_jira):
        """Test the default transformer set writes activities through the runner."""
        session = session_factory()
        make_email(session=session)
        make_jira(session=session, updated_at=utc_now())
        session.close()

        runner = TransformerRunner(session_factory, lookback_days=3650)
        results = {r.source: r for r in runner.run_all()}

        assert all(r.success for r in results.values())
        assert results["email"].result.created == 1
        assert results["jira"].result.created == 1

        session = session_factory()
        assert session.query(Activity).count() == 2
        session.close()


class TestStatus:

    def test_status_and_reset(self, session_factory):
        session = session_factory()
        session.add(TransformState(source="jira", is_running=True, run_started_at=utc_now()))
        session.commit()
        session.close()
        runner = _runner(session_factory, jira=StubTransformer())

        status = runner.get_transform_status()
        assert status[0]["source"] == "jira"
        assert status[0]["is_running"] is True

        assert runner.reset_source("jira") is True
        assert runner.get_transform_status()[0]["is_running"] is False
        assert runner.reset_source("github") is False
