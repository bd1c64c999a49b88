"""Tests for the Celery app and transform tasks."""

from unittest.mock import patch

from teampulse.tasks.celery_app import _schedule_minutes, celery_app, on_worker_process_shutdown
from teampulse.tasks.transform_tasks import transform_all_sources, transform_source
from teampulse.transformers.base import TransformResult
from teampulse.transformers.runner import RunResult


class TestCeleryApp:

    def test_beat_runs_transform_all(self):
        entry = celery_app.conf.beat_schedule["transform-all-sources"]

        assert entry["task"] == "teampulse.tasks.transform_tasks.transform_all_sources"

    def test_schedule_minutes(self):
        assert _schedule_minutes(15) == "*/15"
        assert _schedule_minutes(1) == "*"
        assert _schedule_minutes(0) == "*"
        assert _schedule_minutes(500) == "*/60"

    def test_worker_shutdown_releases_connections(self):
        with patch("teampulse.tasks.celery_app.cleanup_connections") as cleanup:
            on_worker_process_shutdown()

        cleanup.assert_called_once_with()

    def test_json_only(self):
        assert celery_app.conf.task_serializer == "json"
        assert celery_app.conf.accept_content == ["json"]
        assert celery_app.conf.task_acks_late is True


class TestTransformTasks:

    def test_transform_all_sources_returns_dicts(self):
        results = [
            RunResult(source="email", success=True, result=TransformResult(processed=2, created=2)),
            RunResult(source="slack", success=False, error="boom"),
        ]

        with patch("teampulse.transformers.runner.transform_all", return_value=results):
            output = transform_all_sources.apply().get()

        assert [r["source"] for r in output] == ["email", "slack"]
        assert output[0]["result"]["created"] == 2
        assert output[1] == {
            "source": "slack",
            "success": False,
            "result": None,
            "error": "boom",
            "duration_ms": 0,
        }

    def test_transform_source(self):
        result = RunResult(source="jira", success=True, result=TransformResult(processed=1))

        with patch("teampulse.transformers.runner.transform_by_source", return_value=result) as run:
            output = transform_source.apply(args=("jira",)).get()

        run.assert_called_once_with("jira")
        assert output["source"] == "jira"
        assert output["result"]["processed"] == 1
