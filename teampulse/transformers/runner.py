"""Transform orchestrator: run source transformers and track their state.

Per source the state goes IDLE -> RUNNING -> (SUCCESS | FAILED) -> IDLE.
Only one run per source may hold the running flag. The flag is taken with a
single conditional UPDATE, and a flag older than the lease timeout is treated
as abandoned by a crashed run and can be taken over.

Usage:
    runner = TransformerRunner(get_session_factory())
    results = runner.run_all()
    for r in results:
        print(r.to_dict())
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import and_, or_, update
from sqlalchemy.exc import IntegrityError

from config.settings import settings
from teampulse.models.transform_state import TransformState
from teampulse.transformers.base import ActivityResolver, TransformResult
from teampulse.transformers.email_transformer import EmailTransformer
from teampulse.transformers.slack_transformer import SlackTransformer
from teampulse.transformers.jira_transformer import JiraTransformer
from teampulse.transformers.github_transformer import GitHubTransformer, LoginEmailCache
from teampulse.utils.database import close_session, get_session_factory
from teampulse.utils.log_sanitizer import sanitize_exception
from teampulse.utils.timezone import days_ago, isoformat, utc_now

logger = logging.getLogger(__name__)

ALREADY_RUNNING = "Transformation already in progress"
CANCELLED = "Transformation cancelled"


@dataclass
class RunResult:
    """Outcome of one orchestrated transformer run."""
    source: str
    success: bool
    result: Optional[TransformResult] = None
    error: Optional[str] = None
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "success": self.success,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


def _email_factory(db):
    return EmailTransformer(db, resolver=ActivityResolver(db))


def _slack_factory(db):
    return SlackTransformer(db, resolver=ActivityResolver(db))


def _jira_factory(db):
    return JiraTransformer(db, resolver=ActivityResolver(db))


def _github_factory(db):
    return GitHubTransformer(
        db,
        resolver=ActivityResolver(db),
        email_cache=LoginEmailCache(db, settings.transform.github_placeholder_domain),
    )


DEFAULT_TRANSFORMERS: Dict[str, Callable] = {
    "email": _email_factory,
    "slack": _slack_factory,
    "jira": _jira_factory,
    "github": _github_factory,
}


class TransformerRunner:
    """Sequences transformers and records per-source run state."""

    def __init__(
        self,
        session_factory=None,
        transformers: Optional[Dict[str, Callable]] = None,
        lease_timeout: Optional[timedelta] = None,
        lookback_days: Optional[int] = None,
        source_order: Optional[List[str]] = None,
    ):
        """
        Args:
            session_factory: Callable returning a new Session
            transformers: Source name -> factory(session) returning a transformer
            lease_timeout: Age after which a running flag is considered abandoned
            lookback_days: Window for the first run of a source
            source_order: Order used by run_all
        """
        self.session_factory = session_factory or get_session_factory()
        self.transformers = transformers or dict(DEFAULT_TRANSFORMERS)
        self.lease_timeout = lease_timeout or timedelta(
            minutes=settings.transform.lease_timeout_minutes
        )
        self.lookback_days = (
            lookback_days
            if lookback_days is not None
            else settings.transform.default_lookback_days
        )
        self.source_order = source_order or list(settings.transform.source_order)

    def _ensure_state(self, db, source: str) -> None:
        if db.query(TransformState.id).filter(TransformState.source == source).first():
            return
        db.add(TransformState(source=source, is_running=False))
        try:
            db.commit()
        except IntegrityError:
            # Another runner created the row first
            db.rollback()

    def _acquire(self, db, source: str) -> bool:
        """Atomically take the running flag, or a lease that has expired."""
        now = utc_now()
        stale_before = now - self.lease_timeout
        statement = (
            update(TransformState)
            .where(
                and_(
                    TransformState.source == source,
                    or_(
                        TransformState.is_running.is_(False),
                        TransformState.run_started_at.is_(None),
                        TransformState.run_started_at < stale_before,
                    ),
                )
            )
            .values(is_running=True, run_started_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        acquired = db.execute(statement).rowcount == 1
        db.commit()
        return acquired

    def _finish(self, db, source: str, error: Optional[str]) -> None:
        now = utc_now()
        values = {
            "is_running": False,
            "run_started_at": None,
            "last_run_at": now,
            "updated_at": now,
        }
        if error is None:
            values["last_success_at"] = now
            values["last_error"] = None
        else:
            values["last_error"] = error

        db.execute(
            update(TransformState)
            .where(TransformState.source == source)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.commit()

    def _watermark(self, db, source: str):
        state = db.query(TransformState).filter(TransformState.source == source).first()
        if state is not None and state.last_success_at is not None:
            return state.last_success_at
        return days_ago(self.lookback_days)

    def run_transformer(
        self,
        source: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> RunResult:
        """Run one source's transformer from its watermark.

        Never raises: failures come back as RunResult(success=False).
        """
        if source not in self.transformers:
            return RunResult(source=source, success=False, error=f"Unknown source: {source}")

        started = time.monotonic()
        db = self.session_factory()
        try:
            try:
                self._ensure_state(db, source)
                if not self._acquire(db, source):
                    logger.warning(f"{source}: {ALREADY_RUNNING}")
                    return RunResult(source=source, success=False, error=ALREADY_RUNNING)
            except Exception as e:
                db.rollback()
                logger.error(f"{source}: could not read transform state: {sanitize_exception(e)}")
                return RunResult(
                    source=source,
                    success=False,
                    error=str(e),
                    duration_ms=int((time.monotonic() - started) * 1000),
                )

            result = None
            error = None
            try:
                since = self._watermark(db, source)
                logger.info(f"{source}: transforming since {isoformat(since)}")
                transformer = self.transformers[source](db)
                result = transformer.transform(since=since, cancel_event=cancel_event)
                if result.cancelled:
                    error = CANCELLED
            except Exception as e:
                db.rollback()
                error = str(e) or e.__class__.__name__
                logger.error(f"{source}: transformation failed: {sanitize_exception(e)}")

            try:
                self._finish(db, source, error)
            except Exception as e:
                db.rollback()
                logger.error(f"{source}: could not record run state: {sanitize_exception(e)}")
                error = error or str(e)

            duration_ms = int((time.monotonic() - started) * 1000)
            if error is None:
                logger.info(
                    f"{source}: processed={result.processed} created={result.created} "
                    f"skipped={result.skipped} errors={result.errors} ({duration_ms}ms)"
                )
            return RunResult(
                source=source,
                success=error is None,
                result=result,
                error=error,
                duration_ms=duration_ms,
            )
        finally:
            close_session(db)

    def run_all(self, cancel_event: Optional[threading.Event] = None) -> List[RunResult]:
        """Run every source in order, one after another.

        A failed source does not stop the ones after it.
        """
        results = []
        for source in self.source_order:
            if cancel_event is not None and cancel_event.is_set():
                results.append(RunResult(source=source, success=False, error=CANCELLED))
                continue
            results.append(self.run_transformer(source, cancel_event=cancel_event))

        succeeded = sum(1 for r in results if r.success)
        created = sum(r.result.created for r in results if r.result)
        logger.info(
            f"Transform run complete: {succeeded}/{len(results)} sources succeeded, "
            f"{created} activities created"
        )
        for r in results:
            if not r.success:
                logger.warning(f"  {r.source}: {r.error}")
        return results

    def get_transform_status(self) -> List[Dict[str, Any]]:
        db = self.session_factory()
        try:
            states = db.query(TransformState).order_by(TransformState.source.asc()).all()
            return [state.to_dict() for state in states]
        finally:
            close_session(db)

    def reset_source(self, source: str) -> bool:
        """Clear a stuck running flag by hand. Returns False for an unknown source."""
        db = self.session_factory()
        try:
            updated = db.execute(
                update(TransformState)
                .where(TransformState.source == source)
                .values(is_running=False, run_started_at=None, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            ).rowcount
            db.commit()
            if updated:
                logger.info(f"{source}: running flag cleared")
            return updated == 1
        finally:
            close_session(db)


def transform_all() -> List[RunResult]:
    """Run all sources with the default runner."""
    return TransformerRunner().run_all()


def transform_by_source(source: str) -> RunResult:
    """Run one source with the default runner."""
    return TransformerRunner().run_transformer(source)


def get_transform_status() -> List[Dict[str, Any]]:
    return TransformerRunner().get_transform_status()
