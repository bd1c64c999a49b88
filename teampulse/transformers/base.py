"""Shared machinery for source transformers.

Every transformer follows the same loop:

    1. fetch raw rows for the window (a failure here aborts the run)
    2. convert each row to its typed raw record
    3. map each raw record to one or more ActivityDraft / Skipped items
    4. skip drafts whose (source, source_ref_id) already exists
    5. insert the rest, one commit per activity

A failure while converting, mapping or writing one record is logged, counted in
``errors`` and does not stop the batch.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from teampulse.models.activity import Activity
from teampulse.services.identity_service import IdentityService, normalize_email
from teampulse.services.project_service import ProjectService, normalize_alias
from teampulse.utils.log_sanitizer import sanitize_exception, sanitize_string

logger = logging.getLogger(__name__)


@dataclass
class TransformResult:
    """Counters for one transformer invocation."""
    processed: int = 0
    created: int = 0
    skipped: int = 0
    errors: int = 0
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "created": self.created,
            "skipped": self.skipped,
            "errors": self.errors,
            "cancelled": self.cancelled,
        }


@dataclass
class ActivityDraft:
    """A mapped activity that has not been written yet."""
    source_ref_id: str
    org_id: str
    activity_type: str
    actor_email: str
    project_alias: str
    timestamp: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Skipped:
    """A raw record (or sub-event) that maps to no activity."""
    source_ref_id: Optional[str]
    reason: str


MappedItem = Union[ActivityDraft, Skipped]


class ActivityResolver:
    """Read-only identity and project lookups with a per-run cache.

    Misses are cached too and leave the activity unresolved. Nothing is
    created from here.
    """

    def __init__(self, db: Session):
        self.identities = IdentityService(db)
        self.projects = ProjectService(db)
        self._identity_ids: Dict[str, Optional[int]] = {}
        self._project_ids: Dict[tuple, Optional[str]] = {}

    def identity_id(self, email: str) -> Optional[int]:
        if email not in self._identity_ids:
            self._identity_ids[email] = self.identities.resolve(email)
        return self._identity_ids[email]

    def project_id(self, alias: str, source: str) -> Optional[str]:
        key = (source, alias)
        if key not in self._project_ids:
            self._project_ids[key] = self.projects.resolve_project_id(alias, source)
        return self._project_ids[key]


class BaseTransformer:
    """Base class for source transformers.

    Subclasses set ``source`` and ``raw_type`` and implement ``fetch`` and
    ``map_record``.
    """

    source: str = None
    raw_type = None

    def __init__(self, db: Session, resolver: Optional[ActivityResolver] = None):
        self.db = db
        self.resolver = resolver

    def fetch(self, since: Optional[datetime], scope: Optional[str]) -> List[Any]:
        """Load the raw ORM rows for the window."""
        raise NotImplementedError

    def to_raw(self, row):
        """Copy one ORM row into its typed raw record.

        Raises whatever the row's malformed JSON fields raise; the caller
        counts that as a per-record error.
        """
        if self.raw_type is None:
            return row
        return self.raw_type.from_orm(row)

    def map_record(self, raw) -> Iterable[MappedItem]:
        """Map one raw record to activity drafts and skipped sub-events."""
        raise NotImplementedError

    def describe(self, row) -> str:
        """Short identifier of a raw row for log lines."""
        return repr(row)

    def transform(
        self,
        since: Optional[datetime] = None,
        scope: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TransformResult:
        """Transform raw records newer than ``since`` into activities.

        Args:
            since: Watermark; None means a full scan
            scope: Optional partition filter (org id, team id, workspace or
                installation id depending on the source)
            cancel_event: When set, processing stops before the next record
                and the partial counters are returned with cancelled=True

        Returns:
            TransformResult
        """
        result = TransformResult()
        rows = self.fetch(since, scope)
        logger.info(f"{self.source}: {len(rows)} raw records to transform")

        for row in rows:
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                logger.warning(
                    f"{self.source}: cancelled after {result.processed} of {len(rows)} records"
                )
                break

            result.processed += 1
            try:
                raw = self.to_raw(row)
                for item in self.map_record(raw):
                    if isinstance(item, Skipped):
                        result.skipped += 1
                        continue
                    if self._exists(item.source_ref_id):
                        result.skipped += 1
                        continue
                    if self._insert(item):
                        result.created += 1
                    else:
                        result.skipped += 1
            except Exception as e:
                self.db.rollback()
                logger.error(
                    f"Error transforming {self.source} record "
                    f"{sanitize_string(self.describe(row))}: {sanitize_exception(e)}"
                )
                result.errors += 1

        return result

    def _exists(self, source_ref_id: str) -> bool:
        return (
            self.db.query(Activity.id)
            .filter(Activity.source == self.source, Activity.source_ref_id == source_ref_id)
            .first()
            is not None
        )

    def _insert(self, draft: ActivityDraft) -> bool:
        """Write one activity. Returns False when it already existed."""
        actor_email = normalize_email(draft.actor_email)
        project_alias = normalize_alias(draft.project_alias) or "unknown"

        activity = Activity(
            org_id=draft.org_id,
            source=self.source,
            activity_type=draft.activity_type,
            actor_email=actor_email,
            project_alias=project_alias,
            timestamp=draft.timestamp,
            metadata_json=draft.metadata,
            source_ref_id=draft.source_ref_id,
        )
        if self.resolver is not None:
            activity.actor_identity_id = self.resolver.identity_id(actor_email)
            activity.project_id = self.resolver.project_id(project_alias, self.source)

        self.db.add(activity)
        try:
            self.db.commit()
            return True
        except IntegrityError:
            # Written by a concurrent run between the existence check and here
            self.db.rollback()
            logger.debug(f"{self.source}: duplicate {draft.source_ref_id}, skipping")
            return False
