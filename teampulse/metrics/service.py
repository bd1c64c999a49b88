"""Session-managing facade over the metric engines."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from teampulse.metrics.dora import calculate_dora_metrics, get_org_dora_overview
from teampulse.metrics.flow import calculate_flow_metrics, get_org_flow_overview
from teampulse.metrics.space import calculate_space_metrics, get_org_space_overview
from teampulse.utils.database import get_session_factory, session_scope
from teampulse.utils.timezone import ensure_utc, utc_now

logger = logging.getLogger(__name__)

OVERVIEW_KINDS = ("space", "flow", "dora")
DEFAULT_WINDOW_DAYS = 30


def resolve_window(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    days: int = DEFAULT_WINDOW_DAYS,
) -> Tuple[datetime, datetime]:
    """Fill a missing window bound: end defaults to now, start to end - days."""
    end = ensure_utc(end) if end else utc_now()
    start = ensure_utc(start) if start else end - timedelta(days=days)
    if start > end:
        raise ValueError("start must not be after end")
    return start, end


class MetricsService:
    """Opens one session per call and returns JSON-compatible dicts."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or get_session_factory()

    def space(self, email: str, start=None, end=None, days: int = DEFAULT_WINDOW_DAYS) -> Dict[str, Any]:
        start, end = resolve_window(start, end, days)
        with session_scope(self.session_factory) as db:
            return calculate_space_metrics(db, email, start, end).to_dict()

    def flow(self, project: str, start=None, end=None, days: int = DEFAULT_WINDOW_DAYS) -> Dict[str, Any]:
        start, end = resolve_window(start, end, days)
        with session_scope(self.session_factory) as db:
            return calculate_flow_metrics(db, project, start, end).to_dict()

    def dora(self, project: str, start=None, end=None, days: int = DEFAULT_WINDOW_DAYS) -> Dict[str, Any]:
        start, end = resolve_window(start, end, days)
        with session_scope(self.session_factory) as db:
            return calculate_dora_metrics(db, project, start, end).to_dict()

    def overview(
        self, org_id: str, kind: str, start=None, end=None, days: int = DEFAULT_WINDOW_DAYS
    ) -> List[Dict[str, Any]]:
        if kind not in OVERVIEW_KINDS:
            raise ValueError(f"Unknown overview kind: {kind}")
        start, end = resolve_window(start, end, days)
        builders = {
            "space": get_org_space_overview,
            "flow": get_org_flow_overview,
            "dora": get_org_dora_overview,
        }
        with session_scope(self.session_factory) as db:
            rows = builders[kind](db, org_id, start, end)
        logger.debug(f"{kind} overview for {org_id}: {len(rows)} rows")
        return rows
