"""Read-side queries over the activity log for operators."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from teampulse.models.activity import Activity

logger = logging.getLogger(__name__)

ORPHAN_ALIAS_LIMIT = 50


def count_activities(db: Session, source: Optional[str] = None, org_id: Optional[str] = None) -> int:
    query = db.query(func.count(Activity.id))
    if source:
        query = query.filter(Activity.source == source)
    if org_id:
        query = query.filter(Activity.org_id == org_id)
    return query.scalar() or 0


def get_orphan_summary(db: Session, org_id: str, alias_limit: int = ORPHAN_ALIAS_LIMIT) -> Dict[str, Any]:
    """
    Activities whose actor or project did not resolve at transform time.

    Returns:
        Dict with per-source totals, unresolved actor and project counts, and
        the most frequent unresolved aliases per source so an operator can
        register them as project aliases.
    """
    rows = (
        db.query(
            Activity.source,
            func.count(Activity.id),
            func.sum(case((Activity.actor_identity_id.is_(None), 1), else_=0)),
            func.sum(case((Activity.project_id.is_(None), 1), else_=0)),
        )
        .filter(Activity.org_id == org_id)
        .group_by(Activity.source)
        .all()
    )

    by_source = {}
    for source, total, no_actor, no_project in rows:
        by_source[source] = {
            "total": total,
            "unresolved_actors": int(no_actor or 0),
            "unresolved_projects": int(no_project or 0),
        }

    alias_rows = (
        db.query(Activity.source, Activity.project_alias, func.count(Activity.id).label("n"))
        .filter(Activity.org_id == org_id, Activity.project_id.is_(None))
        .group_by(Activity.source, Activity.project_alias)
        .order_by(func.count(Activity.id).desc(), Activity.project_alias.asc())
        .limit(alias_limit)
        .all()
    )
    unresolved_aliases = [
        {"source": source, "alias": alias, "activities": n} for source, alias, n in alias_rows
    ]

    logger.debug(f"Orphan summary for {org_id}: {len(by_source)} sources")
    return {
        "org_id": org_id,
        "by_source": by_source,
        "unresolved_aliases": unresolved_aliases,
    }
