"""Project resolution: map per-source aliases to canonical projects.

Aliases are repo full names (github), channel ids (slack), project keys
(jira) and subject tokens (email). They are lowercased and trimmed before
every lookup or write, so matching is case-insensitive.
"""

import logging
import re
import uuid
from typing import Optional, List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from teampulse.models.project import Project, ProjectAlias, ALIAS_SOURCES

logger = logging.getLogger(__name__)


def normalize_alias(alias: Optional[str]) -> str:
    """Lowercase and trim an alias."""
    return (alias or "").strip().lower()


def name_from_alias(alias: str) -> str:
    """Build a human name from an alias.

    Example:
        >>> name_from_alias("mobile-app_v2")
        'Mobile App V2'
    """
    spaced = re.sub(r"[_-]", " ", alias)
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced)


def _check_source(source: str):
    if source not in ALIAS_SOURCES:
        raise ValueError(f"Unknown alias source: {source}")


class ProjectService:
    """Create, look up and maintain canonical projects."""

    def __init__(self, db: Session):
        self.db = db

    def find_by_alias(self, alias: str, source: Optional[str] = None) -> Optional[Project]:
        """Find the project owning an alias.

        Args:
            alias: Raw alias (any case)
            source: Restrict the search to one source's aliases; all sources
                are searched when omitted

        Returns:
            Project or None
        """
        normalized = normalize_alias(alias)
        if not normalized:
            return None

        query = (
            self.db.query(Project)
            .join(ProjectAlias)
            .filter(ProjectAlias.alias == normalized)
        )
        if source:
            query = query.filter(ProjectAlias.source == source)

        return query.order_by(Project.created_at.asc(), Project.id.asc()).first()

    def resolve_project_id(self, alias: str, source: Optional[str] = None) -> Optional[str]:
        project = self.find_by_alias(alias, source)
        return project.project_id if project else None

    def create_project(
        self,
        name: str,
        org_id: str,
        initial_alias: Optional[Tuple[str, str]] = None,
        description: Optional[str] = None,
    ) -> Project:
        """Create a project, optionally with one (source, alias) pair."""
        project = Project(
            project_id=str(uuid.uuid4()),
            name=name,
            org_id=org_id,
            description=description,
            is_active=True,
        )
        if initial_alias:
            source, alias = initial_alias
            _check_source(source)
            project.aliases.append(ProjectAlias(source=source, alias=normalize_alias(alias)))

        self.db.add(project)
        self.db.commit()
        self.db.refresh(project)
        logger.info(f"Created project {project.project_id} ({project.name}) for org {org_id}")
        return project

    def find_or_create(self, alias: str, source: str, org_id: str) -> Project:
        """Find the project for an alias, creating one named after it on a miss."""
        _check_source(source)
        normalized = normalize_alias(alias)
        if not normalized:
            raise ValueError("Alias is required to find or create a project")

        existing = self.find_by_alias(normalized, source)
        if existing:
            return existing

        try:
            return self.create_project(
                name=name_from_alias(normalized),
                org_id=org_id,
                initial_alias=(source, normalized),
            )
        except IntegrityError:
            # Alias claimed concurrently, rollback and fetch existing
            self.db.rollback()
            existing = self.find_by_alias(normalized, source)
            if existing:
                return existing
            raise

    def get_project(self, project_id: str) -> Optional[Project]:
        return self.db.query(Project).filter(Project.project_id == project_id).first()

    def add_alias(self, project_id: str, source: str, alias: str) -> Optional[Project]:
        """Add an alias to a project. Adding an alias it already has is a no-op.

        Raises:
            ValueError: the alias already belongs to another project for this source
        """
        _check_source(source)
        project = self.get_project(project_id)
        if not project:
            return None

        normalized = normalize_alias(alias)
        owner = self.find_by_alias(normalized, source)
        if owner is not None:
            if owner.project_id == project.project_id:
                return project
            raise ValueError(
                f"Alias '{normalized}' ({source}) already belongs to project {owner.project_id}"
            )

        project.aliases.append(ProjectAlias(source=source, alias=normalized))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValueError(f"Alias '{normalized}' ({source}) was claimed by another project")
        self.db.refresh(project)
        return project

    def remove_alias(self, project_id: str, source: str, alias: str) -> Optional[Project]:
        """Remove an alias from a project. Removing a missing alias is a no-op."""
        _check_source(source)
        project = self.get_project(project_id)
        if not project:
            return None

        normalized = normalize_alias(alias)
        (
            self.db.query(ProjectAlias)
            .filter(
                ProjectAlias.project_id == project_id,
                ProjectAlias.source == source,
                ProjectAlias.alias == normalized,
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(project)
        return project

    def get_org_projects(self, org_id: str, active_only: bool = True) -> List[Project]:
        query = self.db.query(Project).filter(Project.org_id == org_id)
        if active_only:
            query = query.filter(Project.is_active.is_(True))
        return query.order_by(Project.name.asc()).all()

    def update_project(
        self,
        project_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[Project]:
        project = self.get_project(project_id)
        if not project:
            return None

        if name is not None:
            project.name = name
        if description is not None:
            project.description = description
        if is_active is not None:
            project.is_active = is_active

        self.db.commit()
        self.db.refresh(project)
        return project

    def deactivate_project(self, project_id: str) -> Optional[Project]:
        """Soft delete."""
        return self.update_project(project_id, is_active=False)
