"""Tests for project resolution."""

import pytest

from teampulse.models import Project
from teampulse.services.project_service import ProjectService, name_from_alias, normalize_alias


class TestHelpers:

    def test_normalize_alias(self):
        assert normalize_alias("  Acme/API ") == "acme/api"

    def test_name_from_alias(self):
        assert name_from_alias("mobile-app_v2") == "Mobile App V2"


class TestProjectService:

    def test_create_with_initial_alias(self, db_session):
        service = ProjectService(db_session)

        project = service.create_project("API", "acme", initial_alias=("github", "Acme/API"))

        assert project.aliases_by_source()["github"] == ["acme/api"]
        assert service.resolve_project_id("ACME/api", "github") == project.project_id

    def test_alias_lookup_is_per_source(self, db_session):
        service = ProjectService(db_session)
        service.create_project("Proj", "acme", initial_alias=("jira", "proj"))

        assert service.find_by_alias("proj", "slack") is None
        assert service.find_by_alias("proj") is not None

    def test_find_or_create_names_project_from_alias(self, db_session):
        service = ProjectService(db_session)

        first = service.find_or_create("mobile-app", "slack", "acme")
        second = service.find_or_create("MOBILE-APP", "slack", "acme")

        assert first.project_id == second.project_id
        assert first.name == "Mobile App"
        assert db_session.query(Project).count() == 1

    def test_add_alias_is_idempotent(self, db_session):
        service = ProjectService(db_session)
        project = service.create_project("API", "acme")

        service.add_alias(project.project_id, "github", "acme/api")
        project = service.add_alias(project.project_id, "github", "ACME/api")

        assert project.aliases_by_source()["github"] == ["acme/api"]

    def test_alias_owned_by_another_project_is_rejected(self, db_session):
        """Test an alias maps to at most one project per source."""
        service = ProjectService(db_session)
        owner = service.create_project("API", "acme", initial_alias=("github", "acme/api"))
        other = service.create_project("Other", "acme")

        with pytest.raises(ValueError):
            service.add_alias(other.project_id, "github", "acme/api")

        assert service.resolve_project_id("acme/api", "github") == owner.project_id

    def test_same_alias_allowed_for_different_sources(self, db_session):
        service = ProjectService(db_session)
        one = service.create_project("One", "acme", initial_alias=("jira", "core"))
        two = service.create_project("Two", "acme")

        service.add_alias(two.project_id, "slack", "core")

        assert service.resolve_project_id("core", "jira") == one.project_id
        assert service.resolve_project_id("core", "slack") == two.project_id

    def test_remove_alias(self, db_session):
        service = ProjectService(db_session)
        project = service.create_project("API", "acme", initial_alias=("github", "acme/api"))

        service.remove_alias(project.project_id, "github", "acme/api")
        project = service.remove_alias(project.project_id, "github", "acme/api")

        assert project.aliases_by_source()["github"] == []
        assert service.resolve_project_id("acme/api", "github") is None

    def test_unknown_source_is_rejected(self, db_session):
        with pytest.raises(ValueError):
            ProjectService(db_session).find_or_create("x", "myspace", "acme")

    def test_deactivate_hides_from_active_listing(self, db_session):
        service = ProjectService(db_session)
        keep = service.create_project("Keep", "acme")
        gone = service.create_project("Gone", "acme")

        service.deactivate_project(gone.project_id)

        assert [p.name for p in service.get_org_projects("acme")] == ["Keep"]
        assert len(service.get_org_projects("acme", active_only=False)) == 2
        assert service.get_project(keep.project_id).is_active is True

    def test_update_project(self, db_session):
        service = ProjectService(db_session)
        project = service.create_project("API", "acme")

        updated = service.update_project(project.project_id, name="Public API", description="REST")

        assert updated.name == "Public API"
        assert updated.description == "REST"
        assert service.update_project("missing") is None
