"""Identity, project and activity-log services."""

from teampulse.services.identity_service import IdentityService, normalize_email
from teampulse.services.project_service import ProjectService, normalize_alias

__all__ = ["IdentityService", "ProjectService", "normalize_email", "normalize_alias"]
