"""Identity resolution: map per-source actor accounts to one person record.

Lookups always normalize the email first (lowercase, trimmed). When an email
could match more than one identity through alternates, the oldest identity
wins (ordered by created_at, then id), so repeated lookups are stable.
"""

import logging
from typing import Optional, List

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from teampulse.models.identity import Identity, IdentityAlternateEmail
from teampulse.utils.log_sanitizer import mask_email

logger = logging.getLogger(__name__)

DEFAULT_ORG_ID = "default"

# Source name -> (keyword argument, Identity column) pairs accepted by link_account
LINKABLE_ACCOUNTS = {
    "github": (("login", "github_login"), ("github_id", "github_id")),
    "slack": (("user_id", "slack_user_id"), ("team_id", "slack_team_id")),
    "jira": (("account_id", "jira_account_id"),),
}


def normalize_email(email: Optional[str]) -> str:
    """Lowercase and trim an email address."""
    return (email or "").strip().lower()


class IdentityService:
    """Find, create and link canonical identities."""

    def __init__(self, db: Session):
        self.db = db

    def _ordered(self, query):
        return query.order_by(Identity.created_at.asc(), Identity.id.asc())

    def _find_by_primary(self, email: str) -> Optional[Identity]:
        return self.db.query(Identity).filter(Identity.primary_email == email).first()

    def _find_by_email(self, email: str) -> Optional[Identity]:
        """Primary email first, then alternate emails."""
        if not email:
            return None

        identity = self._find_by_primary(email)
        if identity:
            return identity

        return self._ordered(
            self.db.query(Identity)
            .join(IdentityAlternateEmail)
            .filter(IdentityAlternateEmail.email == email)
        ).first()

    def resolve(self, email: str) -> Optional[int]:
        """Return the identity id for an email, or None. Never creates."""
        identity = self._find_by_email(normalize_email(email))
        return identity.id if identity else None

    def get_identity(self, email: str) -> Optional[Identity]:
        return self._find_by_email(normalize_email(email))

    def find_or_create(
        self,
        email: str,
        display_name: Optional[str] = None,
        org_id: Optional[str] = None,
    ) -> Identity:
        """Find an identity by email or create one with it as primary.

        Args:
            email: Email address (any case, surrounding whitespace allowed)
            display_name: Defaults to the local part of the email
            org_id: Defaults to "default"

        Returns:
            Existing or newly created Identity
        """
        normalized = normalize_email(email)
        if not normalized:
            raise ValueError("Email is required to find or create an identity")

        existing = self._find_by_email(normalized)
        if existing:
            return existing

        identity = Identity(
            primary_email=normalized,
            display_name=display_name or normalized.split("@")[0],
            org_id=org_id or DEFAULT_ORG_ID,
        )
        self.db.add(identity)

        try:
            self.db.commit()
            self.db.refresh(identity)
            logger.info(f"Created identity {identity.id} for {mask_email(normalized)}")
            return identity
        except IntegrityError:
            # Created concurrently by another caller, rollback and fetch existing
            self.db.rollback()
            existing = self._find_by_primary(normalized)
            if existing:
                return existing
            raise

    def link_account(self, email: str, source: str, **account_ids) -> Optional[Identity]:
        """Attach a source account to the identity owning ``email``.

        Args:
            email: Primary or alternate email of the identity
            source: "github" (login, github_id), "slack" (user_id, team_id)
                or "jira" (account_id)

        Returns:
            Updated Identity, or None when no identity matches
        """
        if source not in LINKABLE_ACCOUNTS:
            raise ValueError(f"Cannot link accounts for source: {source}")

        identity = self._find_by_email(normalize_email(email))
        if not identity:
            logger.debug(f"No identity to link {source} account for {mask_email(email)}")
            return None

        for kwarg, column in LINKABLE_ACCOUNTS[source]:
            value = account_ids.get(kwarg)
            if value is not None:
                setattr(identity, column, str(value))

        self.db.commit()
        self.db.refresh(identity)
        return identity

    def link_github(self, email: str, login: str, github_id=None) -> Optional[Identity]:
        return self.link_account(email, "github", login=login, github_id=github_id)

    def link_slack(self, email: str, user_id: str, team_id: Optional[str] = None) -> Optional[Identity]:
        return self.link_account(email, "slack", user_id=user_id, team_id=team_id)

    def link_jira(self, email: str, account_id: str) -> Optional[Identity]:
        return self.link_account(email, "jira", account_id=account_id)

    def add_alternate_email(self, primary_email: str, alternate_email: str) -> Optional[Identity]:
        """Add an alternate email to the identity with this primary email.

        Set semantics: adding an address twice is a no-op. An address that is
        already another identity's primary email is refused with a warning.

        Returns:
            The identity, or None when no identity has this primary email
        """
        identity = self._find_by_primary(normalize_email(primary_email))
        if not identity:
            return None

        alternate = normalize_email(alternate_email)
        if not alternate or alternate == identity.primary_email:
            return identity
        if alternate in identity.alternate_emails:
            return identity

        owner = self._find_by_primary(alternate)
        if owner is not None:
            logger.warning(
                f"Not adding {mask_email(alternate)} to identity {identity.id}: "
                f"already primary email of identity {owner.id}"
            )
            return identity

        identity.alternate_email_rows.append(IdentityAlternateEmail(email=alternate))
        try:
            self.db.commit()
        except IntegrityError:
            # Same alternate added concurrently
            self.db.rollback()
        self.db.refresh(identity)
        return identity

    def get_org_identities(self, org_id: str) -> List[Identity]:
        return (
            self.db.query(Identity)
            .filter(Identity.org_id == org_id)
            .order_by(Identity.primary_email.asc())
            .all()
        )

    def find_identity_by_account(
        self,
        email: Optional[str] = None,
        github_login: Optional[str] = None,
        slack_user_id: Optional[str] = None,
        jira_account_id: Optional[str] = None,
    ) -> Optional[Identity]:
        """Find an identity matching any of the given account identifiers."""
        conditions = []
        if email:
            normalized = normalize_email(email)
            conditions.append(Identity.primary_email == normalized)
            conditions.append(
                Identity.alternate_email_rows.any(IdentityAlternateEmail.email == normalized)
            )
        if github_login:
            conditions.append(Identity.github_login == github_login)
        if slack_user_id:
            conditions.append(Identity.slack_user_id == slack_user_id)
        if jira_account_id:
            conditions.append(Identity.jira_account_id == jira_account_id)

        if not conditions:
            return None

        return self._ordered(self.db.query(Identity).filter(or_(*conditions))).first()
