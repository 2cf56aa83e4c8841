"""Username to admin-account resolution.

Maps a human-chosen username to the account behind it, the login identifier
the credential verifier expects, and the admin entitlement. Every way this
can fail is kept distinct internally so it can be logged precisely, while
callers decide how much of it to reveal.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from docs_gateway.adapters.store.base import ADMIN_ROLE, AbstractIdentityStore, AccountProfile


class ResolutionStatus(str, Enum):
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    MISSING_LOGIN_IDENTIFIER = "missing_login_identifier"
    NOT_ADMIN = "not_admin"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a username.

    Attributes:
        status: Which step succeeded or failed.
        profile: Matched profile (absent when NOT_FOUND).
        login_email: Canonical login identifier (only when RESOLVED).
    """

    status: ResolutionStatus
    profile: AccountProfile | None = None
    login_email: str | None = None

    @property
    def resolved(self) -> bool:
        return self.status is ResolutionStatus.RESOLVED


class CredentialResolver:
    """Resolve usernames to admin accounts through the identity store."""

    def __init__(self, identity_store: AbstractIdentityStore) -> None:
        self._identity = identity_store

    async def resolve(self, username: str) -> Resolution:
        """Resolve a username (case-insensitive) to an admin login identifier.

        Args:
            username: Sanitized username.

        Returns:
            Resolution: RESOLVED with the login email, or the first missing piece.

        Raises:
            StoreAppError: If the identity store fails.
        """
        profile = await self._identity.find_profile_by_username(username)
        if profile is None:
            return Resolution(status=ResolutionStatus.NOT_FOUND)

        login_email = await self._identity.get_login_email(profile.account_id)
        if not login_email:
            return Resolution(status=ResolutionStatus.MISSING_LOGIN_IDENTIFIER, profile=profile)

        if not await self._identity.has_role(profile.account_id, ADMIN_ROLE):
            return Resolution(status=ResolutionStatus.NOT_ADMIN, profile=profile)

        return Resolution(
            status=ResolutionStatus.RESOLVED,
            profile=profile,
            login_email=login_email,
        )
