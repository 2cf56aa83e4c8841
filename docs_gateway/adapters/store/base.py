"""Interfaces for the external collaborators behind the gateway.

The gateway never owns accounts, roles, documents or file blobs; it only
queries and mutates them through these adapters. Implementations raise
``StoreAppError`` for transport/service failures and return ``None`` (or
``False``) for "not there" answers so services can tell the two apart.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

ADMIN_ROLE = "admin"
ACTIVE_STATUS = "active"


@dataclass(frozen=True)
class AccountProfile:
    """Public profile row: the username is the only externally shown id."""

    account_id: str
    username: str


@dataclass(frozen=True)
class AuthSession:
    """Session material returned by the credential verifier.

    Attributes:
        session: Token payload (access/refresh token, expiry, token type).
        user: User payload as reported by the verifier.
    """

    session: dict[str, Any]
    user: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DocumentRecord:
    """Document metadata row."""

    id: str
    storage_key: str
    display_name: str
    status: str
    download_count: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS


class AbstractIdentityStore(ABC):
    """Accounts, profiles, role grants and password verification."""

    @abstractmethod
    async def find_profile_by_username(self, username: str) -> AccountProfile | None:
        """Look up a profile by username, case-insensitively.

        Returns None unless exactly one profile matches.
        """
        ...

    @abstractmethod
    async def get_login_email(self, account_id: str) -> str | None:
        """Return the login identifier (email) of an account, if any."""
        ...

    @abstractmethod
    async def has_role(self, account_id: str, role: str) -> bool:
        """Return True when a RoleGrant for (account_id, role) exists."""
        ...

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> AuthSession | None:
        """Verify the password and return a session, or None when rejected."""
        ...

    @abstractmethod
    async def create_user(self, *, email: str, password: str, username: str) -> str:
        """Create a confirmed account and return its id."""
        ...

    @abstractmethod
    async def upsert_profile(self, account_id: str, username: str) -> None:
        """Create or update the profile row of an account."""
        ...

    @abstractmethod
    async def grant_role(self, account_id: str, role: str) -> None:
        """Insert a RoleGrant for the account."""
        ...


class AbstractDocumentStore(ABC):
    """Document metadata, counters and time-boxed blob access."""

    @abstractmethod
    async def get_document(self, document_id: str) -> DocumentRecord | None:
        """Fetch a document by id, or None when it does not exist."""
        ...

    @abstractmethod
    async def create_signed_url(self, storage_key: str, expires_in: int) -> str:
        """Issue a URL granting read access to one blob for ``expires_in`` seconds."""
        ...

    @abstractmethod
    async def increment_download_count(self, document_id: str) -> int | None:
        """Atomically add one to the download counter.

        Returns:
            The post-increment count, or None when the document vanished.
        """
        ...
