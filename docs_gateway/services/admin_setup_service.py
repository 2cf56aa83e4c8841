"""One-time bootstrap of the first admin account.

Guarded by a shared setup key from configuration; without a configured key
the operation does not exist.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass

from docs_gateway.adapters.store.base import ADMIN_ROLE, AbstractIdentityStore
from docs_gateway.core.errors import (
    AuthorizationAppError,
    NotFoundAppError,
    StoreAppError,
    ValidationAppError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetupResult:
    message: str
    username: str | None = None
    created: bool = False
    exists: bool = False


class AdminSetupService:
    def __init__(self, identity: AbstractIdentityStore, *, setup_key: str | None) -> None:
        self.identity = identity
        self._setup_key = setup_key

    def _authorize(self, provided_key: str | None) -> None:
        if not self._setup_key:
            raise NotFoundAppError(code="setup_disabled", message="Not found")
        if not provided_key or not hmac.compare_digest(
            provided_key.encode(), self._setup_key.encode()
        ):
            logger.warning("admin_setup.invalid_key")
            raise AuthorizationAppError(code="invalid_setup_key", message="Invalid setup key")

    async def setup(
        self,
        *,
        setup_key: str | None,
        username: str | None,
        email: str | None,
        password: str | None,
    ) -> SetupResult:
        """Create an admin account unless one with the username already exists.

        Raises:
            NotFoundAppError: Setup is disabled (no key configured).
            AuthorizationAppError: Wrong setup key.
            ValidationAppError: Missing fields or too-short password.
            StoreAppError: Account creation or role grant failed.
        """
        self._authorize(setup_key)

        username = (username or "").strip()
        email = (email or "").strip()
        if not username or not email or not password:
            raise ValidationAppError(
                code="missing_fields",
                message="Username, email and password are required",
            )
        if len(password) < 6:
            raise ValidationAppError(
                code="password_too_short",
                message="Password must be at least 6 characters",
            )

        if await self.identity.find_profile_by_username(username) is not None:
            logger.info("admin_setup.already_exists", extra={"username": username})
            return SetupResult(message="Admin user already exists", exists=True)

        try:
            account_id = await self.identity.create_user(
                email=email, password=password, username=username
            )
        except StoreAppError as exc:
            logger.error("admin_setup.create_failed", extra={"error_code": exc.code})
            raise StoreAppError(code="user_create_failed", message="Failed to create user") from exc

        try:
            await self.identity.upsert_profile(account_id, username)
        except StoreAppError as exc:
            # A database trigger usually creates the profile already
            logger.error("admin_setup.profile_failed", extra={"error_code": exc.code})

        try:
            await self.identity.grant_role(account_id, ADMIN_ROLE)
        except StoreAppError as exc:
            logger.error("admin_setup.role_failed", extra={"error_code": exc.code})
            raise StoreAppError(
                code="role_grant_failed", message="Failed to assign admin role"
            ) from exc

        logger.info("admin_setup.created", extra={"username": username})
        return SetupResult(message="Admin user created successfully", username=username, created=True)
