"""Admin authentication service gating the external credential verifier.

Each login request walks the same path:
- Rate-limit check against the lockout limiter (throttled requests stop here
  and are never counted as another failure)
- Input validation (missing fields, length bounds)
- Username resolution to an admin account
- Password verification by the credential store

Every rejection after the rate-limit check is recorded as a failed attempt;
a success clears the client's failure history. This service never mints
tokens itself: the session comes from the credential verifier.
"""

from __future__ import annotations

import logging

from docs_gateway.adapters.store.base import AbstractIdentityStore, AuthSession
from docs_gateway.core.errors import (
    AuthenticationAppError,
    AuthorizationAppError,
    StoreAppError,
    ValidationAppError,
)
from docs_gateway.core.rate_limit import RateLimiters, hash_limiter_key, throttled_error
from docs_gateway.services.credential_resolver import CredentialResolver, ResolutionStatus

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid username or password"
ADMIN_REQUIRED_MESSAGE = "Access denied. Admin privileges required."
THROTTLED_MESSAGE = "Too many login attempts. Please try again later."

MAX_USERNAME_CHARS = 100
MIN_PASSWORD_CHARS = 6
MAX_PASSWORD_CHARS = 200


def _invalid_credentials() -> AuthenticationAppError:
    return AuthenticationAppError(code="invalid_credentials", message=INVALID_CREDENTIALS_MESSAGE)


class AdminAuthService:
    """Orchestrates admin login with brute-force lockout.

    Attributes:
        identity: Identity store used for password verification.
        resolver: Username to admin-account resolver.
        limiters: Process-owned limiter state.
        distinguish_non_admin: Answer known non-admin users with a 403
            instead of the generic 401.
    """

    def __init__(
        self,
        identity: AbstractIdentityStore,
        resolver: CredentialResolver,
        limiters: RateLimiters,
        *,
        distinguish_non_admin: bool = False,
    ) -> None:
        self.identity = identity
        self.resolver = resolver
        self.limiters = limiters
        self.distinguish_non_admin = distinguish_non_admin

    def _check_rate_limit(self, client_id: str) -> None:
        if not self.limiters.enabled:
            return
        result = self.limiters.login.check(client_id)
        if result.allowed:
            return
        logger.warning(
            "admin_login.throttled",
            extra={
                "client_hash": hash_limiter_key(client_id),
                "retry_after_s": result.retry_after_seconds,
            },
        )
        raise throttled_error(result, code="login_throttled", message=THROTTLED_MESSAGE)

    def _record_failure(self, client_id: str, reason: str) -> None:
        remaining = None
        if self.limiters.enabled:
            remaining = self.limiters.login.record_failure(client_id).remaining
        logger.warning(
            "admin_login.failed",
            extra={
                "reason": reason,
                "client_hash": hash_limiter_key(client_id),
                "attempts_remaining": remaining,
            },
        )

    @staticmethod
    def _sanitize(username: str | None, password: str | None) -> tuple[str, str]:
        if not username or not password:
            raise ValidationAppError(
                code="missing_credentials",
                message="Username and password are required",
            )
        return username.strip(), password

    @staticmethod
    def _within_bounds(username: str, password: str) -> bool:
        return (
            1 <= len(username) <= MAX_USERNAME_CHARS
            and MIN_PASSWORD_CHARS <= len(password) <= MAX_PASSWORD_CHARS
        )

    async def login(
        self,
        username: str | None,
        password: str | None,
        *,
        client_id: str,
    ) -> AuthSession:
        """Authenticate an admin and return the verifier's session.

        Args:
            username: Submitted username (case-insensitive).
            password: Submitted password.
            client_id: ClientIdentity the lockout is keyed by.

        Returns:
            AuthSession issued by the credential store.

        Raises:
            ThrottledAppError: Client is locked out.
            ValidationAppError: Username or password missing.
            AuthenticationAppError: Unknown user, bad password, out-of-bounds input,
                or (by default) a non-admin user.
            AuthorizationAppError: Non-admin user when distinguish_non_admin is on.
            StoreAppError: Identity store failure.
        """
        self._check_rate_limit(client_id)

        username, password = self._sanitize(username, password)
        if not self._within_bounds(username, password):
            self._record_failure(client_id, "invalid_input")
            raise _invalid_credentials()

        try:
            resolution = await self.resolver.resolve(username)

            if resolution.status is ResolutionStatus.NOT_ADMIN:
                self._record_failure(client_id, resolution.status.value)
                logger.warning(
                    "admin_login.non_admin",
                    extra={"username": username, "client_hash": hash_limiter_key(client_id)},
                )
                if self.distinguish_non_admin:
                    raise AuthorizationAppError(code="admin_required", message=ADMIN_REQUIRED_MESSAGE)
                raise _invalid_credentials()

            if not resolution.resolved:
                self._record_failure(client_id, resolution.status.value)
                raise _invalid_credentials()

            session = await self.identity.sign_in_with_password(resolution.login_email, password)
        except StoreAppError as exc:
            self._record_failure(client_id, "store_error")
            logger.error(
                "admin_login.store_error",
                extra={"error_code": exc.code, "error_message": exc.message},
            )
            raise StoreAppError(code="internal_error", message="An unexpected error occurred") from exc

        if session is None:
            self._record_failure(client_id, "wrong_password")
            raise _invalid_credentials()

        if self.limiters.enabled:
            self.limiters.login.record_success(client_id)
        logger.info(
            "admin_login.success",
            extra={"username": username, "client_hash": hash_limiter_key(client_id)},
        )
        return session
