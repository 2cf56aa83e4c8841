"""Supabase store adapter over its REST APIs.

Talks to three Supabase services with a shared ``httpx.AsyncClient``:
- PostgREST (``/rest/v1``) for the ``profiles``, ``user_roles`` and
  ``documents`` tables,
- GoTrue (``/auth/v1``) for admin user lookups and password sign-in,
- Storage (``/storage/v1``) for signed download URLs.

Lookups use the service role key; the password grant uses the anon key so the
issued tokens are ordinary user sessions.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from docs_gateway.adapters.store.base import (
    AbstractDocumentStore,
    AbstractIdentityStore,
    AccountProfile,
    AuthSession,
    DocumentRecord,
)
from docs_gateway.core.errors import StoreAppError

logger = logging.getLogger(__name__)

INCREMENT_FUNCTION = "increment_download_count"
PROFILE_LOOKUP_LIMIT = 10


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the pattern matches literally.

    PostgREST turns ``*`` into ``%`` before Postgres sees the pattern and a
    literal ``*`` cannot be expressed, so it is widened to the single-character
    wildcard ``_``; callers filter the rows for an exact match.
    """
    for char in ("\\", "%", "_"):
        value = value.replace(char, "\\" + char)
    return value.replace("*", "_")


class SupabaseRestClient:
    """Thin async HTTP client holding the project URL and keys."""

    def __init__(
        self,
        *,
        url: str,
        service_role_key: str,
        anon_key: str,
        timeout_seconds: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            url: Supabase project URL.
            service_role_key: Key used for privileged lookups and mutations.
            anon_key: Public key used for password sign-in.
            timeout_seconds: Timeout applied to every request.
            http_client: Optional preconfigured client (tests inject a mock transport).
        """
        self.url = url.rstrip("/")
        self._service_role_key = service_role_key
        self._anon_key = anon_key
        self._http = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    def _headers(self, *, anon: bool = False, prefer: str | None = None) -> dict[str, str]:
        key = self._anon_key if anon else self._service_role_key
        headers = {"apikey": key, "Authorization": f"Bearer {key}"}
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        anon: bool = False,
        prefer: str | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send a request, converting transport failures to StoreAppError."""
        try:
            return await self._http.request(
                method,
                f"{self.url}{path}",
                headers=self._headers(anon=anon, prefer=prefer),
                params=params,
                json=json,
            )
        except httpx.HTTPError as exc:
            logger.error(
                "supabase.transport_error",
                extra={"method": method, "path": path, "error_type": type(exc).__name__},
            )
            raise StoreAppError(
                code="store_unreachable",
                message="Storage backend request failed",
            ) from exc

    async def aclose(self) -> None:
        await self._http.aclose()


def _raise_for_status(response: httpx.Response, *, code: str, message: str) -> None:
    if response.is_success:
        return
    logger.error(
        "supabase.unexpected_status",
        extra={
            "status_code": response.status_code,
            "path": response.request.url.path,
            "error_code": code,
        },
    )
    raise StoreAppError(code=code, message=message)


def _rows(response: httpx.Response, *, code: str, message: str) -> list[dict[str, Any]]:
    _raise_for_status(response, code=code, message=message)
    try:
        payload = response.json()
    except ValueError as exc:
        raise StoreAppError(code=code, message=message) from exc
    if not isinstance(payload, list):
        raise StoreAppError(code=code, message=message)
    return payload


class SupabaseIdentityStore(AbstractIdentityStore):
    """Profiles/roles via PostgREST, accounts and sign-in via GoTrue."""

    def __init__(self, client: SupabaseRestClient) -> None:
        self._client = client

    async def find_profile_by_username(self, username: str) -> AccountProfile | None:
        response = await self._client.request(
            "GET",
            "/rest/v1/profiles",
            params={
                "select": "user_id,username",
                "username": f"ilike.{escape_like(username)}",
                "limit": PROFILE_LOOKUP_LIMIT,
            },
        )
        rows = _rows(response, code="profile_lookup_failed", message="Profile lookup failed")
        needle = username.lower()
        matches = [row for row in rows if str(row.get("username", "")).lower() == needle]
        if len(matches) != 1:
            return None
        return AccountProfile(account_id=matches[0]["user_id"], username=matches[0]["username"])

    async def get_login_email(self, account_id: str) -> str | None:
        response = await self._client.request(
            "GET", f"/auth/v1/admin/users/{quote(account_id, safe='')}"
        )
        if response.status_code == 404:
            return None
        _raise_for_status(response, code="user_lookup_failed", message="User lookup failed")
        return response.json().get("email") or None

    async def has_role(self, account_id: str, role: str) -> bool:
        response = await self._client.request(
            "GET",
            "/rest/v1/user_roles",
            params={
                "select": "role",
                "user_id": f"eq.{account_id}",
                "role": f"eq.{role}",
                "limit": 1,
            },
        )
        rows = _rows(response, code="role_lookup_failed", message="Role lookup failed")
        return bool(rows)

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession | None:
        response = await self._client.request(
            "POST",
            "/auth/v1/token",
            anon=True,
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        # GoTrue answers rejected credentials with 400 invalid_grant
        if response.status_code in (400, 401):
            return None
        _raise_for_status(response, code="sign_in_failed", message="Credential service failed")
        payload = response.json()
        return AuthSession(session=payload, user=payload.get("user") or {})

    async def create_user(self, *, email: str, password: str, username: str) -> str:
        response = await self._client.request(
            "POST",
            "/auth/v1/admin/users",
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": {"username": username},
            },
        )
        _raise_for_status(response, code="user_create_failed", message="Failed to create user")
        return response.json()["id"]

    async def upsert_profile(self, account_id: str, username: str) -> None:
        response = await self._client.request(
            "POST",
            "/rest/v1/profiles",
            prefer="resolution=merge-duplicates,return=minimal",
            params={"on_conflict": "user_id"},
            json={"user_id": account_id, "username": username},
        )
        _raise_for_status(response, code="profile_upsert_failed", message="Failed to save profile")

    async def grant_role(self, account_id: str, role: str) -> None:
        response = await self._client.request(
            "POST",
            "/rest/v1/user_roles",
            prefer="return=minimal",
            json={"user_id": account_id, "role": role},
        )
        _raise_for_status(response, code="role_grant_failed", message="Failed to assign admin role")


class SupabaseDocumentStore(AbstractDocumentStore):
    """Document rows via PostgREST and signed URLs via Storage."""

    def __init__(
        self,
        client: SupabaseRestClient,
        *,
        bucket: str = "documents",
    ) -> None:
        self._client = client
        self._bucket = bucket

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        response = await self._client.request(
            "GET",
            "/rest/v1/documents",
            params={
                "select": "id,file_path,file_name,status,download_count",
                "id": f"eq.{document_id}",
            },
        )
        rows = _rows(response, code="document_lookup_failed", message="Document lookup failed")
        if len(rows) != 1:
            return None
        row = rows[0]
        return DocumentRecord(
            id=row["id"],
            storage_key=row["file_path"],
            display_name=row["file_name"],
            status=row.get("status") or "",
            download_count=row.get("download_count") or 0,
        )

    async def create_signed_url(self, storage_key: str, expires_in: int) -> str:
        response = await self._client.request(
            "POST",
            f"/storage/v1/object/sign/{quote(self._bucket)}/{quote(storage_key)}",
            json={"expiresIn": expires_in},
        )
        _raise_for_status(
            response, code="signed_url_failed", message="Failed to generate download link"
        )
        signed_path = response.json().get("signedURL")
        if not signed_path:
            raise StoreAppError(code="signed_url_failed", message="Failed to generate download link")
        return f"{self._client.url}/storage/v1{signed_path}"

    async def increment_download_count(self, document_id: str) -> int | None:
        """Increment through the ``increment_download_count`` database function.

        The function runs a single ``UPDATE ... SET download_count =
        download_count + 1 ... RETURNING download_count`` so concurrent calls
        serialize on the row lock inside Postgres. It returns NULL when no
        active row matched.
        """
        response = await self._client.request(
            "POST",
            f"/rest/v1/rpc/{INCREMENT_FUNCTION}",
            json={"doc_id": document_id},
        )
        _raise_for_status(response, code="increment_failed", message="Failed to update download count")
        try:
            payload = response.json()
        except ValueError as exc:
            raise StoreAppError(code="increment_failed", message="Failed to update download count") from exc

        # Scalar functions come back bare; set-returning ones as a row list
        if isinstance(payload, list):
            payload = payload[0] if payload else None
        if isinstance(payload, dict):
            payload = payload.get("download_count")
        if payload is None:
            return None
        if not isinstance(payload, int):
            raise StoreAppError(code="increment_failed", message="Failed to update download count")
        return payload
