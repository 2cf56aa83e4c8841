"""In-memory store backend for local development and tests.

Not durable: everything lives in process memory. Thread-safe: a lock guards
each store so concurrent requests observe consistent state, and the download
counter increment happens entirely under that lock.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import json
import secrets
import threading
import time
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable
from urllib.parse import parse_qs, quote, unquote, urlsplit

from docs_gateway.adapters.store.base import (
    AbstractDocumentStore,
    AbstractIdentityStore,
    AccountProfile,
    AuthSession,
    DocumentRecord,
)
from docs_gateway.core.errors import StoreAppError, ValidationAppError

_PBKDF2_ITERATIONS = 120_000
_SESSION_TTL_SECONDS = 3600


def hash_password(password: str, *, salt: bytes | None = None) -> str:
    """Derive a salted PBKDF2-SHA256 hash encoded as ``salt$digest`` (hex)."""
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, _PBKDF2_ITERATIONS)
    return f"{salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    salt_hex, _, digest_hex = encoded.partition("$")
    candidate = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), bytes.fromhex(salt_hex), _PBKDF2_ITERATIONS
    )
    return hmac.compare_digest(candidate.hex(), digest_hex)


@dataclass
class _Account:
    account_id: str
    email: str
    password_hash: str
    metadata: dict


class InMemoryIdentityStore(AbstractIdentityStore):
    """Accounts, profiles and role grants held in dictionaries."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._accounts: dict[str, _Account] = {}
        self._profiles: dict[str, str] = {}
        self._roles: set[tuple[str, str]] = set()

    def add_account(
        self,
        *,
        username: str,
        email: str | None,
        password: str,
        roles: tuple[str, ...] = (),
    ) -> str:
        """Seed an account with profile and roles; returns the account id."""
        account_id = str(uuid.uuid4())
        with self._lock:
            self._accounts[account_id] = _Account(
                account_id=account_id,
                email=email or "",
                password_hash=hash_password(password),
                metadata={"username": username},
            )
            self._profiles[account_id] = username
            for role in roles:
                self._roles.add((account_id, role))
        return account_id

    async def find_profile_by_username(self, username: str) -> AccountProfile | None:
        needle = username.casefold()
        with self._lock:
            matches = [
                AccountProfile(account_id=account_id, username=name)
                for account_id, name in self._profiles.items()
                if name.casefold() == needle
            ]
        return matches[0] if len(matches) == 1 else None

    async def get_login_email(self, account_id: str) -> str | None:
        with self._lock:
            account = self._accounts.get(account_id)
        return account.email if account and account.email else None

    async def has_role(self, account_id: str, role: str) -> bool:
        with self._lock:
            return (account_id, role) in self._roles

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession | None:
        with self._lock:
            account = next(
                (a for a in self._accounts.values() if a.email.casefold() == email.casefold()),
                None,
            )
        if account is None:
            return None
        # PBKDF2 is CPU bound; keep it off the event loop
        if not await asyncio.to_thread(verify_password, password, account.password_hash):
            return None

        now = int(self._clock())
        user = {"id": account.account_id, "email": account.email, "user_metadata": dict(account.metadata)}
        session = {
            "access_token": secrets.token_urlsafe(32),
            "refresh_token": secrets.token_urlsafe(24),
            "token_type": "bearer",
            "expires_in": _SESSION_TTL_SECONDS,
            "expires_at": now + _SESSION_TTL_SECONDS,
            "user": user,
        }
        return AuthSession(session=session, user=user)

    async def create_user(self, *, email: str, password: str, username: str) -> str:
        password_hash = await asyncio.to_thread(hash_password, password)
        with self._lock:
            if any(a.email.casefold() == email.casefold() for a in self._accounts.values()):
                raise StoreAppError(
                    code="user_create_failed",
                    message="A user with this email address has already been registered",
                )
            account_id = str(uuid.uuid4())
            self._accounts[account_id] = _Account(
                account_id=account_id,
                email=email,
                password_hash=password_hash,
                metadata={"username": username},
            )
        return account_id

    async def upsert_profile(self, account_id: str, username: str) -> None:
        with self._lock:
            self._profiles[account_id] = username

    async def grant_role(self, account_id: str, role: str) -> None:
        with self._lock:
            if account_id not in self._accounts:
                raise StoreAppError(code="role_grant_failed", message="Unknown account")
            self._roles.add((account_id, role))


class InMemoryDocumentStore(AbstractDocumentStore):
    """Document rows plus an HMAC-signed URL issuer."""

    def __init__(
        self,
        *,
        base_url: str = "http://localhost:8000",
        bucket: str = "documents",
        signing_secret: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._bucket = bucket
        self._secret = (signing_secret or secrets.token_hex(32)).encode()
        self._clock = clock
        self._lock = threading.RLock()
        self._documents: dict[str, DocumentRecord] = {}

    def add_document(
        self,
        *,
        storage_key: str,
        display_name: str,
        status: str = "active",
        download_count: int = 0,
        document_id: str | None = None,
    ) -> DocumentRecord:
        """Seed a document row; returns the stored record."""
        record = DocumentRecord(
            id=(document_id or str(uuid.uuid4())).lower(),
            storage_key=storage_key,
            display_name=display_name,
            status=status,
            download_count=download_count,
        )
        with self._lock:
            self._documents[record.id] = record
        return record

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        with self._lock:
            return self._documents.get(document_id.lower())

    def _sign(self, storage_key: str, expires_at: int) -> str:
        message = f"{self._bucket}/{storage_key}:{expires_at}".encode()
        digest = hmac.new(self._secret, message, hashlib.sha256).digest()
        return base64.urlsafe_b64encode(digest).decode().rstrip("=")

    async def create_signed_url(self, storage_key: str, expires_in: int) -> str:
        expires_at = int(self._clock()) + expires_in
        token = self._sign(storage_key, expires_at)
        path = quote(f"{self._bucket}/{storage_key}")
        return f"{self._base_url}/storage/v1/object/sign/{path}?token={token}&expires={expires_at}"

    def verify_signed_url(self, url: str) -> str | None:
        """Return the storage key a signed URL grants, or None if invalid/expired."""
        parts = urlsplit(url)
        prefix = f"/storage/v1/object/sign/{self._bucket}/"
        if not parts.path.startswith(prefix):
            return None
        query = parse_qs(parts.query)
        try:
            token = query["token"][0]
            expires_at = int(query["expires"][0])
        except (KeyError, IndexError, ValueError):
            return None

        storage_key = unquote(parts.path[len(prefix):])
        if expires_at < self._clock():
            return None
        if not hmac.compare_digest(token, self._sign(storage_key, expires_at)):
            return None
        return storage_key

    async def increment_download_count(self, document_id: str) -> int | None:
        with self._lock:
            record = self._documents.get(document_id.lower())
            if record is None:
                return None
            updated = replace(record, download_count=record.download_count + 1)
            self._documents[record.id] = updated
            return updated.download_count


def load_seed_file(
    path: str | Path,
    identity: InMemoryIdentityStore,
    documents: InMemoryDocumentStore,
) -> tuple[int, int]:
    """Load accounts and documents from a JSON seed file.

    Expected shape::

        {
          "accounts": [{"username": "...", "email": "...", "password": "...",
                        "roles": ["admin"]}],
          "documents": [{"id": "<uuid>", "storage_key": "...",
                         "display_name": "...", "status": "active",
                         "download_count": 0}]
        }

    Returns:
        Number of accounts and documents loaded.

    Raises:
        ValidationAppError: If the file is missing or malformed.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        accounts = data.get("accounts", [])
        rows = data.get("documents", [])
        for account in accounts:
            identity.add_account(
                username=account["username"],
                email=account.get("email"),
                password=account["password"],
                roles=tuple(account.get("roles", ())),
            )
        for row in rows:
            documents.add_document(
                document_id=row.get("id"),
                storage_key=row["storage_key"],
                display_name=row["display_name"],
                status=row.get("status", "active"),
                download_count=int(row.get("download_count", 0)),
            )
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
        raise ValidationAppError(
            code="store_seed_invalid",
            message=f"Cannot load store seed file '{path}'",
        ) from exc
    return len(accounts), len(rows)
