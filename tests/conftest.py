"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment to ``testing`` with the in-memory store backend so
no test ever reaches a hosted service.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["TESTING"] = "true"

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("STORE_SIGNING_SECRET", "test-signing-secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from docs_gateway.adapters.store.base import ADMIN_ROLE
from docs_gateway.adapters.store.factory import Stores
from docs_gateway.adapters.store.memory import InMemoryDocumentStore, InMemoryIdentityStore
from docs_gateway.core.app_factory import create_app
from docs_gateway.core.config import AppSettings, Settings
from docs_gateway.core.rate_limit import RateLimiters, build_rate_limiters

ADMIN_USERNAME = "Manoj"
ADMIN_EMAIL = "manoj@example.com"
ADMIN_PASSWORD = "correct-horse"

ACTIVE_DOC_ID = "3f2b8c1e-9a4d-4e6f-8b7a-1c2d3e4f5a6b"
WITHDRAWN_DOC_ID = "7a1e5d2c-4b3f-4a9e-9c8d-6e5f4a3b2c1d"
UNKNOWN_DOC_ID = "0b9c8d7e-6f5a-4b3c-ad2e-1f0a9b8c7d6e"


@pytest.fixture
def clock() -> Mock:
    """Controllable time source shared by limiters and stores."""
    return Mock(return_value=1_700_000_000.0)


@pytest.fixture
def limiters(clock: Mock) -> RateLimiters:
    return build_rate_limiters(Settings().rate_limit, clock=clock)


@pytest.fixture
def identity_store(clock: Mock) -> InMemoryIdentityStore:
    store = InMemoryIdentityStore(clock=clock)
    store.add_account(
        username=ADMIN_USERNAME,
        email=ADMIN_EMAIL,
        password=ADMIN_PASSWORD,
        roles=(ADMIN_ROLE,),
    )
    store.add_account(username="reader", email="reader@example.com", password="reader-pass")
    return store


@pytest.fixture
def document_store(clock: Mock) -> InMemoryDocumentStore:
    store = InMemoryDocumentStore(
        base_url="http://testserver",
        signing_secret="test-signing-secret",
        clock=clock,
    )
    store.add_document(
        document_id=ACTIVE_DOC_ID,
        storage_key="reports/annual-2024.pdf",
        display_name="Annual Report 2024.pdf",
        download_count=41,
    )
    store.add_document(
        document_id=WITHDRAWN_DOC_ID,
        storage_key="reports/draft.pdf",
        display_name="Draft.pdf",
        status="withdrawn",
    )
    return store


@pytest.fixture
def gateway_settings() -> Settings:
    return Settings(app=AppSettings(setup_key="test-setup-key"))


@pytest.fixture
def app(gateway_settings, identity_store, document_store, limiters):
    stores = Stores(identity=identity_store, documents=document_store)
    return create_app(gateway_settings, stores=stores, limiters=limiters, configure_logs=False)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
