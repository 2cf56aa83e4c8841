"""End-to-end tests for the HTTP surface through the FastAPI app."""

import pytest
from fastapi.testclient import TestClient

from docs_gateway.core.app_factory import create_app
from docs_gateway.core.config import AppSettings, RateLimitSettings, Settings

from conftest import (
    ACTIVE_DOC_ID,
    ADMIN_PASSWORD,
    UNKNOWN_DOC_ID,
    WITHDRAWN_DOC_ID,
)


class TestCors:
    @pytest.mark.parametrize("path", ["/admin-login", "/get-signed-url", "/increment-download"])
    def test_preflight_is_answered_without_body(self, client: TestClient, path: str):
        response = client.options(path)

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert "content-type" in response.headers["Access-Control-Allow-Headers"]

    def test_error_responses_carry_cors_headers(self, client: TestClient):
        response = client.post("/get-signed-url", json={"documentId": "not-a-uuid"})

        assert response.status_code == 400
        assert response.headers["Access-Control-Allow-Origin"] == "*"


class TestAdminLogin:
    def test_success_returns_session_and_user(self, client: TestClient):
        response = client.post(
            "/admin-login", json={"username": "manoj", "password": ADMIN_PASSWORD}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["session"]["access_token"]
        assert body["user"]["email"] == "manoj@example.com"

    def test_missing_fields_are_400(self, client: TestClient):
        response = client.post("/admin-login", json={"username": "manoj"})

        assert response.status_code == 400
        assert response.json()["error"] == "Username and password are required"

    def test_malformed_json_is_400(self, client: TestClient):
        response = client.post(
            "/admin-login",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_request"

    def test_lockout_after_five_failures(self, client: TestClient):
        for _ in range(5):
            response = client.post(
                "/admin-login", json={"username": "Manoj", "password": "wrong-password"}
            )
            assert response.status_code == 401
            assert response.json()["error"] == "Invalid username or password"

        response = client.post(
            "/admin-login", json={"username": "Manoj", "password": ADMIN_PASSWORD}
        )

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "Too many login attempts. Please try again later."
        assert body["retryAfter"] == 900
        assert response.headers["Retry-After"] == "900"
        assert response.headers["X-RateLimit-Remaining"] == "0"

    def test_lockout_is_keyed_by_forwarded_client(self, client: TestClient):
        for _ in range(5):
            client.post(
                "/admin-login",
                json={"username": "Manoj", "password": "wrong-password"},
                headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
            )

        response = client.post(
            "/admin-login",
            json={"username": "Manoj", "password": ADMIN_PASSWORD},
            headers={"X-Forwarded-For": "198.51.100.1"},
        )

        assert response.status_code == 200

    def test_non_admin_is_indistinguishable_from_unknown(self, client: TestClient):
        non_admin = client.post(
            "/admin-login", json={"username": "reader", "password": "reader-pass"}
        )
        unknown = client.post(
            "/admin-login", json={"username": "ghost", "password": "reader-pass"}
        )

        assert non_admin.status_code == unknown.status_code == 401
        assert non_admin.json()["error"] == unknown.json()["error"]

    def test_non_admin_403_when_enabled(self, identity_store, document_store, limiters):
        from docs_gateway.adapters.store.factory import Stores

        cfg = Settings(app=AppSettings(distinguish_non_admin_login=True))
        app = create_app(
            cfg,
            stores=Stores(identity=identity_store, documents=document_store),
            limiters=limiters,
            configure_logs=False,
        )

        response = TestClient(app).post(
            "/admin-login", json={"username": "reader", "password": "reader-pass"}
        )

        assert response.status_code == 403
        assert response.json()["error"] == "Access denied. Admin privileges required."


class TestSignedUrl:
    def test_active_document(self, client: TestClient, document_store):
        response = client.post("/get-signed-url", json={"documentId": ACTIVE_DOC_ID})

        assert response.status_code == 200
        body = response.json()
        assert body["fileName"] == "Annual Report 2024.pdf"
        assert body["expiresIn"] == 300
        assert document_store.verify_signed_url(body["signedUrl"]) == "reports/annual-2024.pdf"

    @pytest.mark.parametrize(
        "document_id,status_code,error",
        [
            ("not-a-uuid", 400, "Invalid document ID format"),
            (None, 400, "Document ID is required"),
            (UNKNOWN_DOC_ID, 404, "Document not found"),
            (WITHDRAWN_DOC_ID, 403, "Document is not available"),
        ],
    )
    def test_rejections(self, client: TestClient, document_id, status_code, error):
        response = client.post("/get-signed-url", json={"documentId": document_id})

        assert response.status_code == status_code
        assert response.json()["error"] == error

    def test_throttled_after_thirty_requests(self, client: TestClient):
        for _ in range(30):
            assert client.post("/get-signed-url", json={"documentId": ACTIVE_DOC_ID}).status_code == 200

        response = client.post("/get-signed-url", json={"documentId": ACTIVE_DOC_ID})

        assert response.status_code == 429
        assert response.json()["error"] == "Too many requests. Please try again later."
        assert response.headers["Retry-After"] == "60"
        assert response.headers["X-RateLimit-Limit"] == "30"


class TestIncrementDownload:
    def test_increments_active_document(self, client: TestClient):
        response = client.post("/increment-download", json={"documentId": ACTIVE_DOC_ID})

        assert response.status_code == 200
        assert response.json() == {"success": True, "newCount": 42}

    def test_malformed_id_is_400(self, client: TestClient):
        response = client.post("/increment-download", json={"documentId": "not-a-uuid"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid document ID format"

    def test_withdrawn_document_is_403(self, client: TestClient):
        response = client.post("/increment-download", json={"documentId": WITHDRAWN_DOC_ID})

        assert response.status_code == 403

    def test_rapid_repeat_is_throttled(self, client: TestClient):
        client.post("/increment-download", json={"documentId": ACTIVE_DOC_ID})
        response = client.post("/increment-download", json={"documentId": ACTIVE_DOC_ID})

        assert response.status_code == 429
        assert response.json()["error"] == "Too many requests. Please slow down."
        assert int(response.headers["Retry-After"]) >= 1

    def test_limits_can_be_disabled(self, identity_store, document_store, limiters):
        from docs_gateway.adapters.store.factory import Stores
        from docs_gateway.core.rate_limit import build_rate_limiters

        cfg = Settings(rate_limit=RateLimitSettings(enabled=False))
        app = create_app(
            cfg,
            stores=Stores(identity=identity_store, documents=document_store),
            limiters=build_rate_limiters(cfg.rate_limit),
            configure_logs=False,
        )
        client = TestClient(app)

        for expected in (42, 43, 44):
            response = client.post("/increment-download", json={"documentId": ACTIVE_DOC_ID})
            assert response.json()["newCount"] == expected


class TestSetupAdmin:
    def test_creates_admin_that_can_log_in(self, client: TestClient):
        response = client.post(
            "/setup-admin",
            json={
                "setupKey": "test-setup-key",
                "username": "Second",
                "email": "second@example.com",
                "password": "second-pass",
            },
        )

        assert response.status_code == 200
        assert response.json()["created"] is True

        login = client.post("/admin-login", json={"username": "second", "password": "second-pass"})
        assert login.status_code == 200

    def test_existing_username_is_reported(self, client: TestClient):
        response = client.post(
            "/setup-admin",
            json={
                "setupKey": "test-setup-key",
                "username": "MANOJ",
                "email": "other@example.com",
                "password": "whatever-pass",
            },
        )

        assert response.status_code == 200
        assert response.json() == {
            "message": "Admin user already exists",
            "username": None,
            "created": False,
            "exists": True,
        }

    def test_wrong_key_is_403(self, client: TestClient):
        response = client.post(
            "/setup-admin",
            json={
                "setupKey": "guess",
                "username": "x",
                "email": "x@example.com",
                "password": "xxxxxxxx",
            },
        )

        assert response.status_code == 403
        assert response.json()["error"] == "Invalid setup key"

    def test_disabled_without_key(self, identity_store, document_store, limiters):
        from docs_gateway.adapters.store.factory import Stores

        app = create_app(
            Settings(app=AppSettings(setup_key=None)),
            stores=Stores(identity=identity_store, documents=document_store),
            limiters=limiters,
            configure_logs=False,
        )

        response = TestClient(app).post("/setup-admin", json={"setupKey": "anything"})

        assert response.status_code == 404


def test_health(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_openapi_documents_error_responses(client: TestClient):
    schema = client.get("/openapi.json").json()

    responses = schema["paths"]["/admin-login"]["post"]["responses"]
    assert "429" in responses
    assert "422" not in responses
    assert "ErrorResponse" in schema["components"]["schemas"]


def test_unexpected_errors_keep_cors_and_request_id(identity_store, limiters):
    from unittest.mock import AsyncMock

    from docs_gateway.adapters.store.factory import Stores

    documents = AsyncMock()
    documents.get_document.side_effect = RuntimeError("database connection dropped")
    app = create_app(
        Settings(),
        stores=Stores(identity=identity_store, documents=documents),
        limiters=limiters,
        configure_logs=False,
    )
    client = TestClient(app, raise_server_exceptions=False)

    response = client.post(
        "/get-signed-url",
        json={"documentId": ACTIVE_DOC_ID},
        headers={"X-Request-ID": "req-boom"},
    )

    assert response.status_code == 500
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert "content-type" in response.headers["Access-Control-Allow-Headers"]
    assert response.headers["X-Request-ID"] == "req-boom"
    body = response.json()
    assert body == {
        "error": "An unexpected error occurred",
        "code": "internal_server_error",
        "request_id": "req-boom",
    }
