"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- A shared ``ErrorResponse`` component
- The documented error responses of every gateway operation, including the
  ``Retry-After`` header on 429s

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_ERROR_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["error", "code"],
    "properties": {
        "error": {"type": "string", "description": "Human-readable message."},
        "code": {"type": "string", "description": "Machine-readable error code."},
        "request_id": {"type": "string", "nullable": True},
        "retryAfter": {
            "type": "integer",
            "description": "Seconds to wait before retrying (429 only).",
        },
    },
}

_ERROR_STATUSES: Dict[str, Dict[str, str]] = {
    "/admin-login": {
        "400": "Username or password missing.",
        "401": "Invalid username or password.",
        "403": "Admin privileges required (only when enabled by configuration).",
        "429": "Too many failed attempts; client is locked out.",
        "500": "Credential service failure.",
    },
    "/get-signed-url": {
        "400": "Missing or malformed document id.",
        "403": "Document is not available.",
        "404": "Document not found.",
        "429": "Too many requests.",
        "500": "Storage failure.",
    },
    "/increment-download": {
        "400": "Missing or malformed document id.",
        "403": "Document is not available.",
        "404": "Document not found.",
        "429": "Too many requests for this document.",
        "500": "Storage failure.",
    },
    "/setup-admin": {
        "400": "Missing fields.",
        "403": "Invalid setup key.",
        "404": "Setup disabled.",
        "500": "Account creation failed.",
    },
}

_TAGS = [
    {"name": "Admin", "description": "Admin authentication and bootstrap."},
    {"name": "Documents", "description": "Signed download URLs and download counting."},
    {"name": "Health", "description": "Liveness checks."},
]


def _error_response(description: str, status_code: str) -> Dict[str, Any]:
    response: Dict[str, Any] = {
        "description": description,
        "content": {
            "application/json": {"schema": {"$ref": "#/components/schemas/ErrorResponse"}}
        },
    }
    if status_code == "429":
        response["headers"] = {
            "Retry-After": {
                "description": "Seconds until the client may retry.",
                "schema": {"type": "integer"},
            }
        }
    return response


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and error responses."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        components.setdefault("schemas", {}).setdefault("ErrorResponse", _ERROR_SCHEMA)

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in _TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, statuses in _ERROR_STATUSES.items():
            operation = schema.get("paths", {}).get(path, {}).get("post")
            if not isinstance(operation, dict):
                continue
            responses = operation.setdefault("responses", {})
            # FastAPI's own 422 never reaches clients: validation errors are 400s
            responses.pop("422", None)
            for status_code, description in statuses.items():
                responses.setdefault(status_code, _error_response(description, status_code))

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
