"""OpenAPI customization.

Adds the ``X-API-Key`` security scheme to the generated schema, applies it to
the image endpoints only, and attaches tag descriptions.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {"name": "Images", "description": "Catalogued images. Requires X-API-Key."},
    {"name": "API Keys", "description": "Issue, list and revoke API keys."},
    {"name": "Health", "description": "Liveness check."},
]

_PROTECTED_PREFIXES = ("/images",)


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and API key security."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Issue a key with POST /api/keys and send it in X-API-Key.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(t for t in _TAGS if t["name"] not in existing_tag_names)

        for path, methods in schema.get("paths", {}).items():
            if not path.startswith(_PROTECTED_PREFIXES):
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = [{"ApiKeyAuth": []}]

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
