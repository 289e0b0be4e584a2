"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with tags metadata
and the 429 response every rate-limited operation can return.

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {
        "name": "Users",
        "description": "Cached, coalesced user lookups and user creation.",
    },
    {
        "name": "Cache",
        "description": "Cache administration and statistics.",
    },
    {
        "name": "Health",
        "description": "Liveness checks and the landing document.",
    },
]

_RATE_LIMITED_RESPONSE = {
    "description": "Too many requests; retry after the Retry-After delay.",
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata.

    - Adds tags metadata if not present
    - Documents a 429 response on every operation outside the Health tag
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in _TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for methods in schema.get("paths", {}).values():
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                if "Health" in method_obj.get("tags", []):
                    continue
                method_obj.setdefault("responses", {}).setdefault(
                    "429", _RATE_LIMITED_RESPONSE
                )

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
