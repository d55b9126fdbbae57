from collections.abc import Mapping
from typing import Any

# Browsers send the literal string "null" for opaque origins such as file://
NULL_ORIGIN = "null"


def get_header(headers: Mapping[str, Any] | None, name: str) -> str | None:
    """Case-insensitive header lookup (API Gateway lower-cases names, browsers don't)."""
    if not headers:
        return None
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    if value is None:
        target = name.lower()
        for key, candidate in headers.items():
            if str(key).lower() == target:
                value = candidate
                break
    return None if value is None else str(value)


def request_origin(headers: Mapping[str, Any] | None) -> str:
    """Return the caller's Origin header, or "null" when it is missing."""
    origin = get_header(headers, "Origin")
    return origin if origin is not None else NULL_ORIGIN


def is_origin_allowed(origin: str, allowed_origins: list[str]) -> bool:
    """Exact match against the allow-list; no wildcard or suffix matching."""
    return origin in allowed_origins


def cors_headers(origin: str, allowed_origins: list[str]) -> dict[str, str]:
    """
    Build the CORS headers attached to every relay response.

    A rejected origin still gets headers so the browser can surface the error. The
    Allow-Origin value then falls back to the first allow-listed origin.
    """
    if is_origin_allowed(origin, allowed_origins):
        allow_origin = origin
    else:
        allow_origin = allowed_origins[0] if allowed_origins else NULL_ORIGIN

    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
        "Vary": "Origin",
    }
