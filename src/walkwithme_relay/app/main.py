#!/usr/bin/env python3
import base64
import json
from typing import Any

from walkwithme_relay.app.config import get_settings
from walkwithme_relay.app.process_event import (
    InvalidBodyError,
    extract_messages,
    get_method,
    parse_body,
    select_model,
)
from walkwithme_relay.auth.origin_auth import cors_headers, is_origin_allowed, request_origin
from walkwithme_relay.services.upstream_service import (
    UpstreamUnavailableError,
    forward_chat_completion,
)
from walkwithme_shared.platform_manager import create_logger

logger = create_logger(logger_name="walkwithme-relay", log_level="INFO")


def create_response(
    status_code: int,
    body: str,
    content_type: str = "application/json",
    headers: dict[str, str] | None = None,
    is_base64_encoded: bool = False,
) -> dict[str, Any]:
    """
    Create a standard HTTP response.

    Args:
        status_code (int): HTTP status code.
        body (str): Response body.
        content_type (str, optional): Content-Type header. Defaults to "application/json".
        headers (dict[str, str] | None, optional): Additional headers. Defaults to None.
        is_base64_encoded (bool, optional): Whether `body` is base64 text. Defaults to False.

    Returns:
        dict: Standardized response dictionary.
    """
    response_headers = {"Content-Type": content_type}
    if headers:
        response_headers.update(headers)

    return {
        "statusCode": status_code,
        "body": body,
        "headers": response_headers,
        "isBase64Encoded": is_base64_encoded,
    }


def create_json_response(
    status_code: int, data: dict[str, Any], headers: dict[str, str]
) -> dict[str, Any]:
    return create_response(status_code, json.dumps(data, ensure_ascii=False), headers=headers)


def create_error_response(
    status_code: int, message: str, headers: dict[str, str]
) -> dict[str, Any]:
    return create_json_response(status_code, {"error": message}, headers)


def create_passthrough_response(
    status_code: int, body: bytes, headers: dict[str, str]
) -> dict[str, Any]:
    """Relay upstream bytes unchanged; bodies that are not UTF-8 travel base64 encoded."""
    try:
        return create_response(status_code, body.decode("utf-8"), headers=headers)
    except UnicodeDecodeError:
        encoded = base64.b64encode(body).decode("ascii")
        return create_response(status_code, encoded, headers=headers, is_base64_encoded=True)


def process(event: dict[str, Any]) -> dict[str, Any]:
    """Process the incoming HTTP Gateway event."""
    settings = get_settings()
    method = get_method(event)
    origin = request_origin(event.get("headers"))
    origin_allowed = is_origin_allowed(origin, settings.allowed_origins)
    headers = cors_headers(origin, settings.allowed_origins)

    logger.info(f"Relay request: {method or '?'} from origin {origin}")

    # 1. Preflight; headers are attached even when rejected so the browser can read the error
    if method == "OPTIONS":
        if not origin_allowed:
            logger.warning(f"Preflight rejected for origin: {origin}")
            return create_response(403, "", headers=headers)
        return create_response(204, "", headers=headers)

    # Liveness probe
    if method == "GET":
        return create_json_response(
            200, {"ok": True, "service": settings.service_name}, headers
        )

    # 2. Origin check
    if not origin_allowed:
        logger.warning(f"Forbidden origin: {origin}")
        return create_error_response(403, "Forbidden origin", headers)

    # 3. Credential check; a missing secret is an operator error
    if not settings.openai_api_key:
        logger.error("OPENAI_API_KEY is not configured")
        return create_error_response(500, "Missing OPENAI_API_KEY", headers)

    # 4. Body parsing
    try:
        body = parse_body(event)
    except InvalidBodyError as e:
        logger.warning(f"Rejected request body: {e}")
        return create_error_response(400, "Invalid JSON", headers)

    # 5. Payload validation
    messages = extract_messages(body)
    if messages is None:
        logger.warning("Rejected request without messages")
        return create_error_response(400, "No messages provided", headers)

    # 6. Model selection
    model = select_model(body, settings.default_model)

    # 7. Upstream call (never retried; the client owns timeout and retry policy)
    logger.info(f"Forwarding {len(messages)} messages to upstream (model={model})")
    try:
        upstream = forward_chat_completion(
            settings.upstream_api_url,
            settings.openai_api_key,
            model,
            messages,
            timeout=settings.upstream_timeout,
        )
    except UpstreamUnavailableError as e:
        logger.error(str(e))
        return create_error_response(502, "Upstream request failed", headers)

    # 8. Passthrough, errors included
    if upstream.status_code >= 400:
        logger.warning(f"Upstream returned status {upstream.status_code}")
    else:
        logger.info(f"Upstream returned status {upstream.status_code}")
    return create_passthrough_response(upstream.status_code, upstream.body, headers)
