import base64
import binascii
import json
from typing import Any


class InvalidBodyError(ValueError):
    """Raised when the request body is not valid JSON."""


def get_method(event: dict[str, Any]) -> str:
    """Extract the HTTP method from an API Gateway (v1 or v2) style event."""
    method = event.get("requestContext", {}).get("http", {}).get("method")
    if not method:
        method = event.get("httpMethod")
    if not method:
        route_key = event.get("routeKey") or ""
        method, _, _ = route_key.partition(" ")
    return str(method or "").upper()


def get_body_text(event: dict[str, Any]) -> str:
    """
    Return the raw request body as text.

    AWS API Gateway sends the body as a string (base64 for binary payloads) but the
    FastAPI adapter sends bytes.
    """
    body_raw = event.get("body") or ""

    if event.get("isBase64Encoded") and isinstance(body_raw, str):
        try:
            body_raw = base64.b64decode(body_raw)
        except (binascii.Error, ValueError) as e:
            raise InvalidBodyError("Body is not valid base64") from e

    if isinstance(body_raw, bytes):
        try:
            return body_raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidBodyError("Body is not valid UTF-8") from e

    if isinstance(body_raw, str):
        return body_raw

    # Possibly pre-parsed during testing
    return json.dumps(body_raw)


def parse_body(event: dict[str, Any]) -> Any:
    """
    Parse the JSON body of the event. An empty body is treated as an empty object.

    Raises:
        InvalidBodyError: If the body cannot be decoded or is not valid JSON.
    """
    text = get_body_text(event)
    if not text:
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidBodyError(f"Invalid JSON: {e.msg}") from e


def extract_messages(body: Any) -> list[Any] | None:
    """Return the `messages` list when it is present and non-empty."""
    if not isinstance(body, dict):
        return None
    messages = body.get("messages")
    if not isinstance(messages, list) or not messages:
        return None
    return messages


def select_model(body: Any, default_model: str) -> str:
    """Use the caller-supplied model identifier when present, else the default."""
    if isinstance(body, dict):
        model = body.get("model")
        if isinstance(model, str) and model.strip():
            return model.strip()
    return default_model
