from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests


class UpstreamUnavailableError(RuntimeError):
    """Raised when the upstream API could not be reached at all."""


@dataclass(frozen=True)
class UpstreamResponse:
    status_code: int
    body: bytes


def forward_chat_completion(
    api_url: str,
    api_key: str,
    model: str,
    messages: list[Any],
    *,
    timeout: float,
) -> UpstreamResponse:
    """
    Forward a chat-completion request to the upstream API exactly once.

    The messages are passed through verbatim. Whatever the upstream answers, including
    4xx/5xx errors, is returned unmodified so the caller can relay it.

    Args:
        api_url: Upstream chat-completion endpoint.
        api_key: Server-held bearer credential.
        model: Model identifier.
        messages: Conversation messages as received from the client.
        timeout: Seconds to wait for the upstream before giving up.

    Returns:
        UpstreamResponse: Upstream status code and raw body bytes.

    Raises:
        UpstreamUnavailableError: On connection failures and timeouts.
    """
    try:
        resp = requests.post(
            api_url,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}",
            },
            json={"model": model, "messages": messages},
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise UpstreamUnavailableError(f"Upstream request failed: {e}") from e

    return UpstreamResponse(status_code=resp.status_code, body=resp.content)
