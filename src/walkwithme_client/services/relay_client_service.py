from __future__ import annotations

import json
import time
from typing import Any

import requests
from urllib3.exceptions import ReadTimeoutError

from walkwithme_client.infrastructure.data_models import Message


class RelayError(RuntimeError):
    """The relay (or the upstream behind it) did not produce a usable answer."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ReplyTimeoutError(RelayError):
    """The request was abandoned after the client-side timeout."""


# Small reads so a body trickling in cannot outlast the deadline
_READ_CHUNK_SIZE = 1


def _is_read_timeout(error: requests.ConnectionError) -> bool:
    """
    True when a ConnectionError is a socket read timeout in disguise.

    requests raises ConnectionError wrapping urllib3's ReadTimeoutError when the timeout
    hits while the body is being streamed, rather than requests.Timeout.
    """
    cause = error.args[0] if error.args else None
    return isinstance(cause, ReadTimeoutError) or isinstance(
        error.__context__, ReadTimeoutError
    )


def _error_message(status_code: int, content: bytes) -> str:
    """
    Pick the most useful error text from a non-2xx response.

    The relay answers with {"error": "..."}; upstream errors are passed through in their
    own shape, {"error": {"message": "...", ...}}.
    """
    try:
        payload = json.loads(content)
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, str) and error:
            return error
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message

    return f"Response code {status_code}"


def extract_reply(data: Any) -> str | None:
    """Return choices[0].message.content stripped, or None when absent or empty."""
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if not isinstance(content, str):
        return None
    return content.strip() or None


class RelayClient:
    """
    Sends conversation payloads to the relay and extracts the assistant reply.

    Args:
        relay_url: Relay endpoint (POST).
        timeout: Seconds before the request is abandoned, measured over the whole
            exchange from sending the request to reading the last body byte.
        model: Optional model identifier forwarded to the relay.
        session: Optional pre-configured requests session (for tests).
    """

    def __init__(
        self,
        relay_url: str,
        *,
        timeout: float = 30.0,
        model: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.relay_url = relay_url
        self.timeout = timeout
        self.model = model
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def request_reply(self, messages: list[Message]) -> str | None:
        """
        POST the messages to the relay and return the reply text.

        Returns:
            str | None: The stripped reply, or None when the response carried no content.

        Raises:
            ReplyTimeoutError: If the relay did not answer within the timeout.
            RelayError: On non-2xx responses, unreadable bodies and transport failures.
        """
        body: dict[str, Any] = {"messages": [m.to_dict() for m in messages]}
        if self.model:
            body["model"] = self.model

        deadline = time.monotonic() + self.timeout
        try:
            with self.session.post(
                self.relay_url, json=body, timeout=self.timeout, stream=True
            ) as resp:
                status_code = resp.status_code
                content = self._read_body(resp, deadline)
        except requests.Timeout as e:
            raise self._timeout_error() from e
        except requests.ConnectionError as e:
            if _is_read_timeout(e):
                raise self._timeout_error() from e
            raise RelayError(str(e)) from e
        except requests.RequestException as e:
            raise RelayError(str(e)) from e

        if not 200 <= status_code < 400:
            raise RelayError(_error_message(status_code, content), status_code=status_code)

        try:
            data = json.loads(content)
        except ValueError as e:
            raise RelayError("Response was not valid JSON", status_code=status_code) from e

        return extract_reply(data)

    def _read_body(self, resp: requests.Response, deadline: float) -> bytes:
        chunks = []
        for chunk in resp.iter_content(chunk_size=_READ_CHUNK_SIZE):
            if time.monotonic() > deadline:
                raise self._timeout_error()
            chunks.append(chunk)
        return b"".join(chunks)

    def _timeout_error(self) -> ReplyTimeoutError:
        return ReplyTimeoutError(f"No response within {self.timeout:g} seconds")
