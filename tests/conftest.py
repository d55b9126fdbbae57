"""Pytest configuration and shared fixtures."""
import contextlib
import json
import socket
import threading
from collections.abc import Callable
from typing import Any

import pytest

from walkwithme_client.app.config import reset_settings as reset_client_settings
from walkwithme_relay.app.config import reset_settings as reset_relay_settings

ALLOWED_ORIGIN = "https://walkwithme.kr"

RELAY_ENV_VARS = [
    "WALKWITHME_PLATFORM",
    "OPENAI_API_KEY",
    "UPSTREAM_API_URL",
    "ALLOWED_ORIGINS",
    "DEFAULT_MODEL",
    "SERVICE_NAME",
    "UPSTREAM_TIMEOUT",
]

CLIENT_ENV_VARS = [
    "WALKWITHME_RELAY_URL",
    "WALKWITHME_REQUEST_TIMEOUT",
    "WALKWITHME_MAX_HISTORY",
    "WALKWITHME_MODEL",
    "WALKWITHME_SNAPSHOT_BACKEND",
    "WALKWITHME_SNAPSHOT_PATH",
    "WALKWITHME_CLIENT_ID",
    "REDIS_URL",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Start every test from default configuration."""
    for name in RELAY_ENV_VARS + CLIENT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_relay_settings()
    reset_client_settings()
    yield
    reset_relay_settings()
    reset_client_settings()


@pytest.fixture
def relay_env(monkeypatch):
    """Relay configured with an API key and the default allow-list."""
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    reset_relay_settings()


def make_event(
    method: str = "POST",
    origin: str | None = ALLOWED_ORIGIN,
    body: Any = "",
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Build an API Gateway v2 style event."""
    event_headers = dict(headers or {})
    if origin is not None:
        event_headers["origin"] = origin
    if isinstance(body, dict):
        body = json.dumps(body)
    return {
        "routeKey": f"{method} /",
        "headers": event_headers,
        "body": body,
        "isBase64Encoded": False,
        "requestContext": {"http": {"method": method, "path": "/"}},
    }


class FakeView:
    """ChatView double that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.rendered: list[tuple[str, str]] = []
        self.composer_enabled = True
        self.submit_enabled = True
        self.thinking_visible = False
        self.fail_on_remove = False
        self._next_bubble = 0

    def render_message(self, role: str, text: str) -> int:
        self.calls.append(("render_message", (role, text)))
        self.rendered.append((role, text))
        self._next_bubble += 1
        return self._next_bubble

    def show_thinking(self) -> str:
        self.calls.append(("show_thinking", None))
        self.thinking_visible = True
        return "thinking"

    def remove_bubble(self, bubble: Any) -> None:
        self.calls.append(("remove_bubble", bubble))
        if self.fail_on_remove:
            raise RuntimeError("bubble already detached")
        self.thinking_visible = False

    def lock_composer(self) -> None:
        self.calls.append(("lock_composer", None))
        self.composer_enabled = False

    def unlock_composer(self) -> None:
        self.calls.append(("unlock_composer", None))
        self.composer_enabled = True

    def set_submit_enabled(self, enabled: bool) -> None:
        self.calls.append(("set_submit_enabled", enabled))
        self.submit_enabled = enabled

    def focus_composer(self) -> None:
        self.calls.append(("focus_composer", None))

    def count(self, name: str, arg: Any = None) -> int:
        return sum(1 for call, value in self.calls if call == name and (arg is None or value == arg))


class FakeRedis:
    """Minimal in-memory stand-in for the redis client methods RedisManager uses."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


def _read_http_request(conn: socket.socket) -> None:
    """Consume one HTTP request (headers and Content-Length body) from the socket."""
    data = b""
    while b"\r\n\r\n" not in data:
        chunk = conn.recv(4096)
        if not chunk:
            return
        data += chunk
    head, _, body = data.partition(b"\r\n\r\n")
    length = 0
    for line in head.split(b"\r\n")[1:]:
        name, _, value = line.partition(b":")
        if name.strip().lower() == b"content-length":
            length = int(value.strip())
    while len(body) < length:
        chunk = conn.recv(4096)
        if not chunk:
            return
        body += chunk


@contextlib.contextmanager
def scripted_http_server(respond: Callable[[socket.socket, threading.Event], None]):
    """
    Serve a single connection on localhost, answering with `respond(conn, release)`.

    `release` is set when the test is done so stalling responders can stop waiting.
    Yields the server URL.
    """
    listener = socket.create_server(("127.0.0.1", 0))
    listener.settimeout(5)
    release = threading.Event()

    def serve() -> None:
        with contextlib.suppress(OSError):
            conn, _ = listener.accept()
            with conn:
                _read_http_request(conn)
                respond(conn, release)

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    host, port = listener.getsockname()[:2]
    try:
        yield f"http://{host}:{port}/"
    finally:
        release.set()
        listener.close()
        thread.join(timeout=5)


@pytest.fixture
def fake_view() -> FakeView:
    return FakeView()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
