from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from redis.exceptions import RedisError

from walkwithme_client.app.config import DEFAULT_MAX_HISTORY, ClientSettings
from walkwithme_client.infrastructure.data_models import SYSTEM, Message
from walkwithme_shared.platform_manager import create_logger
from walkwithme_shared.redis_manager import RedisManager, build_redis_manager

logger = create_logger(logger_name="walkwithme-client", log_level="INFO")


class SnapshotError(RuntimeError):
    """A snapshot could not be written."""


class SnapshotStore(Protocol):
    def load(self) -> list[Message]: ...
    def save(self, messages: Iterable[Message]) -> None: ...


def build_snapshot(messages: Iterable[Message], max_history: int) -> dict[str, Any]:
    """The persisted record: the history window without the system message."""
    kept = [m for m in messages if m.role != SYSTEM][-2 * max_history:]
    return {"messages": [m.to_dict() for m in kept]}


def parse_snapshot(record: Any) -> list[Message]:
    """
    Turn a persisted record back into messages.

    Raises:
        ValueError: If the record is not a {"messages": [...]} object of valid
            user/assistant messages. The record is used whole or not at all.
    """
    if not isinstance(record, dict):
        raise ValueError("Snapshot is not an object")
    raw_messages = record.get("messages")
    if not isinstance(raw_messages, list):
        raise ValueError("Snapshot has no message list")

    messages = [Message.from_dict(item) for item in raw_messages]
    if any(m.role == SYSTEM for m in messages):
        raise ValueError("Snapshot must not contain the system message")
    return messages


class NullSnapshotStore:
    """Persistence disabled."""

    def load(self) -> list[Message]:
        return []

    def save(self, messages: Iterable[Message]) -> None:
        return None


class FileSnapshotStore:
    """A single JSON file holding the conversation snapshot."""

    def __init__(self, path: str | Path, max_history: int = DEFAULT_MAX_HISTORY) -> None:
        self.path = Path(path).expanduser()
        self.max_history = max_history

    def load(self) -> list[Message]:
        if not self.path.exists():
            return []
        try:
            record = json.loads(self.path.read_text(encoding="utf-8"))
            return parse_snapshot(record)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable snapshot {self.path}: {e}")
            return []

    def save(self, messages: Iterable[Message]) -> None:
        data = json.dumps(build_snapshot(messages, self.max_history), ensure_ascii=False)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a temp file first so a crash never leaves a half-written snapshot
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        except OSError as e:
            raise SnapshotError(f"Cannot write snapshot {self.path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise SnapshotError(f"Cannot write snapshot {self.path}: {e}") from e


class RedisSnapshotStore:
    """The conversation snapshot stored as one namespaced Redis JSON record."""

    def __init__(
        self,
        manager: RedisManager,
        client_id: str,
        max_history: int = DEFAULT_MAX_HISTORY,
    ) -> None:
        self.manager = manager
        self.key = manager.get_snapshot_key(client_id)
        self.max_history = max_history

    def load(self) -> list[Message]:
        try:
            record = self.manager.get_json(self.key)
        except RedisError as e:
            logger.warning(f"Snapshot store unavailable, starting empty: {e}")
            return []
        if record is None:
            return []
        try:
            return parse_snapshot(record)
        except ValueError as e:
            logger.warning(f"Ignoring invalid snapshot at {self.key}: {e}")
            return []

    def save(self, messages: Iterable[Message]) -> None:
        try:
            self.manager.set_json(self.key, build_snapshot(messages, self.max_history))
        except RedisError as e:
            raise SnapshotError(f"Cannot write snapshot {self.key}: {e}") from e


def build_snapshot_store(settings: ClientSettings) -> SnapshotStore:
    """Create the snapshot store selected by configuration."""
    if settings.snapshot_backend == "none":
        return NullSnapshotStore()
    if settings.snapshot_backend == "redis":
        manager = build_redis_manager(settings.redis_url)
        return RedisSnapshotStore(manager, settings.client_id, settings.max_history)
    return FileSnapshotStore(settings.snapshot_path, settings.max_history)
