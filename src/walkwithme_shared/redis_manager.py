from __future__ import annotations

import json
from typing import Any

from redis import Redis


class RedisManager:
    """
    High-level Redis utilities for namespaced JSON records.

    This class is designed for dependency injection: callers provide a configured
    Redis client (e.g., via Redis.from_url) and an optional key namespace.

    Args:
        redis_client (Redis): A configured Redis client instance.
        namespace (str): Key namespace/prefix for generated keys.
    """

    def __init__(self, redis_client: Redis, *, namespace: str = "walkwithme") -> None:
        self._redis: Redis = redis_client
        self._namespace: str = namespace.rstrip(":")

    # -----------------------------
    # Key helpers
    # -----------------------------
    def get_snapshot_key(self, client_id: str) -> str:
        """
        Build a namespaced conversation snapshot key for a client.

        Args:
            client_id (str): Identifier of the chat client (one per local installation).

        Returns:
            str: A namespaced Redis key.
        """
        return f"{self._namespace}:chat:snapshot:{client_id}"

    # -----------------------------
    # JSON helpers
    # -----------------------------
    def set_json(self, key: str, value: dict[str, Any]) -> None:
        """
        Store a JSON value at `key` without expiry.

        Args:
            key (str): The Redis key to set.
            value (dict[str, Any]): The JSON-serializable mapping to store.
        """
        self._redis.set(key, json.dumps(value, ensure_ascii=False))

    def get_json(self, key: str) -> dict[str, Any] | None:
        """
        Get a JSON value from `key` and parse it into a dict.

        Returns:
            dict[str, Any] | None: Parsed dict if present and valid; otherwise None.
        """
        raw = self._redis.get(key)
        if not raw:
            return None
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError):
            return None
        return parsed if isinstance(parsed, dict) else None


def build_redis_manager(
    redis_url: str | None = None,
    *,
    redis_client: Redis | None = None,
    namespace: str = "walkwithme",
) -> RedisManager:
    """
    Factory to create a RedisManager.

    You can provide either `redis_url` (preferred) and this function will initialize
    the client, or pass an existing `redis_client` (for tests/advanced use).

    Args:
        redis_url (str | None): Redis connection URL (e.g., "redis://:pwd@host:6379/0").
        redis_client (Redis | None): Pre-configured Redis client instance.
        namespace (str): Key namespace/prefix for generated keys.

    Returns:
        RedisManager: Configured manager instance.
    """
    if redis_client is None:
        if not redis_url:
            raise ValueError("Provide either redis_url or redis_client")
        redis_client = Redis.from_url(redis_url, decode_responses=True)

    return RedisManager(redis_client, namespace=namespace)
