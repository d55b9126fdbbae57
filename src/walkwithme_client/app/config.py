from dataclasses import dataclass
from pathlib import Path

from walkwithme_shared.platform_manager import get_parameters

# Constants that don't change
DEFAULT_RELAY_URL = "http://localhost:8787/"
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds
DEFAULT_MAX_HISTORY = 12  # user/assistant pairs
DEFAULT_SNAPSHOT_PATH = str(Path.home() / ".walkwithme" / "conversation.json")
DEFAULT_CLIENT_ID = "local"

SNAPSHOT_BACKENDS = ("file", "redis", "none")

PARAMETERS_PATH = "/apps/prod/walkwithme/client/"


@dataclass
class ClientSettings:
    """Chat client configuration settings."""

    relay_url: str
    request_timeout: float
    max_history: int

    # Snapshot persistence
    snapshot_backend: str
    snapshot_path: str
    client_id: str
    redis_url: str = ""

    # Optional model override forwarded to the relay
    model: str | None = None


def _parse_number(raw: str | None, default: float, name: str) -> float:
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"Configuration value is invalid: {name}") from e


class Config:
    """Singleton configuration manager for the chat client."""

    _instance = None
    _settings = None

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def get_settings(self) -> ClientSettings:
        """Get client settings, loading them if not already cached."""
        if self._settings is None:
            self._settings = self._load_settings()
        return self._settings

    def reset(self) -> None:
        """Drop cached settings so the next access reloads them."""
        self._settings = None

    def _load_settings(self) -> ClientSettings:
        """Load settings from the parameter store (environment variables when local)."""
        parameters = get_parameters(
            [
                "walkwithme_relay_url",
                "walkwithme_request_timeout",
                "walkwithme_max_history",
                "walkwithme_model",
                "walkwithme_snapshot_backend",
                "walkwithme_snapshot_path",
                "walkwithme_client_id",
                "redis_url",
            ],
            PARAMETERS_PATH,
        )

        model = (parameters["walkwithme_model"] or "").strip()

        settings = ClientSettings(
            relay_url=parameters["walkwithme_relay_url"] or DEFAULT_RELAY_URL,
            request_timeout=_parse_number(
                parameters["walkwithme_request_timeout"],
                DEFAULT_REQUEST_TIMEOUT,
                "WALKWITHME_REQUEST_TIMEOUT",
            ),
            max_history=int(
                _parse_number(
                    parameters["walkwithme_max_history"],
                    DEFAULT_MAX_HISTORY,
                    "WALKWITHME_MAX_HISTORY",
                )
            ),
            snapshot_backend=(parameters["walkwithme_snapshot_backend"] or "file").lower(),
            snapshot_path=parameters["walkwithme_snapshot_path"] or DEFAULT_SNAPSHOT_PATH,
            client_id=parameters["walkwithme_client_id"] or DEFAULT_CLIENT_ID,
            redis_url=parameters["redis_url"] or "",
            model=model or None,
        )

        self._validate_settings(settings)

        return settings

    def _validate_settings(self, settings: ClientSettings) -> None:
        """Validate that all required settings have valid values."""
        required_fields = ["relay_url", "snapshot_backend"]

        if settings.snapshot_backend == "file":
            required_fields.append("snapshot_path")
        if settings.snapshot_backend == "redis":
            required_fields.extend(["redis_url", "client_id"])

        for field_name in required_fields:
            if not getattr(settings, field_name):
                raise ValueError(f"Configuration value is invalid: {field_name.upper()}")

        if settings.snapshot_backend not in SNAPSHOT_BACKENDS:
            raise ValueError("Configuration value is invalid: SNAPSHOT_BACKEND")
        if settings.request_timeout <= 0:
            raise ValueError("Configuration value is invalid: REQUEST_TIMEOUT")
        if settings.max_history < 1:
            raise ValueError("Configuration value is invalid: MAX_HISTORY")


# Create singleton instance
config = Config()


# Convenience functions
def get_settings() -> ClientSettings:
    """Get client settings from the singleton config."""
    return config.get_settings()


def reset_settings() -> None:
    """Forget the cached client settings."""
    config.reset()
