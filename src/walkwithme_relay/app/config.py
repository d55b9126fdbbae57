from dataclasses import dataclass, field

from walkwithme_shared.platform_manager import get_parameters

# Constants that don't change
DEFAULT_UPSTREAM_API_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-5-mini"
DEFAULT_SERVICE_NAME = "walkwithme-api"
DEFAULT_UPSTREAM_TIMEOUT = 120.0  # seconds; the client gives up after 30
DEFAULT_ALLOWED_ORIGINS = (
    "https://walkwithme.kr",
    "https://walkwithme.archerlab.dev",
    "http://localhost:3000",
)

SECRETS_PATH = "/apps/prod/walkwithme/secrets/"
PARAMETERS_PATH = "/apps/prod/walkwithme/"


@dataclass
class RelaySettings:
    """Relay configuration settings loaded from parameter store."""

    # Upstream settings
    upstream_api_url: str
    default_model: str
    upstream_timeout: float

    # CORS settings
    allowed_origins: list[str] = field(default_factory=list)

    # Liveness probe
    service_name: str = DEFAULT_SERVICE_NAME

    # Secret; may be empty, in which case POST requests are answered with a 500
    openai_api_key: str = ""


def _parse_origins(raw: str | None) -> list[str]:
    if not raw:
        return list(DEFAULT_ALLOWED_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def _parse_timeout(raw: str | None) -> float:
    if not raw:
        return DEFAULT_UPSTREAM_TIMEOUT
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError("Configuration value is invalid: UPSTREAM_TIMEOUT") from e


class Config:
    """Singleton configuration manager for the chat relay."""

    _instance = None
    _settings = None

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def get_settings(self) -> RelaySettings:
        """Get relay settings, loading from parameter store if not already cached."""
        if self._settings is None:
            self._settings = self._load_settings()
        return self._settings

    def reset(self) -> None:
        """Drop cached settings so the next access reloads them."""
        self._settings = None

    def _load_settings(self) -> RelaySettings:
        """Load settings from the parameter store (environment variables when local)."""
        # Load secrets (encrypted)
        secrets = get_parameters(["openai_api_key"], SECRETS_PATH, decrypt=True)

        # Load relay parameters (not encrypted)
        parameters = get_parameters(
            [
                "upstream_api_url",
                "allowed_origins",
                "default_model",
                "service_name",
                "upstream_timeout",
            ],
            PARAMETERS_PATH,
        )

        settings = RelaySettings(
            upstream_api_url=parameters["upstream_api_url"] or DEFAULT_UPSTREAM_API_URL,
            default_model=(parameters["default_model"] or DEFAULT_MODEL).strip(),
            upstream_timeout=_parse_timeout(parameters["upstream_timeout"]),
            allowed_origins=_parse_origins(parameters["allowed_origins"]),
            service_name=parameters["service_name"] or DEFAULT_SERVICE_NAME,
            openai_api_key=secrets["openai_api_key"] or "",
        )

        # Validate settings
        self._validate_settings(settings)

        return settings

    def _validate_settings(self, settings: RelaySettings) -> None:
        """Validate that all required settings have valid values."""
        # The API key is deliberately absent from this list: it is checked per request
        required_fields = [
            "upstream_api_url",
            "default_model",
            "allowed_origins",
            "service_name",
        ]

        for field_name in required_fields:
            if not getattr(settings, field_name):
                raise ValueError(f"Configuration value is invalid: {field_name.upper()}")

        if settings.upstream_timeout <= 0:
            raise ValueError("Configuration value is invalid: UPSTREAM_TIMEOUT")


# Create singleton instance
config = Config()


# Convenience functions
def get_settings() -> RelaySettings:
    """Get relay settings from the singleton config."""
    return config.get_settings()


def reset_settings() -> None:
    """Forget the cached relay settings."""
    config.reset()
