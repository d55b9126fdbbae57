import logging
import os

PLATFORM_ENV_VAR = "WALKWITHME_PLATFORM"


def create_logger(
    log_level: str = "INFO",
    logger_name: str = "walkwithme",
) -> logging.Logger:
    """
    Create a logger that outputs to the console.

    Args:
        log_level (str): Logging level (e.g., "INFO", "DEBUG").
        logger_name (str): Name for the logger instance.

    Returns:
        logging.Logger: Configured logger instance.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")

    if not logger.handlers:  # Prevent handler duplication
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def running_on_aws() -> bool:
    """Return True when parameters should come from AWS Parameter Store."""
    return os.getenv(PLATFORM_ENV_VAR, "local").strip().lower() == "aws"


def get_parameters(
    param_names: list[str] | str,
    base_path: str,
    *,
    decrypt: bool = False,
    region_name: str = "us-east-1",
) -> dict[str, str | None]:
    """
    Retrieve parameters by leaf name.

    Locally, parameters are read from environment variables named after the upper-cased
    leaf name (``openai_api_key`` -> ``OPENAI_API_KEY``); `base_path` and `decrypt` are
    ignored. When ``WALKWITHME_PLATFORM=aws`` the lookup is delegated to AWS Systems
    Manager Parameter Store under `base_path`.

    Returns:
        dict[str, str | None]: Lower-cased leaf name -> value, or None when missing.
    """
    if isinstance(param_names, str):
        param_names = [param_names]

    if running_on_aws():
        from walkwithme_shared.aws_platform_manager import get_ssm_parameters

        return get_ssm_parameters(
            param_names, base_path, decrypt=decrypt, region_name=region_name
        )

    result = {}
    for param_name in param_names:
        # Parameters are stored in the environment variables in uppercase
        # But we want to store them in lowercase in the result dictionary
        result[param_name.lower()] = os.getenv(param_name.upper())
    return result
