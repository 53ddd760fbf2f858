"""
Configuration for the SQS drain tool.

Values are read from environment variables once, at startup. Command-line
flags take precedence over anything loaded here.
"""

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_REGION = "ap-south-1"
DEFAULT_FILE_NAME = "queue_messages.json"


def get_env_var(name: str, default: Optional[str] = None) -> str:
    """
    Gets an environment variable or raises a ValueError for fast-failure.

    Args:
        name: The name of the environment variable.
        default: An optional default value. If not provided, the variable is required.

    Returns:
        The value of the environment variable.

    Raises:
        ValueError: If the required environment variable is not set.
    """
    value = os.environ.get(name, default)
    if value is None:
        raise ValueError(f"FATAL: Environment variable '{name}' is not set.")
    return value


def _optional_env_var(name: str) -> Optional[str]:
    value = get_env_var(name, "")
    return value or None


@dataclass(frozen=True)
class Settings:
    """Defaults for a run, resolved from the environment."""

    region: str
    profile: Optional[str]
    file_name: str
    endpoint_url: Optional[str]
    environment: str
    log_level: str

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            region=get_env_var("SQS_PEEK_REGION", DEFAULT_REGION),
            profile=_optional_env_var("SQS_PEEK_PROFILE"),
            file_name=get_env_var("SQS_PEEK_FILE_NAME", DEFAULT_FILE_NAME),
            endpoint_url=_optional_env_var("SQS_PEEK_ENDPOINT_URL"),
            environment=get_env_var("ENVIRONMENT", "dev"),
            log_level=get_env_var("LOG_LEVEL", "INFO").upper(),
        )
