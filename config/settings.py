"""
Configuration settings with environment variable loading.

The Drive access token MUST be provided via environment variables.
Never log or expose tokens in any output.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


@dataclass(frozen=True)
class DriveConfig:
    """Drive API configuration."""
    access_token: str
    api_url: str = "https://www.googleapis.com/drive/v2"

    def __post_init__(self):
        if not self.access_token:
            raise ConfigurationError("DRIVE_ACCESS_TOKEN is required")
        if not self.api_url.startswith("https://"):
            raise ConfigurationError("DRIVE_API_URL must use HTTPS")

    def __repr__(self) -> str:
        """Never expose token in repr."""
        return f"DriveConfig(api_url='{self.api_url}', access_token='***REDACTED***')"


@dataclass(frozen=True)
class PullConfig:
    """Pull engine configuration."""
    max_concurrent: int = 4
    no_prompt: bool = False
    dry_run: bool = False
    request_timeout_seconds: float = 60.0
    max_retries: int = 3

    def __post_init__(self):
        if self.max_concurrent < 1:
            raise ConfigurationError("PULL_MAX_CONCURRENT must be at least 1")
        if self.request_timeout_seconds <= 0:
            raise ConfigurationError("PULL_REQUEST_TIMEOUT must be positive")


@dataclass(frozen=True)
class ContextConfig:
    """Local sync root configuration."""
    root: Path = field(default_factory=lambda: Path("."))

    def __post_init__(self):
        object.__setattr__(self, 'root', Path(self.root).expanduser())


@dataclass(frozen=True)
class Settings:
    """
    Application settings container.

    All configuration is loaded from environment variables.
    Secrets are never logged or exposed.
    """
    drive: DriveConfig
    pull: PullConfig
    context: ContextConfig
    log_level: str = "INFO"

    def __post_init__(self):
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")

    def __repr__(self) -> str:
        return (
            f"Settings(\n"
            f"  drive={self.drive},\n"
            f"  pull={self.pull},\n"
            f"  context={self.context}\n"
            f")"
        )


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").lower() in ("1", "true", "yes")


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Load settings from environment variables.

    Optionally loads from a .env file first.

    Args:
        env_file: Optional path to .env file

    Returns:
        Configured Settings instance

    Raises:
        ConfigurationError: If required configuration is missing
    """
    if env_file and env_file.exists():
        _load_env_file(env_file)
    elif Path(".env").exists():
        _load_env_file(Path(".env"))

    try:
        drive = DriveConfig(
            access_token=os.getenv("DRIVE_ACCESS_TOKEN", ""),
            api_url=os.getenv("DRIVE_API_URL", "https://www.googleapis.com/drive/v2").rstrip("/"),
        )

        pull = PullConfig(
            max_concurrent=int(os.getenv("PULL_MAX_CONCURRENT", "4")),
            no_prompt=_env_flag("PULL_NO_PROMPT"),
            dry_run=_env_flag("PULL_DRY_RUN"),
            request_timeout_seconds=float(os.getenv("PULL_REQUEST_TIMEOUT", "60")),
            max_retries=int(os.getenv("PULL_MAX_RETRIES", "3")),
        )

        context = ContextConfig(
            root=Path(os.getenv("DRIVEPULL_ROOT", ".")),
        )

        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        settings = Settings(
            drive=drive,
            pull=pull,
            context=context,
            log_level=log_level,
        )

        logger.info("Configuration loaded successfully")
        logger.debug(f"Settings: {settings}")

        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Failed to load configuration: {e}") from e


def _load_env_file(path: Path) -> None:
    """
    Load environment variables from a file.

    Handles KEY=value lines, optional quotes, comments and blank lines.
    Variables already set in the environment win.
    """
    logger.debug(f"Loading environment from {path}")

    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()

            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                logger.warning(f"Invalid line {line_num} in {path}: no '=' found")
                continue

            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()

            if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
                value = value[1:-1]

            if key not in os.environ:
                os.environ[key] = value
