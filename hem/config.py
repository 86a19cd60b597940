import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource
from typing_extensions import Self

from hem.domain.shared.error import ConfigurationError

CONFIG_FILE_ENV = "HEM_CONFIG_FILE"
CONFIG_FILE_NAME = "hem.conf"
LOG_FILE_NAME = "hem.log"

# debug_level -> logging level
DEBUG_LEVELS = {
    0: "ERROR",
    1: "WARNING",
    2: "INFO",
    3: "DEBUG",
}


# =============================================================================
# Install locations
# =============================================================================


@dataclass(frozen=True)
class OneLocations:
    """OpenNebula directories, resolved once from ``ONE_LOCATION``.

    Unset means a system-wide install (/etc/one, /var/lib/one, ...); otherwise
    everything lives under ``$ONE_LOCATION``.
    """

    etc: Path
    var: Path
    log: Path
    hooks: Path

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "OneLocations":
        environ = os.environ if environ is None else environ
        one_location = environ.get("ONE_LOCATION")

        if not one_location:
            return cls(
                etc=Path("/etc/one"),
                var=Path("/var/lib/one"),
                log=Path("/var/log/one"),
                hooks=Path("/var/lib/one/remotes/hooks"),
            )

        base = Path(one_location)
        return cls(
            etc=base / "etc",
            var=base / "var",
            log=base / "var",
            hooks=base / "var" / "remotes" / "hooks",
        )


def config_file_path(locations: OneLocations | None = None) -> Path:
    """``HEM_CONFIG_FILE`` if set, else ``<etc>/hem.conf``."""
    env = os.environ.get(CONFIG_FILE_ENV)
    if env:
        return Path(env)
    return (locations or OneLocations.from_env()).etc / CONFIG_FILE_NAME


# =============================================================================
# Application Configuration
# =============================================================================


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Load settings from the hem.conf YAML file.

    Keys written as Ruby symbols (``:concurrency: 10``) are accepted.
    """

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Get the value for a field from the YAML config."""
        yaml_data = self._load_yaml_config()
        field_value = yaml_data.get(field_name)
        return field_value, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return all settings from YAML file."""
        return self._load_yaml_config()

    def _load_yaml_config(self) -> dict[str, Any]:
        path = config_file_path()
        if not path.exists():
            return {}

        try:
            data = yaml.safe_load(path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Error loading config {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Error loading config {path}: expected a mapping")

        return {str(key).lstrip(":"): value for key, value in data.items()}


class LoggingConfig(BaseModel):
    """Logging configuration (nested in Config, uses env_nested_delimiter).

    Empty strings are sentinels derived from the rest of the configuration:
    ``level`` from ``debug_level`` and ``file`` from the log directory.
    Set ``file`` to null to log to stderr.
    """

    level: str = ""
    file: str | None = ""
    # Mon Feb 27 06:02:30 2012 [E]: Error message example
    format: str = "%(asctime)s [%(levelname).1s]: %(message)s"
    date_format: str = "%a %b %d %H:%M:%S %Y"


class Config(BaseSettings):
    hook_base_path: str = ""  # Empty string = <var>/remotes/hooks
    subscriber_endpoint: str = "tcp://localhost:5556"
    replier_endpoint: str = "tcp://localhost:5557"
    debug_level: int = Field(default=2, ge=0, le=3)
    concurrency: int = Field(default=10, ge=1)  # Hooks running at the same time
    queue_size: int = Field(default=100, ge=1)  # Matched events waiting for a worker
    report_timeout: float = Field(default=60.0, gt=0)  # Seconds to wait for oned's ACK
    shutdown_timeout: float = Field(default=30.0, ge=0)  # Seconds to drain running hooks
    receive_poll_ms: int = Field(default=500, gt=0)  # Receive loop stop-check interval
    one_xmlrpc: str = "http://localhost:2633/RPC2"
    one_auth: Path | None = None  # Defaults to $ONE_AUTH or ~/.one/one_auth
    logging: LoggingConfig = LoggingConfig()

    model_config = {
        "env_prefix": "HEM_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",  # Allows HEM_LOGGING__FILE override
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def derive_defaults(self) -> Self:
        """Fill sentinel values from ONE_LOCATION and debug_level."""
        locations = OneLocations.from_env()

        if not self.hook_base_path:
            self.hook_base_path = str(locations.hooks)

        level = self.logging.level or DEBUG_LEVELS[self.debug_level]
        file = self.logging.file
        if file == "":
            file = str(locations.log / LOG_FILE_NAME)
        self.logging = self.logging.model_copy(update={"level": level, "file": file})

        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include the YAML config.

        Priority (highest to lowest):
        1. init_settings - values passed to Config()
        2. env_settings - HEM_* environment variables
        3. dotenv_settings - .env file
        4. yaml_settings - hem.conf
        5. file_secret_settings - secrets from files
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def load_config(path: Path | None = None) -> Config:
    """Load the configuration, requiring the config file to exist.

    Raises:
        ConfigurationError: Missing, unreadable or invalid configuration.
    """
    if path is not None:
        os.environ[CONFIG_FILE_ENV] = str(path)

    config_file = config_file_path()
    if not config_file.is_file():
        raise ConfigurationError(f"Error loading config {config_file}: file not found")

    try:
        return Config()
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_file}: {e}") from e


def configure_logging(config: LoggingConfig) -> None:
    """Configure Python logging based on config.

    Should be called early in application startup, before other modules
    are imported to ensure all loggers pick up the configuration.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(config.level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(config.format, datefmt=config.date_format)

    if config.file:
        log_path = Path(config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path)
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setLevel(config.level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.debug("Logging configured: level=%s, file=%s", config.level, config.file)
