"""Helpers shared by CLI commands."""

import sys
from pathlib import Path

from hem.cli.console import get_console
from hem.config import Config, config_file_path, load_config
from hem.domain.shared.error import ConfigurationError


def load_settings(config: Path | None) -> Config:
    """Load the configuration or exit with status 1.

    Raises:
        SystemExit: If the config file is missing or invalid.
    """
    try:
        return load_config(config)
    except ConfigurationError as e:
        get_console().error(e.message, hint=f"Config file: {config or config_file_path()}")
        sys.exit(1)
