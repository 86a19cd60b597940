"""Show the effective configuration."""

from pathlib import Path

import yaml

from hem.cli.console import get_console
from hem.cli.util import load_settings


def show_config(config: Path | None = None) -> None:
    """Print the effective configuration (file, environment and defaults merged).

    Args:
        config: Path to hem.conf. Defaults to $HEM_CONFIG_FILE or <etc>/hem.conf.
    """
    settings = load_settings(config)
    dump = yaml.safe_dump(settings.model_dump(mode="json"), sort_keys=False)
    get_console().print(dump, markup=False, highlight=False)
