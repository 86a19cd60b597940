"""Inspect the hook pool as the manager sees it."""

import sys
from pathlib import Path

from hem.application.di import create_container
from hem.cli.console import get_console
from hem.cli.util import load_settings
from hem.domain.hook.model.registry import HookRegistry
from hem.domain.hook.service.subscription import STATIC_FILTERS
from hem.domain.shared.error import ConfigurationError


def hooks(config: Path | None = None) -> None:
    """Load the hook pool once and list each hook with its key and bus filter.

    Args:
        config: Path to hem.conf. Defaults to $HEM_CONFIG_FILE or <etc>/hem.conf.
    """
    console = get_console()
    settings = load_settings(config)

    container = create_container(settings)
    try:
        try:
            registry = container.get(HookRegistry)
        except ConfigurationError as e:
            console.error(e.message)
            sys.exit(1)

        if not registry.load():
            console.error(
                "Cannot get hook information",
                hint=f"Check that oned is reachable at {settings.one_xmlrpc}",
            )
            sys.exit(1)

        rows = [
            {
                "id": hook.id,
                "name": hook.name,
                "type": hook.type.value.upper(),
                "key": hook.key,
                "filter": hook.filter,
                "command": hook.command,
                "host": hook.remote_host if hook.remote else "",
            }
            for hook in sorted(registry.hooks(), key=lambda h: h.id)
        ]
    finally:
        container.close()

    console.table(
        rows,
        [
            ("id", "ID"),
            ("name", "Name"),
            ("type", "Type"),
            ("key", "Key"),
            ("filter", "Filter"),
            ("command", "Command"),
            ("host", "Remote host"),
        ],
        title="Hooks",
    )
    console.print(f"[dim]Static filters:[/dim] {', '.join(STATIC_FILTERS)}")
