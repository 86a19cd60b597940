"""Run the Hook Execution Manager."""

import logging
import signal
import sys
from pathlib import Path

from hem.application.di import create_container
from hem.application.manager import HookExecutionManager
from hem.cli.console import get_console
from hem.cli.util import load_settings
from hem.config import configure_logging
from hem.domain.shared.error import ConfigurationError

logger = logging.getLogger(__name__)


def run(config: Path | None = None, *, stderr: bool = False) -> None:
    """Run the Hook Execution Manager in the foreground.

    Stops on SIGINT/SIGTERM, draining running hooks for up to shutdown_timeout
    seconds. Exits with status 1 on configuration errors or when oned stops
    acknowledging results.

    Args:
        config: Path to hem.conf. Defaults to $HEM_CONFIG_FILE or <etc>/hem.conf.
        stderr: Log to stderr instead of the log file.
    """
    console = get_console()
    settings = load_settings(config)

    if stderr:
        settings.logging = settings.logging.model_copy(update={"file": None})
    try:
        configure_logging(settings.logging)
    except OSError as e:
        console.error(f"Cannot open log file: {e}", hint="Set logging.file or run with --stderr")
        sys.exit(1)

    container = create_container(settings)
    try:
        try:
            manager = container.get(HookExecutionManager)
        except ConfigurationError as e:
            console.error(e.message)
            sys.exit(1)

        def _handle_signal(signum: int, frame) -> None:
            logger.info(f"Received {signal.Signals(signum).name}, stopping")
            manager.stop()

        signal.signal(signal.SIGTERM, _handle_signal)
        signal.signal(signal.SIGINT, _handle_signal)

        ok = manager.run()
    finally:
        container.close()

    if not ok:
        console.error(f"Hook Execution Manager stopped: {manager.fatal_error}")
        sys.exit(1)
