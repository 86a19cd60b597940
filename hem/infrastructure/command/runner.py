"""Command runners: local shell and remote execution over ssh."""

import logging
import shlex
import subprocess

from hem.domain.hook.model.result import LAUNCH_FAILURE_CODE, CommandResult
from hem.domain.hook.port.command_runner import CommandRunner

logger = logging.getLogger(__name__)


class LocalCommandRunner(CommandRunner):
    """Runs command lines through the local shell."""

    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = timeout

    def run(self, command: str, host: str | None = None) -> CommandResult:
        logger.debug(f"Running command: {command}")
        return _run(command, command, timeout=self._timeout)


class SshCommandRunner(CommandRunner):
    """Runs command lines on a remote host with the ssh client."""

    def __init__(
        self,
        ssh: str = "ssh",
        options: tuple[str, ...] = ("-o", "BatchMode=yes"),
        timeout: float | None = None,
    ) -> None:
        self._ssh = ssh
        self._options = options
        self._timeout = timeout

    def run(self, command: str, host: str | None = None) -> CommandResult:
        if not host:
            raise ValueError("SshCommandRunner needs a host")
        logger.debug(f"Running command on {host}: {command}")
        argv = [self._ssh, *self._options, host, command]
        return _run(command, argv, timeout=self._timeout)


class HookCommandRunner(CommandRunner):
    """Dispatches to the local or the ssh runner depending on ``host``."""

    def __init__(self, local: CommandRunner, remote: CommandRunner) -> None:
        self._local = local
        self._remote = remote

    def run(self, command: str, host: str | None = None) -> CommandResult:
        if host:
            return self._remote.run(command, host)
        return self._local.run(command)


def _run(command: str, args: str | list[str], *, timeout: float | None) -> CommandResult:
    """Run ``args`` (a shell line, or an argv list run without a shell)."""
    shell = isinstance(args, str)
    try:
        completed = subprocess.run(
            args,
            shell=shell,
            capture_output=True,
            text=True,
            errors="replace",
            stdin=subprocess.DEVNULL,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        return CommandResult(
            command=command,
            code=LAUNCH_FAILURE_CODE,
            stderr=f"Command timed out after {timeout}s",
        )
    except OSError as e:
        logger.error(f"Cannot launch {args if shell else shlex.join(args)}: {e}")
        return CommandResult(command=command, code=LAUNCH_FAILURE_CODE, stderr=str(e))

    return CommandResult(
        command=command,
        code=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
