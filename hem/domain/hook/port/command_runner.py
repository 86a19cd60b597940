"""Port for executing hook commands."""

from abc import abstractmethod
from typing import Protocol, runtime_checkable

from hem.domain.hook.model.result import CommandResult
from hem.domain.shared.port import Port


@runtime_checkable
class CommandRunner(Port, Protocol):
    """Run a command line locally, or on ``host`` when given."""

    @abstractmethod
    def run(self, command: str, host: str | None = None) -> CommandResult:
        """Run ``command`` to completion and return its outcome."""
        ...
