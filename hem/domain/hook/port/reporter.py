"""Port for reporting execution results back to oned."""

from abc import abstractmethod
from typing import Protocol, runtime_checkable

from hem.domain.hook.model.result import ResultRecord
from hem.domain.shared.port import Port


@runtime_checkable
class ResultReporter(Port, Protocol):
    @abstractmethod
    def report(self, record: ResultRecord) -> bool:
        """Send one result; ``True`` when oned acknowledged it."""
        ...
