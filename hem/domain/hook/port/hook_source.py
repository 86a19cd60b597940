"""Port for retrieving the hook pool."""

from abc import abstractmethod
from typing import Protocol, runtime_checkable

from hem.domain.hook.model.hook import HookRecord
from hem.domain.shared.port import Port


@runtime_checkable
class HookSource(Port, Protocol):
    """Supplies the full list of hook definitions."""

    @abstractmethod
    def hooks(self) -> list[HookRecord]:
        """Return every hook in the pool.

        Raises:
            HookSourceError: If the pool cannot be retrieved.
        """
        ...
