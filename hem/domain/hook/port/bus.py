"""Ports for the oned message bus: event subscription and request/reply."""

from abc import abstractmethod
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from hem.domain.shared.port import Port


@dataclass(frozen=True)
class BusMessage:
    """A published event: topic (e.g. ``API one.vm.allocate 1``) and encoded body."""

    topic: str
    payload: str


@runtime_checkable
class Subscriber(Port, Protocol):
    """Subscriber side of the event bus. Used from a single thread."""

    @abstractmethod
    def connect(self) -> None: ...

    @abstractmethod
    def subscribe(self, topic_filter: str) -> None: ...

    @abstractmethod
    def unsubscribe(self, topic_filter: str) -> None: ...

    @abstractmethod
    def receive(self, timeout_ms: int | None = None) -> BusMessage | None:
        """Next message, or ``None`` if nothing arrived within ``timeout_ms``."""
        ...


@runtime_checkable
class RequestChannel(Port, Protocol):
    """Blocking request/reply channel. Not safe for concurrent callers."""

    @abstractmethod
    def connect(self) -> None: ...

    @abstractmethod
    def request(self, message: str) -> str:
        """Send ``message`` and wait for the reply.

        Raises:
            ReportTimeoutError: If no reply arrives in time.
        """
        ...
