"""Resolve bus messages to the hook that should run for them."""

import logging
from dataclasses import dataclass

from hem.domain.hook.model.hook import Hook
from hem.domain.hook.model.registry import HookRegistry
from hem.domain.hook.port.bus import BusMessage
from hem.domain.shared import wire

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Topic:
    """``<TYPE> <KEY> [...]``; extra tokens (the API success flag) are ignored."""

    type: str
    key: str

    @classmethod
    def parse(cls, topic: str) -> "Topic | None":
        tokens = topic.split()
        if len(tokens) < 2:
            return None
        return cls(type=tokens[0], key=tokens[1])


@dataclass(frozen=True)
class MatchedEvent:
    topic: Topic
    hook: Hook
    body: str


class EventMatcher:
    def __init__(self, registry: HookRegistry) -> None:
        self._registry = registry

    def parse_topic(self, topic: str) -> Topic | None:
        parsed = Topic.parse(topic)
        if parsed is None:
            logger.debug(f"Ignoring message with malformed topic: {topic!r}")
        return parsed

    def match(self, message: BusMessage, topic: Topic | None = None) -> MatchedEvent | None:
        """Hook for ``message``, or ``None`` when no hook is registered for it.

        Missing hooks are expected (a hook may be deleted after the event was
        published) and are not reported as errors.
        Pass ``topic`` when the caller already parsed ``message.topic``.
        """
        if topic is None:
            topic = self.parse_topic(message.topic)
            if topic is None:
                return None

        hook = self._registry.get(topic.type, topic.key)
        if hook is None:
            logger.debug(f"No hook for {topic.type} {topic.key}")
            return None

        try:
            body = wire.decode(message.payload)
        except ValueError as e:
            logger.warning(f"Undecodable payload for {topic.type} {topic.key}: {e}")
            body = ""

        return MatchedEvent(topic=topic, hook=hook, body=body)
