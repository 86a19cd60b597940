"""Keep the bus subscriptions in sync with the hook registry.

The bus cannot be queried for its subscriptions, so a reload unsubscribes the
whole registry filter set, reloads, and subscribes the new set. Events
published in between are lost, which is acceptable since reloads only follow
hook create/update/delete calls.
"""

import logging

from hem.domain.hook.model.hook import HookType, filter_for
from hem.domain.hook.model.registry import HookRegistry
from hem.domain.hook.port.bus import Subscriber

logger = logging.getLogger(__name__)

# API calls which change the hook pool
UPDATE_CALLS = (
    "one.hook.update",
    "one.hook.allocate",
    "one.hook.delete",
)

STATIC_FILTERS = tuple(filter_for(HookType.API, call) for call in UPDATE_CALLS)


def is_registry_mutating(key: str) -> bool:
    return key in UPDATE_CALLS


class SubscriptionManager:
    """Owns subscribe/unsubscribe calls on the bus subscriber.

    Must only be used from the thread that receives from the subscriber.
    """

    def __init__(self, registry: HookRegistry, subscriber: Subscriber) -> None:
        self._registry = registry
        self._subscriber = subscriber
        self._subscribed: set[str] = set()

    @property
    def subscribed(self) -> frozenset[str]:
        return frozenset(self._subscribed)

    def _subscribe(self, topic_filter: str) -> None:
        self._subscriber.subscribe(topic_filter)
        self._subscribed.add(topic_filter)

    def _unsubscribe(self, topic_filter: str) -> None:
        self._subscriber.unsubscribe(topic_filter)
        self._subscribed.discard(topic_filter)

    def _hook_filters(self) -> list[str]:
        # static filters are never touched by hook subscriptions
        return [f for f in dict.fromkeys(self._registry.filters()) if f not in STATIC_FILTERS]

    def initial_load(self) -> None:
        """Load hooks and subscribe to the static filters and every hook filter."""
        self._registry.load()

        for topic_filter in STATIC_FILTERS:
            self._subscribe(topic_filter)

        for topic_filter in self._hook_filters():
            self._subscribe(topic_filter)

        logger.debug(f"Subscribed to {len(self._subscribed)} filters")

    def reload(self) -> None:
        """Unsubscribe current hook filters, reload hooks, resubscribe."""
        for topic_filter in self._hook_filters():
            self._unsubscribe(topic_filter)

        self._registry.load()

        for topic_filter in self._hook_filters():
            self._subscribe(topic_filter)

        logger.debug(f"Subscribed to {len(self._subscribed)} filters")
