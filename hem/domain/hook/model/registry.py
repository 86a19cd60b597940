"""Hook registry synced from the hook pool.

The registry keeps one immutable snapshot with two mappings built together:

    hooks[hook_type][key] = Hook
    filters[hook_id] = bus filter

``load()`` builds a fresh snapshot and swaps the reference, so concurrent
readers see either the old or the new pair, never a mix.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from hem.domain.hook.model.hook import Hook, HookType, filter_for
from hem.domain.hook.port.hook_source import HookSource
from hem.domain.shared.error import HookSourceError, InvalidHookError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrySnapshot:
    hooks: Mapping[HookType, Mapping[str, Hook]] = field(
        default_factory=lambda: MappingProxyType({t: MappingProxyType({}) for t in HookType})
    )
    filters: Mapping[int, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def build(cls, hooks: list[Hook]) -> "RegistrySnapshot":
        by_type: dict[HookType, dict[str, Hook]] = {t: {} for t in HookType}
        filters: dict[int, str] = {}

        for hook in hooks:
            previous = by_type[hook.type].get(hook.key)
            if previous is not None:
                # Same key: the later hook wins the lookup, drop the loser's filter
                logger.warning(
                    f"Hook {hook.id} replaces hook {previous.id} for {hook.type.value} {hook.key}"
                )
                filters.pop(previous.id, None)
            by_type[hook.type][hook.key] = hook
            filters[hook.id] = filter_for(hook.type, hook.key)

        return cls(
            hooks=MappingProxyType({t: MappingProxyType(m) for t, m in by_type.items()}),
            filters=MappingProxyType(filters),
        )


class HookRegistry:
    """Current set of hooks, keyed by type and key."""

    def __init__(self, source: HookSource) -> None:
        self._source = source
        self._snapshot = RegistrySnapshot()

    @property
    def snapshot(self) -> RegistrySnapshot:
        return self._snapshot

    def load(self) -> bool:
        """Replace the registry with the current hook pool.

        Returns:
            False if the pool could not be retrieved; the previous hooks are kept.
        """
        logger.info("Loading Hooks...")

        try:
            records = self._source.hooks()
        except HookSourceError as e:
            logger.error(f"Cannot get hook information: {e.message}")
            return False

        hooks = []
        for record in records:
            try:
                hooks.append(Hook.from_record(record))
            except InvalidHookError as e:
                logger.error(f"Error loading hook {record.id}. {e.message}")

        self._snapshot = RegistrySnapshot.build(hooks)

        logger.info(f"Hooks successfully loaded ({len(self._snapshot.filters)} hooks)")
        return True

    @staticmethod
    def filter_for(hook: Hook) -> str:
        return filter_for(hook.type, hook.key)

    def get(self, hook_type: str, key: str) -> Hook | None:
        parsed = HookType.parse(hook_type)
        if parsed is None:
            return None
        return self._snapshot.hooks[parsed].get(key)

    def filters(self) -> list[str]:
        return list(self._snapshot.filters.values())

    def hooks(self) -> list[Hook]:
        snapshot = self._snapshot
        return [hook for by_key in snapshot.hooks.values() for hook in by_key.values()]
