"""Strategies for merging per-endpoint schema registries into one export."""

from typing import Protocol

from ..exceptions import SchemaMergeConflict
from ..models import EndpointRecord, SchemaNode


class MergeStrategy(Protocol):
    """Decides what lands in the exported schema map for a given name."""

    def merge(
        self,
        target: dict[str, SchemaNode],
        name: str,
        node: SchemaNode,
        origin: EndpointRecord,
    ) -> None:
        ...


class LastWriteWins:
    """The endpoint merged last overwrites earlier definitions."""

    def merge(self, target, name, node, origin) -> None:
        target[name] = node


class KeepFirst:
    """The first definition seen for a name is kept."""

    def merge(self, target, name, node, origin) -> None:
        target.setdefault(name, node)


class RejectConflicts:
    """Raise SchemaMergeConflict when a name is redefined with a different shape."""

    def merge(self, target, name, node, origin) -> None:
        existing = target.get(name)
        if existing is not None and existing is not node:
            if existing.to_openapi() != node.to_openapi():
                raise SchemaMergeConflict(name, origin.key)
        target[name] = node


MERGE_STRATEGIES: dict[str, type] = {
    "last-write-wins": LastWriteWins,
    "keep-first": KeepFirst,
    "reject-conflicts": RejectConflicts,
}


def get_merge_strategy(name: str) -> MergeStrategy:
    """Instantiate a merge strategy by its configuration name."""
    try:
        return MERGE_STRATEGIES[name]()
    except KeyError:
        choices = ", ".join(MERGE_STRATEGIES)
        raise ValueError(f"Unknown merge strategy '{name}' (expected one of: {choices})") from None
