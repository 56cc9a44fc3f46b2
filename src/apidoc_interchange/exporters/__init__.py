"""Exporters for parsed endpoint records."""

from typing import Iterable

from ..models import EndpointRecord
from .markdown import to_flat_markdown
from .merge import (
    MERGE_STRATEGIES,
    KeepFirst,
    LastWriteWins,
    MergeStrategy,
    RejectConflicts,
    get_merge_strategy,
)
from .openapi import dump_structured_spec, to_structured_spec

OUTPUT_FORMATS = ("json", "yaml", "markdown")


def render_document(
    endpoints: Iterable[EndpointRecord],
    title: str,
    fmt: str = "json",
    merge_strategy: str = "last-write-wins",
) -> str:
    """Render records in one of OUTPUT_FORMATS."""
    if fmt == "markdown":
        return to_flat_markdown(endpoints, title)
    if fmt not in OUTPUT_FORMATS:
        raise ValueError(f"Unknown output format '{fmt}'")
    spec = to_structured_spec(endpoints, title, get_merge_strategy(merge_strategy))
    return dump_structured_spec(spec, fmt)


__all__ = [
    "MERGE_STRATEGIES",
    "OUTPUT_FORMATS",
    "KeepFirst",
    "LastWriteWins",
    "MergeStrategy",
    "RejectConflicts",
    "dump_structured_spec",
    "get_merge_strategy",
    "render_document",
    "to_flat_markdown",
    "to_structured_spec",
]
