"""Exceptions raised by the interchange engine."""


class ApiDocError(Exception):
    """Base class for errors raised by apidoc_interchange."""


class SchemaTableError(ApiDocError):
    """A schema table row jumps more than one nesting level (strict mode only)."""

    def __init__(self, row_name: str, depth: int, previous_depth: int):
        self.row_name = row_name
        self.depth = depth
        self.previous_depth = previous_depth
        super().__init__(
            f"Row '{row_name}' at depth {depth} skips a level "
            f"(previous row was at depth {previous_depth})"
        )


class SchemaMergeConflict(ApiDocError):
    """Two endpoints carry different schemas under the same registry name."""

    def __init__(self, name: str, origin: str):
        self.name = name
        self.origin = origin
        super().__init__(f"Conflicting definitions for schema '{name}' (from {origin})")


class SourceFetchError(ApiDocError):
    """A remote documentation source could not be downloaded."""
