"""Pipe-table tokenizing and nested schema reconstruction.

Schema tables in the export flatten an object tree into rows; the nesting
level of a row is the number of depth markers (``»``) in its name column::

    |Name|Type|Required|Restrictions|Title|Description|
    |---|---|---|---|---|---|
    |id|string|true|none||User id|
    |» profile|object|false|none||Nested|
    |»» name|string|false|none||Name|

A row's parent is the most recent row at a strictly lower depth.
"""

import logging
import re
from enum import Enum
from typing import NamedTuple, Optional

from ..exceptions import SchemaTableError
from ..models import SchemaNode

logger = logging.getLogger(__name__)

DEPTH_MARKER = "»"
ADDITIONAL_PROPERTIES = "additionalProperties"
SCHEMA_COLUMNS = 6

# "#schemaUser" anywhere in a type column
SCHEMA_REF_PATTERN = re.compile(r"#schema(\w+)")

_NAME_NOISE = re.compile(rf"[{DEPTH_MARKER}\s*]")
_BRACKETS = re.compile(r"[\[\]]")
_SCHEMA_LINK = re.compile(r"\[[^\[\]]*\]\((#schema\w+)\)")
_CELL_SEPARATOR = re.compile(r"(?<!\\)\|")


class TableRow(NamedTuple):
    """One row of a six-column schema table."""

    name: str
    type: str
    required: str = ""
    restrictions: str = ""
    title: str = ""
    description: str = ""

    @property
    def depth(self) -> int:
        return self.name.count(DEPTH_MARKER)

    @property
    def clean_name(self) -> str:
        return _NAME_NOISE.sub("", self.name)


class RequiredPolicy(Enum):
    """How a table's ``Required`` column is read.

    Schema tables only accept the literal ``true``; parameter tables also
    accept anything containing ``yes``.
    """

    SCHEMA_REQUIRED = "schema"
    PARAM_REQUIRED = "param"

    def is_required(self, value: Optional[str]) -> bool:
        token = (value or "").strip().lower()
        if self is RequiredPolicy.SCHEMA_REQUIRED:
            return token == "true"
        return "yes" in token or "true" in token


def split_row(line: str, columns: int) -> list[str]:
    """Split a pipe-delimited line into at most ``columns`` trimmed cells.

    The empty cell before the leading pipe is dropped, as is anything past
    the requested column count. Escaped pipes (``\\|``) stay inside their cell.
    """
    cells = _CELL_SEPARATOR.split(line)[1:columns + 1]
    return [cell.replace("\\|", "|").strip() for cell in cells]


def schema_ref(type_str: str) -> Optional[str]:
    """Return the schema name referenced by a type column, if any."""
    match = SCHEMA_REF_PATTERN.search(type_str or "")
    return match.group(1) if match else None


def table_rows(lines: list[str]) -> list[TableRow]:
    """Tokenize schema table body lines, skipping rows with under two cells."""
    rows = []
    for line in lines:
        parts = split_row(line.strip(), SCHEMA_COLUMNS)
        if len(parts) < 2:
            continue
        rows.append(TableRow(*parts))
    return rows


class _Frame(NamedTuple):
    depth: int
    # None while skipping the rows that expand a referenced schema
    node: Optional[SchemaNode]


class SchemaTableReconstructor:
    """Rebuild a nested SchemaNode tree from pre-ordered table rows."""

    def __init__(self, strict_depth: bool = False):
        """Initialize the reconstructor.

        Args:
            strict_depth: Raise SchemaTableError when a row skips a nesting
                level instead of recording a diagnostic.
        """
        self.strict_depth = strict_depth
        self.diagnostics: list[str] = []

    def reconstruct_lines(self, lines: list[str]) -> SchemaNode:
        """Reconstruct from raw table body lines (header already skipped)."""
        return self.reconstruct(table_rows(lines))

    def reconstruct(self, rows: list[TableRow]) -> SchemaNode:
        """Reconstruct a schema tree.

        Args:
            rows: Table rows in pre-order (parents before their children)

        Returns:
            Root object node holding the top-level rows as properties
        """
        root = SchemaNode.obj()
        stack = [_Frame(-1, root)]
        previous_depth: Optional[int] = None

        for row in rows:
            name = row.clean_name
            if not name or name == ADDITIONAL_PROPERTIES:
                continue

            depth = row.depth
            if previous_depth is not None and depth > previous_depth + 1:
                self._depth_gap(name, depth, previous_depth)
            previous_depth = depth

            while len(stack) > 1 and stack[-1].depth >= depth:
                stack.pop()

            if stack[-1].node is None:
                continue

            parent = self._container(stack[-1].node)
            node = self._build_node(row)
            parent.properties[name] = node
            if RequiredPolicy.SCHEMA_REQUIRED.is_required(row.required):
                parent.add_required(name)

            if node.is_reference or (node.kind == "array" and node.items.is_reference):
                stack.append(_Frame(depth, None))
            elif node.kind in ("object", "array"):
                stack.append(_Frame(depth, node))

        return root

    def _depth_gap(self, name: str, depth: int, previous_depth: int) -> None:
        if self.strict_depth:
            raise SchemaTableError(name, depth, previous_depth)
        message = f"row '{name}' jumps from depth {previous_depth} to {depth}"
        logger.warning("Schema table %s", message)
        self.diagnostics.append(message)

    @staticmethod
    def _container(node: SchemaNode) -> SchemaNode:
        """Node whose properties receive children of ``node``."""
        if node.kind != "array":
            return node
        if node.items is None or node.items.kind != "object":
            # Children reveal the items are objects
            node.items = SchemaNode.obj()
        return node.items

    @staticmethod
    def _build_node(row: TableRow) -> SchemaNode:
        # "[User](#schemauser)" is a link to the schema, not an array
        type_str = _SCHEMA_LINK.sub(r"\1", row.type)
        shape = SCHEMA_REF_PATTERN.sub("", type_str)
        is_array = "[" in shape or "array" in shape.lower()
        base_type = _BRACKETS.sub("", type_str).strip().lower()

        ref_name = schema_ref(type_str)
        if ref_name:
            ref = SchemaNode.ref(ref_name)
            node = SchemaNode(kind="array", items=ref) if is_array else ref
        elif is_array:
            node = SchemaNode(kind="array", items=scalar_node(re.sub(r"^array\s*", "", base_type)))
        elif base_type == "object":
            node = SchemaNode.obj()
        else:
            node = scalar_node(base_type)

        if row.description and row.description != "none":
            node.description = row.description
        return node


def scalar_node(kind: str) -> SchemaNode:
    """Node for a bare type name; container names fall back to an empty object."""
    if kind in ("", "object", "array", "reference"):
        return SchemaNode.obj()
    return SchemaNode(kind=kind)
