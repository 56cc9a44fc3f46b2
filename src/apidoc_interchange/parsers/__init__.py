"""Parsers for API documentation formats."""

from .apidog import ApidogParser, parse_document
from .tables import RequiredPolicy, SchemaTableReconstructor, TableRow

__all__ = [
    "ApidogParser",
    "RequiredPolicy",
    "SchemaTableReconstructor",
    "TableRow",
    "parse_document",
]
