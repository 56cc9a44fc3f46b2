"""In-memory endpoint catalog with idempotent imports and keyword search."""

import logging
import re
import uuid
from collections import defaultdict
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from .config import get_settings, load_sources, resolve_source_path
from .exceptions import ApiDocError
from .models import EndpointRecord
from .parsers import ApidogParser

logger = logging.getLogger(__name__)

UNGROUPED = "Ungrouped"

# Stopwords to exclude from indexing
STOPWORDS = {
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "this", "that", "these", "those", "it",
    "its", "you", "your", "api", "endpoint", "request", "response",
}


class CatalogEntry(BaseModel):
    """Stored endpoint with its catalog identity."""

    id: str
    project: str
    record: EndpointRecord


class FolderNode(BaseModel):
    """Folder tree node; nested folders are written as ``a/b``."""

    name: str
    children: list["FolderNode"] = Field(default_factory=list)
    endpoints: list[EndpointRecord] = Field(default_factory=list)


FolderNode.model_rebuild()


class EndpointCatalog:
    """Endpoint records keyed by id, unique on (project, path, method)."""

    def __init__(self):
        self.entries: dict[str, CatalogEntry] = {}
        self.keys: dict[tuple[str, str, str], str] = {}
        self.inverted_index: dict[str, set[str]] = defaultdict(set)

    def upsert(self, project: str, records: Iterable[EndpointRecord]) -> list[CatalogEntry]:
        """Insert or replace records.

        Re-importing a record with the same project, path and method keeps
        its id and replaces its content.
        """
        stored = []
        for record in records:
            key = (project, record.path, record.method.upper())
            entry_id = self.keys.get(key)
            if entry_id is not None:
                self._unindex(entry_id)
            else:
                entry_id = uuid.uuid4().hex
                self.keys[key] = entry_id

            entry = CatalogEntry(id=entry_id, project=project, record=record)
            self.entries[entry_id] = entry
            for token in self._tokenize(record.searchable_text):
                self.inverted_index[token].add(entry_id)
            stored.append(entry)

        logger.debug("Upserted %d endpoints into project %s", len(stored), project)
        return stored

    def get(self, entry_id: str) -> Optional[CatalogEntry]:
        return self.entries.get(entry_id)

    def find(self, project: str, path: str, method: str) -> Optional[CatalogEntry]:
        """Get a specific endpoint by project, path, and method."""
        entry_id = self.keys.get((project, path, method.upper()))
        return self.entries.get(entry_id) if entry_id else None

    def delete(self, entry_id: str) -> bool:
        entry = self.entries.pop(entry_id, None)
        if entry is None:
            return False
        self._unindex(entry_id)
        self.keys.pop((entry.project, entry.record.path, entry.record.method.upper()), None)
        return True

    def list_endpoints(self, project: str, folder: Optional[str] = None) -> list[EndpointRecord]:
        """Records of a project in import order, optionally for one folder."""
        return [
            entry.record
            for entry in self.entries.values()
            if entry.project == project and (folder is None or entry.record.folder == folder)
        ]

    def projects(self) -> list[str]:
        return sorted({entry.project for entry in self.entries.values()})

    def search(
        self,
        query: str,
        project: Optional[str] = None,
        method_filter: Optional[str] = None,
        limit: int = 10,
    ) -> list[CatalogEntry]:
        """Search for endpoints matching a query.

        Args:
            query: Search query string
            project: Only search this project
            method_filter: Filter by HTTP method
            limit: Maximum number of results

        Returns:
            List of matching entries, sorted by relevance
        """
        tokens = self._tokenize(query)
        if not tokens:
            return []

        scores: dict[str, float] = defaultdict(float)
        for token in tokens:
            for entry_id in self.inverted_index.get(token, ()):
                entry = self.entries[entry_id]
                record = entry.record

                if project and entry.project != project:
                    continue
                if method_filter and record.method.upper() != method_filter.upper():
                    continue

                score = 1.0
                if token in record.path.lower():
                    score += 2.0
                if token in record.summary.lower():
                    score += 1.5
                if token in record.folder.lower():
                    score += 1.0
                scores[entry_id] += score

        ranked = sorted(scores.items(), key=lambda x: -x[1])[:limit]
        return [self.entries[entry_id] for entry_id, _ in ranked]

    def folder_tree(self, project: str) -> FolderNode:
        """Group a project's records into a sorted folder tree."""
        root = FolderNode(name="Root")
        nodes: dict[str, FolderNode] = {}

        for record in self.list_endpoints(project):
            parent = root
            current_path = ""
            for part in (record.folder or UNGROUPED).split("/"):
                current_path = f"{current_path}/{part}" if current_path else part
                if current_path not in nodes:
                    nodes[current_path] = FolderNode(name=part)
                    parent.children.append(nodes[current_path])
                parent = nodes[current_path]
            parent.endpoints.append(record)

        _sort_tree(root)
        return root

    def _unindex(self, entry_id: str) -> None:
        for token in list(self.inverted_index):
            ids = self.inverted_index[token]
            ids.discard(entry_id)
            if not ids:
                del self.inverted_index[token]

    def _tokenize(self, text: str) -> list[str]:
        """Tokenize text for indexing/searching."""
        words = re.findall(r"[a-z0-9]+", text.lower())
        return [w for w in words if len(w) > 2 and w not in STOPWORDS]


def _sort_tree(node: FolderNode) -> None:
    node.children.sort(key=lambda child: child.name)
    node.endpoints.sort(key=lambda record: record.path)
    for child in node.children:
        _sort_tree(child)


def build_catalog(sources_file: Optional[Path] = None) -> EndpointCatalog:
    """Import every configured documentation source into a new catalog."""
    settings = get_settings()
    sources = load_sources(sources_file)
    catalog = EndpointCatalog()

    for source in sources:
        file_path = resolve_source_path(source.input, sources_file)
        if not file_path.exists():
            logger.info("Skipping %s: %s not found", source.name, file_path)
            continue

        try:
            result = ApidogParser.parse_file(file_path, strict_depth=settings.strict_depth)
        except ApiDocError as e:
            logger.warning("Failed to parse %s: %s", source.name, e)
            continue

        for diagnostic in result.diagnostics:
            logger.warning("%s: %s", source.name, diagnostic)
        catalog.upsert(source.name, result.endpoints)

    return catalog
