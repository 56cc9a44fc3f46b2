"""Downloads Markdown exports for sources that declare a url."""

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Optional

import httpx
from pydantic import BaseModel

from .config import load_sources, resolve_source_path
from .exceptions import SourceFetchError
from .models import DocumentSource

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 30.0


class UpdateResult(BaseModel):
    """Outcome of refreshing one source."""

    source: DocumentSource
    updated: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def status(self) -> str:
        if self.error is not None:
            return f"error: {self.error}"
        return "updated" if self.updated else "unchanged"

    def __repr__(self) -> str:
        return f"UpdateResult({self.source.name}: {self.status})"


def digest(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def file_digest(path: Path) -> Optional[str]:
    """MD5 of a local file, None when it is missing."""
    if not path.exists():
        return None
    return digest(path.read_bytes())


async def fetch_document(client: httpx.AsyncClient, url: str) -> bytes:
    """Download a document, raising SourceFetchError on any HTTP failure."""
    try:
        response = await client.get(url, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise SourceFetchError(f"HTTP {e.response.status_code}") from e
    except httpx.RequestError as e:
        raise SourceFetchError(str(e)) from e
    return response.content


async def fetch_source(
    client: httpx.AsyncClient,
    source: DocumentSource,
    output_path: Path,
    dry_run: bool = False,
) -> UpdateResult:
    """Refresh the local copy of one export.

    Args:
        client: Shared HTTP client
        source: Source configuration; must declare a url
        output_path: Where the export lives locally
        dry_run: Report what would change without writing

    Returns:
        UpdateResult; fetch and write failures are reported, not raised
    """
    try:
        content = await fetch_document(client, source.url)
    except SourceFetchError as e:
        logger.warning("Could not fetch %s: %s", source.name, e)
        return UpdateResult(source=source, error=str(e))

    changed = file_digest(output_path) != digest(content)
    if changed and not dry_run:
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(content)
        except OSError as e:
            logger.warning("Could not write %s: %s", output_path, e)
            return UpdateResult(source=source, error=str(e))
        logger.info("Updated %s -> %s", source.name, output_path)

    return UpdateResult(source=source, updated=changed)


async def update_docs(
    sources_file: Optional[Path] = None,
    name_filter: Optional[str] = None,
    dry_run: bool = False,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> list[UpdateResult]:
    """Refresh every source that declares a url.

    Args:
        sources_file: sources.yaml to read (default: found from the project root)
        name_filter: Only sources whose name contains this, case-insensitively
        dry_run: Report changes without writing files
        transport: httpx transport override

    Returns:
        One UpdateResult per remote source, in configuration order
    """
    sources = [s for s in load_sources(sources_file) if s.url]
    if name_filter:
        sources = [s for s in sources if name_filter.lower() in s.name.lower()]

    async with httpx.AsyncClient(timeout=FETCH_TIMEOUT, transport=transport) as client:
        return [
            await fetch_source(client, source, resolve_source_path(source.input, sources_file), dry_run)
            for source in sources
        ]


def update_docs_sync(
    sources_file: Optional[Path] = None,
    name_filter: Optional[str] = None,
    dry_run: bool = False,
) -> list[UpdateResult]:
    """Blocking entry point for the CLI."""
    return asyncio.run(update_docs(sources_file, name_filter, dry_run))
