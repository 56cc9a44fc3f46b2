"""Configuration for the API documentation interchange tools."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic_settings import BaseSettings

from .models import DocumentSource, SourcesConfig


class Settings(BaseSettings):
    """Application settings."""

    # Path to sources.yaml
    sources_file: Path = Path("sources.yaml")

    # Where fetched and converted documents live
    docs_dir: Path = Path("docs")

    # Title used when a source does not name one
    default_title: str = "API"

    # Fail on schema table rows that skip a nesting level
    strict_depth: bool = False

    # last-write-wins, keep-first or reject-conflicts
    merge_strategy: str = "last-write-wins"

    model_config = {"env_prefix": "APIDOC_"}


@lru_cache
def get_settings() -> Settings:
    """Settings loaded once from the environment."""
    return Settings()


def get_project_root() -> Path:
    """Get the project root directory.

    Walks up from the working directory to the first folder holding the
    sources file or a pyproject.toml.
    """
    marker = get_settings().sources_file.name
    current = Path.cwd().resolve()
    while current != current.parent:
        if (current / marker).exists() or (current / "pyproject.toml").exists():
            return current
        current = current.parent
    return Path.cwd()


def load_sources(sources_file: Optional[Path] = None) -> list[DocumentSource]:
    """Load documentation sources from YAML file."""
    if sources_file is None:
        sources_file = get_settings().sources_file
        if not sources_file.is_absolute():
            sources_file = get_project_root() / sources_file

    if not sources_file.exists():
        raise FileNotFoundError(f"Sources file not found: {sources_file}")

    with open(sources_file, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {"sources": []}

    config = SourcesConfig.model_validate(data)
    return config.sources


def resolve_source_path(path: str, sources_file: Optional[Path] = None) -> Path:
    """Resolve a path from sources.yaml relative to the file that declared it."""
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    base = sources_file.parent if sources_file is not None else get_project_root()
    return base / candidate


def get_docs_dir() -> Path:
    """Get the docs directory path."""
    docs_dir = get_settings().docs_dir
    if docs_dir.is_absolute():
        return docs_dir
    return get_project_root() / docs_dir
