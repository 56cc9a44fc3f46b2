"""Structured (OpenAPI-shaped) document exporter."""

import json
from typing import Any, Iterable, Optional

import yaml

from ..models import EndpointRecord, SchemaNode
from .merge import LastWriteWins, MergeStrategy

OPENAPI_VERSION = "3.0.0"
SPEC_VERSION = "1.0.0"
REF_PREFIX = "#/components/schemas/"


def to_structured_spec(
    endpoints: Iterable[EndpointRecord],
    title: str,
    merge_strategy: Optional[MergeStrategy] = None,
) -> dict[str, Any]:
    """Build an OpenAPI-style document from endpoint records.

    Args:
        endpoints: Records to export, in iteration order
        title: Document title
        merge_strategy: How registries of different endpoints are combined
            (default: last write wins)

    Returns:
        Dict with ``info``, ``paths`` and ``components.schemas``
    """
    strategy = merge_strategy or LastWriteWins()
    paths: dict[str, dict[str, Any]] = {}
    schemas: dict[str, SchemaNode] = {}

    for endpoint in endpoints:
        operations = paths.setdefault(endpoint.path, {})
        operations[endpoint.method.lower()] = _operation(endpoint)

        for name, node in endpoint.registry.schemas.items():
            strategy.merge(schemas, name, node, endpoint)

    return {
        "openapi": OPENAPI_VERSION,
        "info": {"title": title, "version": SPEC_VERSION},
        "paths": paths,
        "components": {
            "schemas": {name: node.to_openapi(REF_PREFIX) for name, node in schemas.items()},
        },
    }


def dump_structured_spec(spec: dict[str, Any], fmt: str = "json") -> str:
    """Serialize a structured spec as JSON or YAML."""
    if fmt == "yaml":
        return yaml.safe_dump(spec, sort_keys=False, allow_unicode=True)
    return json.dumps(spec, indent=2, ensure_ascii=False)


def _operation(endpoint: EndpointRecord) -> dict[str, Any]:
    operation: dict[str, Any] = {
        "summary": endpoint.summary,
        "description": endpoint.description,
        "tags": endpoint.effective_tags,
        "parameters": [
            {
                "name": p.name,
                "in": p.location,
                "required": p.required,
                "description": p.description,
                "schema": {"type": p.schema_type or "string"},
            }
            for p in endpoint.parameters
        ],
    }

    if endpoint.request_body is not None:
        operation["requestBody"] = {"content": _content(endpoint.request_body.content)}

    responses = {}
    for code, response in endpoint.responses.items():
        if response is None:
            continue
        rendered: dict[str, Any] = {"description": response.description}
        if response.content:
            rendered["content"] = _content(response.content)
        responses[code] = rendered
    operation["responses"] = responses

    return operation


def _content(content: dict[str, SchemaNode]) -> dict[str, Any]:
    return {
        media_type: {"schema": node.to_openapi(REF_PREFIX)}
        for media_type, node in content.items()
    }
