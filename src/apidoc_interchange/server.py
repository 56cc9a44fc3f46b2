"""MCP server exposing imported API documentation."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import yaml
from mcp.server.fastmcp import Context, FastMCP
from pydantic import ValidationError

from .catalog import EndpointCatalog, FolderNode, build_catalog
from .config import get_settings
from .exporters import render_document
from .models import EndpointRecord
from .parsers import parse_document

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(server: FastMCP):
    """Import the configured sources at startup."""
    try:
        catalog = build_catalog()
    except FileNotFoundError as e:
        logger.warning("%s; starting with an empty catalog", e)
        catalog = EndpointCatalog()
    except (yaml.YAMLError, ValidationError) as e:
        logger.error("Invalid sources file, starting with an empty catalog: %s", e)
        catalog = EndpointCatalog()
    logger.info(
        "Imported %d endpoints from %d projects",
        len(catalog.entries),
        len(catalog.projects()),
    )
    yield {"catalog": catalog}


mcp = FastMCP(
    "API Documentation Interchange",
    lifespan=lifespan,
)


def get_catalog(ctx: Context) -> EndpointCatalog:
    """Get the endpoint catalog from context."""
    return ctx.request_context.lifespan_context["catalog"]


@mcp.tool()
async def list_projects(ctx: Context) -> list[dict]:
    """List imported documentation projects with their endpoint counts."""
    catalog = get_catalog(ctx)
    return [
        {"name": project, "endpoint_count": len(catalog.list_endpoints(project))}
        for project in catalog.projects()
    ]


@mcp.tool()
async def list_folders(ctx: Context, project: str) -> dict:
    """Get the folder tree of a project.

    Args:
        project: Project (source) name

    Returns nested folders with the method and path of each endpoint.
    """
    return _folder_to_dict(get_catalog(ctx).folder_tree(project))


@mcp.tool()
async def search_endpoints(
    ctx: Context,
    query: str,
    project: Optional[str] = None,
    method_filter: Optional[str] = None,
    limit: int = 10,
) -> list[dict]:
    """Search for API endpoints by keyword.

    Args:
        query: Search query (e.g., "create user", "upload file")
        project: Only search this project
        method_filter: Filter by HTTP method (GET, POST, PUT, DELETE, PATCH)
        limit: Maximum number of results (default: 10)
    """
    entries = get_catalog(ctx).search(query, project, method_filter, limit)
    return [
        {"id": entry.id, "project": entry.project, **_endpoint_to_dict(entry.record, brief=True)}
        for entry in entries
    ]


@mcp.tool()
async def get_endpoint_details(
    ctx: Context,
    project: str,
    path: str,
    method: str,
) -> Optional[dict]:
    """Get full details for a specific API endpoint.

    Args:
        project: Project (source) name
        path: URL path (e.g., "/users/{id}")
        method: HTTP method (GET, POST, PUT, DELETE, PATCH)

    Returns parameters, request body and responses, with schema references
    resolved against the project's schema registry.
    """
    entry = get_catalog(ctx).find(project, path, method)
    if entry is None:
        return None
    return _endpoint_to_dict(entry.record, brief=False)


@mcp.tool()
async def import_document(ctx: Context, project: str, markdown: str) -> dict:
    """Import an Apidog Markdown export into a project.

    Re-importing the same document updates endpoints in place.

    Args:
        project: Project (source) name
        markdown: Raw Markdown export
    """
    result = parse_document(markdown, strict_depth=get_settings().strict_depth)
    entries = get_catalog(ctx).upsert(project, result.endpoints)
    return {
        "imported": len(entries),
        "schemas": len(result.registry),
        "diagnostics": result.diagnostics,
    }


@mcp.tool()
async def export_openapi(ctx: Context, project: str, title: Optional[str] = None) -> str:
    """Export a project as an OpenAPI JSON document."""
    settings = get_settings()
    endpoints = get_catalog(ctx).list_endpoints(project)
    return render_document(endpoints, title or project, "json", settings.merge_strategy)


@mcp.tool()
async def export_markdown(ctx: Context, project: str, title: Optional[str] = None) -> str:
    """Export a project as flat Markdown documentation."""
    endpoints = get_catalog(ctx).list_endpoints(project)
    return render_document(endpoints, title or project, "markdown")


@mcp.tool()
async def get_request_example(
    ctx: Context,
    project: str,
    path: str,
    method: str,
) -> Optional[str]:
    """Generate a curl example for an API endpoint."""
    entry = get_catalog(ctx).find(project, path, method)
    if entry is None:
        return None
    return _generate_curl_example(entry.record)


def _endpoint_to_dict(endpoint: EndpointRecord, brief: bool = False) -> dict:
    """Convert endpoint to dictionary representation."""
    result: dict = {
        "folder": endpoint.folder,
        "method": endpoint.method,
        "path": endpoint.path,
        "summary": endpoint.summary,
    }

    if not brief:
        registry = endpoint.registry
        body = endpoint.request_body.schema_node if endpoint.request_body else None
        result["description"] = endpoint.description
        result["parameters"] = [p.model_dump() for p in endpoint.parameters]
        result["request_body"] = _resolved(body, registry)
        result["responses"] = {
            code: {
                "description": response.description,
                "schema": _resolved(response.schema_node, registry),
            }
            for code, response in endpoint.responses.items()
            if response is not None
        }

    return result


def _resolved(node, registry) -> Optional[dict]:
    """Render a schema, inlining a top-level registry reference."""
    if node is None:
        return None
    if node.is_reference:
        target = registry.resolve(node.reference)
        if target is not None:
            return target.to_openapi()
    return node.to_openapi()


def _generate_curl_example(endpoint: EndpointRecord) -> str:
    """Generate a curl command example for an endpoint."""
    parts = ["curl"]

    if endpoint.method.upper() != "GET":
        parts.append(f"-X {endpoint.method.upper()}")

    parts.append(f'"$API_BASE_URL{endpoint.path}"')
    parts.append('-H "Authorization: Bearer $API_TOKEN"')

    for param in endpoint.parameters:
        if param.location == "header" and param.required:
            parts.append(f'-H "{param.name}: <{param.name}>"')

    if endpoint.request_body is not None:
        parts.append('-H "Content-Type: application/json"')
        body = endpoint.request_body.schema_node
        if body is not None and body.properties:
            fields = ", ".join(f'"{name}": ""' for name in body.properties)
            parts.append(f"-d '{{{fields}}}'")

    return " \\\n  ".join(parts)


def _folder_to_dict(node: FolderNode) -> dict:
    return {
        "name": node.name,
        "children": [_folder_to_dict(child) for child in node.children],
        "endpoints": [f"{e.method} {e.path}" for e in node.endpoints],
    }


def run_server():
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    run_server()
