"""Flat Markdown documentation exporter.

Tables use the same headers the Apidog parser recognizes, so parameter and
response summaries survive a re-import.
"""

from http import HTTPStatus
from typing import Iterable

from ..models import EndpointRecord, SchemaNode

UNGROUPED = "Ungrouped"


def to_flat_markdown(endpoints: Iterable[EndpointRecord], title: str) -> str:
    """Render endpoints grouped by folder as Markdown."""
    grouped: dict[str, list[EndpointRecord]] = {}
    for endpoint in endpoints:
        grouped.setdefault(endpoint.folder or UNGROUPED, []).append(endpoint)

    lines = [f"# {title} API Documentation", ""]
    for folder, folder_endpoints in grouped.items():
        lines.extend([f"# {folder}", ""])
        for endpoint in folder_endpoints:
            lines.extend(_render_endpoint(endpoint))

    return "\n".join(lines)


def _render_endpoint(endpoint: EndpointRecord) -> list[str]:
    heading = f"## {endpoint.method.upper()} {endpoint.path}"
    if endpoint.summary and endpoint.summary != endpoint.path:
        heading = f"{heading} {_cell(endpoint.summary)}"
    lines = [heading]
    # The line right under the heading is read back as the description
    if endpoint.description:
        lines.append(_cell(endpoint.description))
    lines.append("")

    if endpoint.parameters:
        lines.extend([
            "### Params",
            "",
            "|Name|Location|Type|Required|Description|",
            "|---|---|---|---|---|",
        ])
        for p in endpoint.parameters:
            required = "Yes" if p.required else "No"
            lines.append(
                f"|{p.name}|{p.location}|{p.schema_type or 'string'}|{required}|{_cell(p.description)}|"
            )
        lines.append("")

    body = endpoint.request_body.schema_node if endpoint.request_body else None
    if body is not None:
        lines.extend(["### Request Body (application/json)", ""])
        if body.kind == "object" and body.properties:
            lines.extend(["|Name|Type|Required|Description|", "|---|---|---|---|"])
            for name, prop in body.properties.items():
                required = "Yes" if name in body.required else "No"
                lines.append(
                    f"|{name}|{_type_label(prop, endpoint)}|{required}|{_cell(prop.description)}|"
                )
        else:
            lines.append(f"Type: `{_type_label(body, endpoint)}`")
        lines.append("")

    if endpoint.responses:
        lines.extend([
            "### Responses",
            "",
            "|HTTP Status Code|Meaning|Description|Data schema|",
            "|---|---|---|---|",
        ])
        for code, response in endpoint.responses.items():
            if response is None:
                continue
            label = _schema_label(response.schema_node, endpoint)
            description = _cell(response.description)
            lines.append(f"|{code}|{_meaning(code)}|{description}|{label}|")
        lines.append("")

    return lines


def _reference_label(node: SchemaNode, endpoint: EndpointRecord) -> str:
    """``#schema<Title>`` using the registry's original-case name when known."""
    target = endpoint.registry.get(node.ref_name)
    name = target.title if target is not None and target.title else node.ref_name
    return f"#schema{name}"


def _type_label(node: SchemaNode, endpoint: EndpointRecord) -> str:
    if node.is_reference:
        return _reference_label(node, endpoint)
    if node.kind == "array" and node.items is not None:
        return f"array[{_type_label(node.items, endpoint)}]"
    return node.kind


def _schema_label(node, endpoint: EndpointRecord) -> str:
    if node is None:
        return "none"
    if node.is_reference:
        return _reference_label(node, endpoint)
    return "inline"


def _meaning(code: str) -> str:
    try:
        return HTTPStatus(int(code)).phrase
    except ValueError:
        return ""


def _cell(text) -> str:
    return " ".join((text or "").split()).replace("|", "\\|")
