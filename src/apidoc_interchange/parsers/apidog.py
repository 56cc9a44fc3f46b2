"""Apidog Markdown export parser."""

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional

from ..models import (
    JSON_MEDIA_TYPE,
    EndpointRecord,
    ParameterDescriptor,
    ParseResult,
    RequestBodyDescriptor,
    ResponseDescriptor,
    SchemaNode,
    SchemaRegistry,
)
from .tables import (
    RequiredPolicy,
    SchemaTableReconstructor,
    scalar_node,
    schema_ref,
    split_row,
)

logger = logging.getLogger(__name__)

AUTHENTICATION_FOLDER = "Authentication"
NONE_SENTINEL = "none"
INLINE_SENTINEL = "inline"


class ApidogParser:
    """Parser for Markdown documents exported by Apidog."""

    # Folder: # Name
    FOLDER_PATTERN = re.compile(r"^# ", re.MULTILINE)

    # Endpoint: ## METHOD /path [summary]
    ENDPOINT_PATTERN = re.compile(r"^## ", re.MULTILINE)

    # Schema anchor: <h2 id="tocS_User">User</h2>
    SCHEMA_ANCHOR_PATTERN = re.compile(r'<h2 id="tocS_([^"]+)">')

    # Per-response tables spell the last column "description"
    SCHEMA_HEADER_PATTERN = re.compile(
        r"\|Name\|Type\|Required\|Restrictions\|Title\|Description\|",
        re.IGNORECASE,
    )

    PARAMS_PATTERN = re.compile(
        r"### Params[\s\S]*?\|Name\|Location\|Type\|Required\|Description\|"
        r"[\s\S]*?\|---\|---\|---\|---\|---\|([\s\S]*?)(?=\n\n|\n#|$)"
    )

    RESPONSES_PATTERN = re.compile(
        r"### Responses[\s\S]*?\|HTTP Status Code\s*\|Meaning\|Description\|Data schema\|"
        r"[\s\S]*?\|---\|---\|---\|---\|([\s\S]*?)(?=\n\n|\n#|$)"
    )

    RESPONSE_SCHEMA_SECTION = "### Responses Data Schema"

    # HTTP Status Code **200** followed by its own schema table
    STATUS_SCHEMA_PATTERN = re.compile(
        r"HTTP Status Code \*\*(\d+)\*\*((?:(?!HTTP Status Code)[\s\S])*?)"
        r"(\|Name\|Type\|Required\|Restrictions\|Title\|Description\|[\s\S]*?)(?=\n\n|\n#|$)",
        re.IGNORECASE,
    )

    BODY_EXAMPLE_PATTERN = re.compile(r"> Body Parameters[\s\S]*?```json\s+([\s\S]*?)```")

    def __init__(self, strict_depth: bool = False):
        """Initialize parser.

        Args:
            strict_depth: Fail on schema table rows that skip a nesting level
        """
        self.strict_depth = strict_depth

    def parse(self, content: str) -> ParseResult:
        """Parse an Apidog Markdown export.

        Args:
            content: Markdown document content

        Returns:
            ParseResult with endpoints, the schema registry and diagnostics
        """
        reconstructor = SchemaTableReconstructor(strict_depth=self.strict_depth)
        registry = self._parse_registry(content, reconstructor)

        endpoints = []
        # Text before the first folder heading is front matter
        for folder_section in self.FOLDER_PATTERN.split(content)[1:]:
            folder = folder_section.split("\n", 1)[0].strip()
            if not folder or folder == AUTHENTICATION_FOLDER:
                continue
            endpoints.extend(self._parse_folder(folder, folder_section, registry, reconstructor))

        logger.debug("Parsed %d endpoints and %d schemas", len(endpoints), len(registry))
        return ParseResult(
            endpoints=endpoints,
            registry=registry,
            diagnostics=list(reconstructor.diagnostics),
        )

    def _parse_registry(
        self,
        content: str,
        reconstructor: SchemaTableReconstructor,
    ) -> SchemaRegistry:
        """Build the registry from the schema anchors."""
        registry = SchemaRegistry()
        sections = self.SCHEMA_ANCHOR_PATTERN.split(content)

        for i in range(1, len(sections), 2):
            name = sections[i]
            body = sections[i + 1] if i + 1 < len(sections) else ""

            match = self.SCHEMA_HEADER_PATTERN.search(body)
            if not match:
                continue

            # Skip header and separator
            lines = _table_lines(body[match.start():])[2:]
            registry.register(name, reconstructor.reconstruct_lines(lines))

        return registry

    def _parse_folder(
        self,
        folder: str,
        content: str,
        registry: SchemaRegistry,
        reconstructor: SchemaTableReconstructor,
    ) -> list[EndpointRecord]:
        """Parse all endpoint sections of a folder."""
        endpoints = []

        for section in self.ENDPOINT_PATTERN.split(content)[1:]:
            lines = section.split("\n")
            tokens = lines[0].split()
            if len(tokens) < 2:
                continue

            method = tokens[0].upper()
            path = tokens[1]
            body = section.strip()

            parameters, request_body = self._parse_params(body)
            if request_body is None:
                request_body = self._parse_body_example(body)

            responses = self._parse_responses(body)
            self._apply_response_schemas(body, responses, reconstructor)

            endpoints.append(
                EndpointRecord(
                    method=method,
                    path=path,
                    summary=" ".join(tokens[2:]) or path,
                    description=self._extract_description(lines),
                    folder=folder,
                    parameters=parameters,
                    request_body=request_body,
                    responses=responses,
                    registry=registry,
                    source_text=section,
                )
            )

        return endpoints

    def _parse_params(
        self,
        content: str,
    ) -> tuple[list[ParameterDescriptor], Optional[RequestBodyDescriptor]]:
        """Extract parameters; a ``body`` row seeds the request body instead."""
        parameters: list[ParameterDescriptor] = []
        request_body = None

        match = self.PARAMS_PATTERN.search(content)
        if not match:
            return parameters, request_body

        for row in _body_rows(match.group(1)):
            parts = split_row(row, 5)
            if len(parts) < 4:
                continue

            name, location, type_str, required = parts[:4]
            location = location.lower()

            if location == "body":
                ref_name = schema_ref(type_str)
                node = SchemaNode.ref(ref_name) if ref_name else scalar_node(type_str.lower())
                request_body = RequestBodyDescriptor.for_json(node)
                continue

            description = parts[4] if len(parts) > 4 else ""
            parameters.append(
                ParameterDescriptor(
                    name=name,
                    location=location,
                    schema_type=type_str.lower(),
                    required=RequiredPolicy.PARAM_REQUIRED.is_required(required),
                    description="" if description == NONE_SENTINEL else description,
                )
            )

        return parameters, request_body

    def _parse_body_example(self, content: str) -> Optional[RequestBodyDescriptor]:
        """Infer a flat object body from the example JSON block."""
        match = self.BODY_EXAMPLE_PATTERN.search(content)
        if not match:
            return None

        try:
            example = json.loads(match.group(1))
        except json.JSONDecodeError as e:
            logger.warning("Ignoring malformed body example: %s", e)
            return None

        if not isinstance(example, dict):
            return None

        node = SchemaNode.obj()
        for key, value in example.items():
            node.properties[key] = _example_node(value)
        return RequestBodyDescriptor.for_json(node)

    def _parse_responses(self, content: str) -> dict[str, Optional[ResponseDescriptor]]:
        """Extract the summary responses table."""
        responses: dict[str, Optional[ResponseDescriptor]] = {}

        match = self.RESPONSES_PATTERN.search(content)
        if not match:
            return responses

        for row in _body_rows(match.group(1)):
            parts = split_row(row, 4)
            if len(parts) < 3:
                continue

            code = parts[0]
            description = "" if parts[2] == NONE_SENTINEL else parts[2]
            label = parts[3] if len(parts) > 3 else ""

            node = None
            ref_name = schema_ref(label)
            if label.lower() == INLINE_SENTINEL:
                node = SchemaNode.obj()
            elif ref_name:
                node = SchemaNode.ref(ref_name)

            responses[code] = ResponseDescriptor(
                description=description,
                content={JSON_MEDIA_TYPE: node} if node is not None else None,
            )

        return responses

    def _apply_response_schemas(
        self,
        content: str,
        responses: dict[str, Optional[ResponseDescriptor]],
        reconstructor: SchemaTableReconstructor,
    ) -> None:
        """Overwrite response content with the full per-status schema tables."""
        start = content.find(self.RESPONSE_SCHEMA_SECTION)
        if start == -1:
            return

        for match in self.STATUS_SCHEMA_PATTERN.finditer(content, start):
            code = match.group(1)
            lines = _table_lines(match.group(3))[2:]
            schema = reconstructor.reconstruct_lines(lines)

            response = responses.get(code)
            if response is None:
                response = responses[code] = ResponseDescriptor()
            response.content = {JSON_MEDIA_TYPE: schema}

    def _extract_description(self, lines: list[str]) -> str:
        """Second line of the section, unless it is a quote or heading."""
        if len(lines) < 2:
            return ""
        line = lines[1].strip()
        if line.startswith(">") or line.startswith("#"):
            return ""
        return line

    @classmethod
    def parse_file(cls, file_path: Path, strict_depth: bool = False) -> ParseResult:
        """Parse an Apidog Markdown export file.

        Args:
            file_path: Path to the .md file
            strict_depth: Fail on schema table rows that skip a nesting level

        Returns:
            ParseResult for the document
        """
        content = file_path.read_text(encoding="utf-8")
        parser = cls(strict_depth=strict_depth)
        return parser.parse(content)


def parse_document(document: str, strict_depth: bool = False) -> ParseResult:
    """Parse a raw Apidog Markdown document."""
    return ApidogParser(strict_depth=strict_depth).parse(document)


def _table_lines(text: str) -> list[str]:
    """Leading run of pipe-table lines in ``text``."""
    lines = []
    for line in text.split("\n"):
        line = line.strip()
        if not line.startswith("|"):
            break
        lines.append(line)
    return lines


def _body_rows(block: str) -> list[str]:
    return [line.strip() for line in block.strip().split("\n") if line.strip()]


def _example_node(value: Any) -> SchemaNode:
    """Schema node for an example value; never nested."""
    if isinstance(value, bool):
        return SchemaNode(kind="boolean")
    if isinstance(value, int):
        return SchemaNode(kind="integer")
    if isinstance(value, float):
        return SchemaNode(kind="number")
    if isinstance(value, str):
        return SchemaNode(kind="string")
    if isinstance(value, list):
        return SchemaNode(kind="array", items=SchemaNode.obj())
    return SchemaNode.obj()
