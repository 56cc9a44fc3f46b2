"""Pydantic models for parsed API documentation."""

from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

JSON_MEDIA_TYPE = "application/json"

# Normalized reference strings look like "schemas/<name>"
REFERENCE_PREFIX = "schemas/"


class SchemaNode(BaseModel):
    """One node of a JSON-schema-like tree.

    A node is either a reference to a registry entry or a concrete shape:
    objects carry ``properties``, arrays carry exactly one ``items`` child and
    every other kind is an opaque scalar.
    """

    kind: str = Field(description="object, array, reference or a scalar type name")
    properties: Optional[dict[str, "SchemaNode"]] = None
    items: Optional["SchemaNode"] = None
    required: list[str] = Field(default_factory=list)
    reference: Optional[str] = Field(default=None, description="Target such as 'schemas/user'")
    title: Optional[str] = None
    description: Optional[str] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "SchemaNode":
        if self.kind == "reference":
            if not self.reference:
                raise ValueError("reference node needs a target")
            if self.properties is not None or self.items is not None:
                raise ValueError("reference node cannot carry properties or items")
        elif self.reference is not None:
            raise ValueError(f"{self.kind} node cannot carry a reference")

        if self.kind == "array":
            if self.items is None:
                raise ValueError("array node needs an items child")
            if self.properties is not None:
                raise ValueError("array node cannot carry properties")
        elif self.items is not None:
            raise ValueError(f"{self.kind} node cannot carry items")

        if self.kind == "object":
            if self.properties is None:
                self.properties = {}
        elif self.properties is not None:
            raise ValueError(f"{self.kind} node cannot carry properties")
        return self

    @classmethod
    def obj(cls, **kwargs: Any) -> "SchemaNode":
        """Create an empty object node."""
        return cls(kind="object", properties={}, **kwargs)

    @classmethod
    def ref(cls, name: str) -> "SchemaNode":
        """Create a reference node pointing at registry entry ``name``."""
        return cls(kind="reference", reference=f"{REFERENCE_PREFIX}{name.lower()}")

    @property
    def is_reference(self) -> bool:
        return self.kind == "reference"

    @property
    def ref_name(self) -> Optional[str]:
        """Registry key this node points at, or None for concrete nodes."""
        if self.reference is None:
            return None
        return self.reference.removeprefix(REFERENCE_PREFIX)

    def add_required(self, name: str) -> None:
        if name not in self.required:
            self.required.append(name)

    def to_openapi(self, ref_prefix: str = "#/components/schemas/") -> dict[str, Any]:
        """Render as a JSON-schema dict."""
        if self.is_reference:
            return {"$ref": f"{ref_prefix}{self.ref_name}"}

        result: dict[str, Any] = {"type": self.kind}
        if self.title:
            result["title"] = self.title
        if self.description:
            result["description"] = self.description
        if self.properties is not None:
            result["properties"] = {
                name: child.to_openapi(ref_prefix) for name, child in self.properties.items()
            }
        if self.items is not None:
            result["items"] = self.items.to_openapi(ref_prefix)
        if self.required:
            result["required"] = list(self.required)
        return result


class SchemaRegistry(BaseModel):
    """Reusable named schema trees, keyed by lower-cased name."""

    schemas: dict[str, SchemaNode] = Field(default_factory=dict)

    def register(self, name: str, node: SchemaNode) -> None:
        node.title = name
        self.schemas[name.lower()] = node

    def get(self, name: str) -> Optional[SchemaNode]:
        return self.schemas.get(name.lower())

    def resolve(self, reference: str) -> Optional[SchemaNode]:
        """Look up a reference string.

        Accepts the normalized form (``schemas/user``) as well as the
        ``#/schemas/user`` and ``#/components/schemas/user`` pointers.
        """
        target = reference.removeprefix("#/").removeprefix("components/")
        if not target.startswith(REFERENCE_PREFIX):
            return None
        return self.get(target.removeprefix(REFERENCE_PREFIX))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self.schemas

    def __len__(self) -> int:
        return len(self.schemas)


class ParameterDescriptor(BaseModel):
    """Non-body endpoint parameter."""

    name: str
    location: str = Field(description="path, query, header, or cookie")
    schema_type: str = "string"
    required: bool = False
    description: str = ""


class RequestBodyDescriptor(BaseModel):
    """Request body keyed by media type."""

    content: dict[str, SchemaNode] = Field(default_factory=dict)

    @classmethod
    def for_json(cls, node: SchemaNode) -> "RequestBodyDescriptor":
        return cls(content={JSON_MEDIA_TYPE: node})

    @property
    def schema_node(self) -> Optional[SchemaNode]:
        return self.content.get(JSON_MEDIA_TYPE)


class ResponseDescriptor(BaseModel):
    """A single status-code response."""

    description: str = ""
    content: Optional[dict[str, SchemaNode]] = None

    @property
    def schema_node(self) -> Optional[SchemaNode]:
        if not self.content:
            return None
        return self.content.get(JSON_MEDIA_TYPE)


class EndpointRecord(BaseModel):
    """API endpoint parsed from (or edited for) a documentation document."""

    method: str = Field(description="HTTP method (GET, POST, PUT, DELETE, PATCH)")
    path: str = Field(description="URL path (e.g., '/users/{id}')")
    summary: str = ""
    description: str = ""
    folder: str = Field(default="", description="Grouping label from the top-level heading")
    tags: list[str] = Field(default_factory=list, description="Explicit tags; empty means folder-derived")
    parameters: list[ParameterDescriptor] = Field(default_factory=list)
    request_body: Optional[RequestBodyDescriptor] = None
    responses: dict[str, Optional[ResponseDescriptor]] = Field(default_factory=dict)
    registry: SchemaRegistry = Field(default_factory=SchemaRegistry)
    source_text: str = Field(default="", description="Verbatim section the record came from")

    @property
    def effective_tags(self) -> list[str]:
        """Explicit tags, or the current folder when none were given."""
        if self.tags:
            return list(self.tags)
        return [self.folder] if self.folder else []

    @property
    def key(self) -> str:
        """Unique key for this endpoint within one document."""
        return f"{self.method.upper()} {self.path}"

    @property
    def searchable_text(self) -> str:
        """Combined text for keyword matching."""
        parts = [self.folder, self.path, self.method, self.summary, self.description]
        parts.extend(p.name for p in self.parameters)
        parts.extend(p.description for p in self.parameters)
        return " ".join(parts)


class ParseResult(BaseModel):
    """Output of a single document parse."""

    endpoints: list[EndpointRecord] = Field(default_factory=list)
    registry: SchemaRegistry = Field(default_factory=SchemaRegistry)
    diagnostics: list[str] = Field(default_factory=list)


class DocumentSource(BaseModel):
    """Configuration for a documentation source."""

    name: str
    input: str = Field(description="Local path of the Markdown export, relative to the project root")
    url: Optional[str] = Field(default=None, description="Remote location the export is fetched from")
    output: Optional[str] = None
    format: str = Field(default="openapi", description="openapi or markdown")
    title: Optional[str] = None
    description: str = ""


class SourcesConfig(BaseModel):
    """Configuration file structure for sources.yaml."""

    sources: list[DocumentSource]


SchemaNode.model_rebuild()
