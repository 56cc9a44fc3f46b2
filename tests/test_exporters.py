"""Tests for the structured spec and flat Markdown exporters."""

import json
from pathlib import Path

import pytest
import yaml

from apidoc_interchange.exceptions import SchemaMergeConflict
from apidoc_interchange.exporters import (
    KeepFirst,
    RejectConflicts,
    get_merge_strategy,
    render_document,
    to_flat_markdown,
    to_structured_spec,
)
from apidoc_interchange.models import (
    EndpointRecord,
    ParameterDescriptor,
    ResponseDescriptor,
    SchemaNode,
    SchemaRegistry,
)
from apidoc_interchange.parsers import ApidogParser, parse_document

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def petstore():
    return ApidogParser.parse_file(FIXTURES / "petstore.md")


def _record(path: str, registry: SchemaRegistry, method: str = "GET") -> EndpointRecord:
    return EndpointRecord(method=method, path=path, folder="Users", registry=registry)


def _user_registry(*fields: str) -> SchemaRegistry:
    node = SchemaNode.obj()
    for field in fields:
        node.properties[field] = SchemaNode(kind="string")
    registry = SchemaRegistry()
    registry.register("User", node)
    return registry


class TestStructuredSpec:
    """Tests for to_structured_spec."""

    def test_every_endpoint_has_an_operation(self, petstore):
        spec = to_structured_spec(petstore.endpoints, "Pet Store")

        assert spec["openapi"] == "3.0.0"
        assert spec["info"] == {"title": "Pet Store", "version": "1.0.0"}
        assert set(spec["paths"]) == {"/pets/{id}", "/pets"}
        assert set(spec["paths"]["/pets/{id}"]) == {"get", "put"}
        assert set(spec["paths"]["/pets"]) == {"post"}

    def test_components_from_registry(self, petstore):
        spec = to_structured_spec(petstore.endpoints, "Pet Store")
        schemas = spec["components"]["schemas"]

        assert set(schemas) == {"pet", "owner"}
        assert schemas["pet"]["title"] == "Pet"
        assert schemas["pet"]["required"] == ["id", "name"]
        assert schemas["pet"]["properties"]["owner"] == {"$ref": "#/components/schemas/owner"}

    def test_operation_shape(self, petstore):
        spec = to_structured_spec(petstore.endpoints, "Pet Store")
        get_pet = spec["paths"]["/pets/{id}"]["get"]

        assert get_pet["tags"] == ["Pets"]
        assert get_pet["parameters"][0] == {
            "name": "id",
            "in": "path",
            "required": True,
            "description": "Pet id",
            "schema": {"type": "string"},
        }
        assert "requestBody" not in get_pet
        ok = get_pet["responses"]["200"]
        assert ok["content"]["application/json"]["schema"] == {"$ref": "#/components/schemas/pet"}
        assert get_pet["responses"]["404"] == {"description": "Missing"}

        post_pets = spec["paths"]["/pets"]["post"]
        body_schema = post_pets["requestBody"]["content"]["application/json"]["schema"]
        assert body_schema == {"$ref": "#/components/schemas/pet"}

    def test_incomplete_responses_skipped(self):
        """Records with empty response entries still export."""
        record = EndpointRecord(
            method="GET",
            path="/x",
            responses={"200": ResponseDescriptor(description="OK"), "500": None},
        )
        spec = to_structured_spec([record], "X")
        assert spec["paths"]["/x"]["get"]["responses"] == {"200": {"description": "OK"}}

    def test_tags_follow_edited_folder(self):
        """Folder-derived tags are computed when exporting, not when parsing."""
        endpoint = parse_document("# Users\n\n## GET /users\n").endpoints[0]
        endpoint.folder = "Accounts"

        spec = to_structured_spec([endpoint], "Users")
        assert spec["paths"]["/users"]["get"]["tags"] == ["Accounts"]
        assert "# Accounts" in to_flat_markdown([endpoint], "Users")

    def test_same_path_methods_grouped(self):
        registry = SchemaRegistry()
        spec = to_structured_spec(
            [_record("/users", registry), _record("/users", registry, "POST")],
            "Users",
        )
        assert set(spec["paths"]["/users"]) == {"get", "post"}


class TestMergeStrategies:
    """Tests for combining per-endpoint registries."""

    def test_last_write_wins(self):
        first = _record("/a", _user_registry("id"))
        second = _record("/b", _user_registry("id", "email"))
        schemas = to_structured_spec([first, second], "Users")["components"]["schemas"]
        assert set(schemas["user"]["properties"]) == {"id", "email"}

    def test_keep_first(self):
        first = _record("/a", _user_registry("id"))
        second = _record("/b", _user_registry("id", "email"))
        spec = to_structured_spec([first, second], "Users", KeepFirst())
        assert set(spec["components"]["schemas"]["user"]["properties"]) == {"id"}

    def test_reject_conflicts(self):
        first = _record("/a", _user_registry("id"))
        second = _record("/b", _user_registry("id", "email"))
        with pytest.raises(SchemaMergeConflict) as exc_info:
            to_structured_spec([first, second], "Users", RejectConflicts())
        assert exc_info.value.name == "user"
        assert exc_info.value.origin == "GET /b"

    def test_reject_conflicts_allows_identical(self, petstore):
        """Endpoints sharing one registry never conflict."""
        spec = to_structured_spec(petstore.endpoints, "Pet Store", RejectConflicts())
        assert set(spec["components"]["schemas"]) == {"pet", "owner"}

        same_shape = [_record("/a", _user_registry("id")), _record("/b", _user_registry("id"))]
        to_structured_spec(same_shape, "Users", RejectConflicts())

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown merge strategy"):
            get_merge_strategy("namespace")


class TestRenderDocument:
    """Tests for render_document."""

    def test_json(self, petstore):
        document = json.loads(render_document(petstore.endpoints, "Pet Store"))
        assert document["info"]["title"] == "Pet Store"

    def test_yaml(self, petstore):
        document = yaml.safe_load(render_document(petstore.endpoints, "Pet Store", "yaml"))
        assert set(document["paths"]) == {"/pets/{id}", "/pets"}
        assert list(document) == ["openapi", "info", "paths", "components"]

    def test_unknown_format(self, petstore):
        with pytest.raises(ValueError, match="Unknown output format"):
            render_document(petstore.endpoints, "Pet Store", "xml")


class TestFlatMarkdown:
    """Tests for to_flat_markdown."""

    def test_grouping_and_tables(self, petstore):
        text = to_flat_markdown(petstore.endpoints, "Pet Store")

        assert text.startswith("# Pet Store API Documentation")
        assert "# Pets" in text
        assert "## GET /pets/{id}\nFetch a single pet" in text
        assert "## POST /pets Create pet" in text
        assert "|id|path|string|Yes|Pet id|" in text
        assert "|200|OK||#schemaPet|" in text
        assert "|404|Not Found|Missing|none|" in text
        assert "|201|Created||inline|" in text

    def test_request_bodies(self, petstore):
        text = to_flat_markdown(petstore.endpoints, "Pet Store")

        # Reference bodies collapse to a type label
        assert "Type: `#schemaPet`" in text
        # Object bodies list their properties
        assert "|Name|Type|Required|Description|" in text
        assert "|age|integer|No||" in text
        assert "|tags|array[object]|No||" in text

    def test_ungrouped_folder(self):
        record = EndpointRecord(method="GET", path="/ping")
        text = to_flat_markdown([record], "Misc")
        assert "# Ungrouped" in text

    def test_pipes_in_cells_escaped(self):
        """Descriptions containing pipes keep the table columns intact."""
        endpoint = EndpointRecord(
            method="GET",
            path="/search",
            folder="Search",
            parameters=[ParameterDescriptor(name="q", location="query", description="a | b")],
            responses={"200": ResponseDescriptor(description="hits | misses")},
        )
        text = to_flat_markdown([endpoint], "Search")
        assert r"|q|query|string|No|a \| b|" in text

        parsed = parse_document(text).endpoints[0]
        assert parsed.parameters[0].description == "a | b"
        assert parsed.parameters[0].required is False
        assert parsed.responses["200"].description == "hits | misses"
        assert parsed.responses["200"].content is None

    def test_output_parses_back(self, petstore):
        """Endpoints, parameters and response labels survive a re-import."""
        text = to_flat_markdown(petstore.endpoints, "Pet Store")
        result = parse_document(text)

        assert [e.key for e in result.endpoints] == [e.key for e in petstore.endpoints]
        get_pet = result.endpoints[0]
        assert get_pet.description == "Fetch a single pet"
        assert [p.name for p in get_pet.parameters] == ["id", "verbose"]
        assert get_pet.parameters[0].required is True
        assert get_pet.responses["200"].schema_node.reference == "schemas/pet"
        assert get_pet.responses["404"].content is None
        assert result.endpoints[1].summary == "Create pet"
