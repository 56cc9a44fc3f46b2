"""Tests for the MCP server tools."""

import asyncio
import json
from pathlib import Path
from types import SimpleNamespace

import pytest

from apidoc_interchange import server
from apidoc_interchange.catalog import EndpointCatalog, build_catalog
from apidoc_interchange.parsers import ApidogParser
from apidoc_interchange.server import (
    _endpoint_to_dict,
    _generate_curl_example,
    export_markdown,
    export_openapi,
    get_endpoint_details,
    import_document,
    list_folders,
    list_projects,
    search_endpoints,
)

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def petstore():
    return ApidogParser.parse_file(FIXTURES / "petstore.md")


@pytest.fixture
def ctx(petstore):
    catalog = EndpointCatalog()
    catalog.upsert("petstore", petstore.endpoints)
    return SimpleNamespace(request_context=SimpleNamespace(lifespan_context={"catalog": catalog}))


def _endpoint(result, method, path):
    return next(e for e in result.endpoints if e.method == method and e.path == path)


class TestHelpers:
    """Tests for endpoint rendering helpers."""

    def test_curl_for_get(self, petstore):
        curl = _generate_curl_example(_endpoint(petstore, "GET", "/pets/{id}"))
        assert curl.startswith('curl \\\n  "$API_BASE_URL/pets/{id}"')
        assert "-X" not in curl
        assert "Content-Type" not in curl

    def test_curl_for_post(self, petstore):
        curl = _generate_curl_example(_endpoint(petstore, "POST", "/pets"))
        assert "-X POST" in curl
        assert '-H "X-Request-Id: <X-Request-Id>"' in curl
        assert '-H "Content-Type: application/json"' in curl

    def test_curl_body_fields(self, petstore):
        curl = _generate_curl_example(_endpoint(petstore, "PUT", "/pets/{id}"))
        assert '"name": ""' in curl
        assert '"vaccinated": ""' in curl

    def test_endpoint_to_dict_brief(self, petstore):
        data = _endpoint_to_dict(_endpoint(petstore, "GET", "/pets/{id}"), brief=True)
        assert data == {
            "folder": "Pets",
            "method": "GET",
            "path": "/pets/{id}",
            "summary": "/pets/{id}",
        }

    def test_endpoint_to_dict_resolves_references(self, petstore):
        """Top-level registry references are inlined."""
        data = _endpoint_to_dict(_endpoint(petstore, "POST", "/pets"))
        assert data["request_body"]["title"] == "Pet"
        assert data["request_body"]["properties"]["owner"] == {"$ref": "#/components/schemas/owner"}
        assert data["parameters"][0]["name"] == "X-Request-Id"
        assert data["responses"]["201"]["schema"]["required"] == ["code", "data"]

    def test_endpoint_to_dict_without_content(self, petstore):
        data = _endpoint_to_dict(_endpoint(petstore, "GET", "/pets/{id}"))
        assert data["request_body"] is None
        assert data["responses"]["404"] == {"description": "Missing", "schema": None}


class TestTools:
    """Tests for the tool functions against an in-memory catalog."""

    def test_list_projects(self, ctx):
        projects = asyncio.run(list_projects(ctx))
        assert projects == [{"name": "petstore", "endpoint_count": 3}]

    def test_list_folders(self, ctx):
        tree = asyncio.run(list_folders(ctx, "petstore"))
        assert tree["children"][0]["name"] == "Pets"
        assert "POST /pets" in tree["children"][0]["endpoints"]

    def test_search_endpoints(self, ctx):
        results = asyncio.run(search_endpoints(ctx, "create pet"))
        assert results[0]["path"] == "/pets"
        assert results[0]["project"] == "petstore"

    def test_get_endpoint_details(self, ctx):
        details = asyncio.run(get_endpoint_details(ctx, "petstore", "/pets/{id}", "put"))
        assert details["summary"] == "Update pet"
        assert asyncio.run(get_endpoint_details(ctx, "petstore", "/nope", "GET")) is None

    def test_import_document_is_idempotent(self, ctx):
        markdown = (FIXTURES / "petstore.md").read_text(encoding="utf-8")

        first = asyncio.run(import_document(ctx, "copy", markdown))
        second = asyncio.run(import_document(ctx, "copy", markdown))

        assert first == {"imported": 3, "schemas": 2, "diagnostics": []}
        assert second["imported"] == 3
        assert len(ctx.request_context.lifespan_context["catalog"].entries) == 6

    def test_exports(self, ctx):
        spec = json.loads(asyncio.run(export_openapi(ctx, "petstore", "Pet Store")))
        assert spec["info"]["title"] == "Pet Store"
        assert set(spec["components"]["schemas"]) == {"pet", "owner"}

        markdown = asyncio.run(export_markdown(ctx, "petstore"))
        assert markdown.startswith("# petstore API Documentation")


class TestLifespan:
    """Tests for catalog loading at server startup."""

    @staticmethod
    def _start() -> EndpointCatalog:
        async def run():
            async with server.lifespan(server.mcp) as state:
                return state["catalog"]

        return asyncio.run(run())

    def test_malformed_sources_start_empty(self, tmp_path, monkeypatch):
        """An unreadable sources.yaml leaves the server running with no endpoints."""
        sources_file = tmp_path / "sources.yaml"
        sources_file.write_text("sources: [name: {unclosed\n", encoding="utf-8")
        monkeypatch.setattr(server, "build_catalog", lambda: build_catalog(sources_file))

        catalog = self._start()
        assert catalog.entries == {}

    def test_invalid_sources_start_empty(self, tmp_path, monkeypatch):
        """Entries missing required fields are reported, not raised."""
        sources_file = tmp_path / "sources.yaml"
        sources_file.write_text("sources:\n  - title: No name or input\n", encoding="utf-8")
        monkeypatch.setattr(server, "build_catalog", lambda: build_catalog(sources_file))

        catalog = self._start()
        assert catalog.projects() == []
