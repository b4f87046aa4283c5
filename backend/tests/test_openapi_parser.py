"""
Tests for OpenAPI parser.
"""
import json

import pytest

from apispectra.core.exceptions import SpecParseError
from apispectra.models import ParameterLocation
from apispectra.services.openapi_parser import OpenAPIParser


def test_parse_simple_openapi():
    """Test parsing a simple OpenAPI spec."""
    spec = {
        "openapi": "3.0.0",
        "info": {
            "title": "Test API",
            "version": "1.0.0"
        },
        "paths": {
            "/users": {
                "get": {
                    "operationId": "getUsers",
                    "responses": {
                        "200": {
                            "description": "Success"
                        }
                    }
                }
            }
        }
    }

    parser = OpenAPIParser(spec_dict=spec)
    parsed = parser.parse()

    assert parsed is not None
    assert parsed["info"]["title"] == "Test API"

    endpoints = parser.get_endpoints()
    assert len(endpoints) == 1
    assert endpoints[0]["path"] == "/users"
    assert endpoints[0]["method"] == "GET"
    assert endpoints[0]["operation_id"] == "getUsers"


def test_parse_yaml_file(tmp_path, todo_spec):
    """YAML documents are loaded from disk."""
    import yaml

    spec_file = tmp_path / "openapi.yaml"
    spec_file.write_text(yaml.safe_dump(todo_spec, sort_keys=False))

    parser = OpenAPIParser(spec_path=str(spec_file))
    parser.parse()

    assert set(parser.get_schemas()) == {"NewTodo", "Todo"}
    assert [(e["method"], e["path"]) for e in parser.get_endpoints()] == [
        ("GET", "/todos"),
        ("POST", "/todos"),
        ("GET", "/todos/{todoId}"),
        ("DELETE", "/todos/{todoId}"),
    ]


def test_parse_json_file(tmp_path, todo_spec):
    """JSON documents are loaded from disk."""
    spec_file = tmp_path / "openapi.json"
    spec_file.write_text(json.dumps(todo_spec))

    parser = OpenAPIParser(spec_path=str(spec_file))
    assert parser.parse()["info"]["title"] == "Todo API"


def test_missing_file_raises(tmp_path):
    """An unreadable file is a parse error."""
    parser = OpenAPIParser(spec_path=str(tmp_path / "nope.yaml"))
    with pytest.raises(SpecParseError):
        parser.parse()


def test_malformed_yaml_raises(tmp_path):
    """Broken YAML is a parse error."""
    spec_file = tmp_path / "broken.yaml"
    spec_file.write_text("openapi: [3.0.0\n  paths: {")
    with pytest.raises(SpecParseError):
        OpenAPIParser(spec_path=str(spec_file)).parse()


def test_validation_failure_raises():
    """Documents failing validation are rejected when validation is on."""
    spec = {"openapi": "3.0.0", "paths": {}}  # no info block
    with pytest.raises(SpecParseError):
        OpenAPIParser(spec_dict=spec, validate=True).parse()


def test_validation_can_be_disabled():
    """The same document loads with validation off."""
    spec = {"openapi": "3.0.0", "paths": {}}
    parser = OpenAPIParser(spec_dict=spec, validate=False)
    parser.parse()
    assert parser.get_endpoints() == []


def test_no_source_raises():
    """A parser needs a path or a dictionary."""
    with pytest.raises(SpecParseError):
        OpenAPIParser().parse()


def test_endpoints_require_parse():
    """get_endpoints before parse is an error."""
    with pytest.raises(SpecParseError):
        OpenAPIParser(spec_dict={}).get_endpoints()


def test_path_level_parameters_are_merged(todo_spec):
    """Parameters declared on the path item apply to each operation."""
    parser = OpenAPIParser(spec_dict=todo_spec)
    parser.parse()
    get_todo = parser.get_endpoints()[2]

    params = parser.get_parameters(get_todo)
    assert len(params) == 1
    assert params[0].name == "todoId"
    assert params[0].location == ParameterLocation.PATH
    assert params[0].required is True
    assert params[0].type == "integer"


def test_request_body_properties_become_parameters(todo_spec):
    """Object body properties are body parameters with required flags."""
    parser = OpenAPIParser(spec_dict=todo_spec)
    parser.parse()
    create = parser.get_endpoints()[1]

    params = {p.name: p for p in parser.get_parameters(create)}
    assert set(params) == {"title", "completed", "notes"}
    assert all(p.location == ParameterLocation.BODY for p in params.values())
    assert params["title"].required is True
    assert params["title"].min_length == 1
    assert params["title"].max_length == 50
    assert params["completed"].required is False
    assert params["completed"].default is False


def test_response_schema_is_resolved(todo_spec):
    """Response schemas come back without references."""
    parser = OpenAPIParser(spec_dict=todo_spec)
    parser.parse()
    list_todos = parser.get_endpoints()[0]

    schema = parser.get_response_schema(list_todos, 200)
    assert schema["type"] == "array"
    assert schema["items"]["required"] == ["id", "title", "completed"]
    assert parser.get_response_schema(list_todos, 404) is None


def test_response_without_body_has_no_schema(todo_spec):
    """A declared response with no content has no schema."""
    parser = OpenAPIParser(spec_dict=todo_spec)
    parser.parse()
    delete = parser.get_endpoints()[3]

    assert parser.get_response(delete, 204) is not None
    assert parser.get_response_schema(delete, 204) is None


def test_parameter_refs_are_followed():
    """Parameters declared under components are dereferenced."""
    spec = {
        "openapi": "3.0.0",
        "info": {"title": "Ref API", "version": "1.0.0"},
        "paths": {
            "/items": {
                "get": {
                    "parameters": [{"$ref": "#/components/parameters/Page"}],
                    "responses": {"200": {"description": "ok"}},
                }
            }
        },
        "components": {
            "parameters": {
                "Page": {"name": "page", "in": "query", "required": True, "schema": {"type": "integer"}}
            }
        },
    }
    parser = OpenAPIParser(spec_dict=spec)
    parser.parse()

    params = parser.get_parameters(parser.get_endpoints()[0])
    assert [(p.name, p.location, p.required) for p in params] == [("page", ParameterLocation.QUERY, True)]


def test_swagger2_definitions_and_body():
    """Swagger 2.0 definitions and body parameters are supported."""
    spec = {
        "swagger": "2.0",
        "info": {"title": "Pets", "version": "1.0.0"},
        "paths": {
            "/pets": {
                "post": {
                    "parameters": [
                        {"name": "pet", "in": "body", "required": True, "schema": {"$ref": "#/definitions/Pet"}},
                        {"name": "dryRun", "in": "query", "type": "boolean"},
                    ],
                    "responses": {"200": {"description": "ok", "schema": {"$ref": "#/definitions/Pet"}}},
                }
            }
        },
        "definitions": {
            "Pet": {"type": "object", "required": ["name"], "properties": {"name": {"type": "string"}}}
        },
    }
    parser = OpenAPIParser(spec_dict=spec)
    parser.parse()
    endpoint = parser.get_endpoints()[0]

    assert "Pet" in parser.get_schemas()
    params = {p.name: p for p in parser.get_parameters(endpoint)}
    assert params["name"].location == ParameterLocation.BODY
    assert params["dryRun"].type == "boolean"
    assert parser.get_response_schema(endpoint, 200)["required"] == ["name"]


def test_resolve_ref(todo_spec):
    """Local pointers resolve to the raw node."""
    parser = OpenAPIParser(spec_dict=todo_spec)
    parser.parse()

    assert parser.resolve_ref("#/components/schemas/Todo")["type"] == "object"
    assert parser.resolve_ref("#/paths/~1todos/get")["operationId"] == "listTodos"
    with pytest.raises(SpecParseError):
        parser.resolve_ref("#/components/schemas/Missing")
    with pytest.raises(SpecParseError):
        parser.resolve_ref("other.yaml#/Foo")
