"""
Shared fixtures.
"""
import copy

import pytest

from apispectra.models import AssertionResult, ExecutionResult, HttpResponse
from apispectra.services.pipeline import get_run_store


TODO_SPEC = {
    "openapi": "3.0.0",
    "info": {"title": "Todo API", "version": "1.0.0"},
    "paths": {
        "/todos": {
            "get": {
                "operationId": "listTodos",
                "summary": "List todos",
                "parameters": [
                    {"name": "limit", "in": "query", "schema": {"type": "integer", "minimum": 1, "maximum": 100}},
                ],
                "responses": {
                    "200": {
                        "description": "Todos",
                        "content": {
                            "application/json": {
                                "schema": {"type": "array", "items": {"$ref": "#/components/schemas/Todo"}}
                            }
                        },
                    }
                },
            },
            "post": {
                "operationId": "createTodo",
                "summary": "Create todo",
                "requestBody": {
                    "required": True,
                    "content": {
                        "application/json": {"schema": {"$ref": "#/components/schemas/NewTodo"}}
                    },
                },
                "responses": {
                    "200": {
                        "description": "Created",
                        "content": {
                            "application/json": {"schema": {"$ref": "#/components/schemas/Todo"}}
                        },
                    },
                    "400": {"description": "Bad request"},
                },
            },
        },
        "/todos/{todoId}": {
            "parameters": [
                {"name": "todoId", "in": "path", "required": True, "schema": {"type": "integer"}},
            ],
            "get": {
                "operationId": "getTodo",
                "responses": {
                    "200": {
                        "description": "Todo",
                        "content": {
                            "application/json": {"schema": {"$ref": "#/components/schemas/Todo"}}
                        },
                    },
                    "404": {"description": "Not found"},
                },
            },
            "delete": {
                "operationId": "deleteTodo",
                "responses": {"204": {"description": "Deleted"}},
            },
        },
    },
    "components": {
        "schemas": {
            "NewTodo": {
                "type": "object",
                "required": ["title"],
                "properties": {
                    "title": {"type": "string", "minLength": 1, "maxLength": 50},
                    "completed": {"type": "boolean", "default": False},
                    "notes": {"type": "string"},
                },
            },
            "Todo": {
                "type": "object",
                "required": ["id", "title", "completed"],
                "properties": {
                    "id": {"type": "integer"},
                    "title": {"type": "string"},
                    "completed": {"type": "boolean"},
                },
            },
        }
    },
}


@pytest.fixture
def todo_spec():
    """A small, valid OpenAPI 3 document."""
    return copy.deepcopy(TODO_SPEC)


@pytest.fixture
def make_result():
    """Factory for execution results."""
    def _make(test_id, success=True, status=200, body=None, duration=10.0, assertions=None, error=None):
        if assertions is None:
            assertions = [
                AssertionResult(
                    name="Status code validation",
                    success=success,
                    error=None if success else f"Expected status 200, got {status}",
                )
            ]
        return ExecutionResult(
            id=test_id,
            success=success,
            duration=duration,
            response=HttpResponse(status=status, body=body),
            assertions=assertions,
            error=error,
            endpoint="/todos",
            method="GET",
        )
    return _make


@pytest.fixture(autouse=True)
def clear_run_store():
    """Keep published runs from leaking between tests."""
    get_run_store().clear()
    yield
    get_run_store().clear()
