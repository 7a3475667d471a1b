"""Pytest configuration and fixtures for schemagraph tests."""

import pytest

from schemagraph.config import DiagramSettings


@pytest.fixture
def person_schema() -> dict:
    """Object with two scalar properties, one required."""
    return {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "age": {"type": "number"},
        },
        "required": ["name"],
    }


@pytest.fixture
def wide_schema() -> dict:
    """Object with eight scalar properties p0..p7."""
    return {
        "type": "object",
        "properties": {f"p{i}": {"type": "string"} for i in range(8)},
    }


@pytest.fixture
def nested_schema() -> dict:
    """root -> address (object) -> city / geo (object) -> lat."""
    return {
        "type": "object",
        "title": "Customer",
        "properties": {
            "address": {
                "type": "object",
                "properties": {
                    "city": {"type": "string"},
                    "geo": {
                        "type": "object",
                        "properties": {"lat": {"type": "number"}},
                    },
                },
            },
            "tags": {"type": "array", "items": {"type": "string"}},
        },
    }


@pytest.fixture
def users_api() -> dict:
    """OpenAPI document with one route and two methods."""
    return {
        "openapi": "3.0.0",
        "info": {"title": "Users API", "version": "1.0"},
        "paths": {
            "/users": {
                "get": {
                    "summary": "List users",
                    "responses": {"200": {"description": "OK"}},
                },
                "post": {
                    "summary": "Create user",
                    "requestBody": {
                        "content": {
                            "application/json": {"schema": {"$ref": "#/components/schemas/User"}}
                        }
                    },
                    "responses": {"201": {"description": "Created"}},
                },
            }
        },
        "components": {
            "schemas": {
                "User": {
                    "type": "object",
                    "properties": {"id": {"type": "integer"}, "name": {"type": "string"}},
                },
                "Order": {
                    "type": "object",
                    "properties": {"owner": {"$ref": "#/components/schemas/User"}},
                },
            }
        },
    }


@pytest.fixture
def settings() -> DiagramSettings:
    """Defaults, independent of SCHEMAGRAPH_* variables in the environment."""
    return DiagramSettings()
