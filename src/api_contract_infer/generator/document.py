"""The run's Document and its OpenAPI 3.0 rendering."""

import copy
import json
from typing import Any

import yaml
from pydantic import BaseModel, Field

from api_contract_infer.schema.node import REF_PREFIX, SchemaNode

from .assembler import EndpointContract

OPENAPI_VERSION = "3.0.0"

BASE_SCHEMAS: dict[str, dict[str, Any]] = {
    "ApiResponse": {
        "type": "object",
        "properties": {
            "success": {"type": "boolean"},
            "data": {"type": "object"},
            "error": {"type": "string"},
        },
    },
    "ErrorResponse": {
        "type": "object",
        "properties": {
            "success": {"type": "boolean", "example": False},
            "error": {"type": "string"},
        },
    },
}

BEARER_SCHEME = {
    "type": "http",
    "scheme": "bearer",
    "bearerFormat": "JWT",
    "description": "Enter JWT token",
}


class Document(BaseModel):
    """Endpoint contracts of one run plus the named schemas they reference."""

    title: str = "API Documentation"
    version: str = "1.0.0"
    description: str = "Auto-generated API documentation"
    servers: list[dict[str, str]] = []
    endpoints: list[EndpointContract] = []
    schemas: dict[str, SchemaNode] = {}
    custom_schemas: dict[str, Any] = {}
    warnings: list[str] = Field(default_factory=list)

    def find(self, method: str, path: str) -> EndpointContract | None:
        for endpoint in self.endpoints:
            if endpoint.method == method.upper() and endpoint.path == path:
                return endpoint
        return None

    def component_schemas(self) -> dict[str, Any]:
        components: dict[str, Any] = {name: copy.deepcopy(schema) for name, schema in BASE_SCHEMAS.items()}
        for name, schema in self.schemas.items():
            components[name] = schema.to_openapi()
        components.update(self.custom_schemas)
        return components

    def to_openapi(self) -> dict[str, Any]:
        """Render as an OpenAPI 3.0 document dict."""
        paths: dict[str, dict[str, Any]] = {}
        for endpoint in self.endpoints:
            paths.setdefault(endpoint.path, {})[endpoint.method.lower()] = _operation(endpoint)
        return {
            "openapi": OPENAPI_VERSION,
            "info": {"title": self.title, "version": self.version, "description": self.description},
            "servers": [dict(server) for server in self.servers],
            "paths": paths,
            "components": {
                "schemas": self.component_schemas(),
                "securitySchemes": {"bearerAuth": dict(BEARER_SCHEME)},
            },
            "security": [{"bearerAuth": []}],
        }

    def endpoint_summaries(self) -> list[dict[str, Any]]:
        """Flat per-endpoint records, as exported next to the document in script output."""
        return [
            {
                "method": endpoint.method,
                "path": endpoint.path,
                "summary": endpoint.summary,
                "operationId": endpoint.operation_id,
                "tags": list(endpoint.tags),
                "noAuth": not endpoint.requires_auth,
            }
            for endpoint in self.endpoints
        ]

    def to_json(self) -> str:
        return json.dumps(self.to_openapi(), indent=2, ensure_ascii=False)

    def to_yaml(self) -> str:
        return yaml.dump(self.to_openapi(), allow_unicode=True, default_flow_style=False, sort_keys=False)

    def to_module(self, typescript: bool = True) -> str:
        """A JS/TS module exporting `swaggerSpec` and `endpoints`."""
        spec = json.dumps(self.to_openapi(), indent=2, ensure_ascii=False)
        endpoints = json.dumps(self.endpoint_summaries(), indent=2, ensure_ascii=False)
        if typescript:
            return (
                "// Auto-generated API documentation. Do not edit by hand.\n\n"
                f"export const swaggerSpec = {spec};\n\n"
                f"export const endpoints = {endpoints};\n\n"
                "export default swaggerSpec;\n"
            )
        return (
            "// Auto-generated API documentation. Do not edit by hand.\n\n"
            f"const swaggerSpec = {spec};\n\n"
            f"const endpoints = {endpoints};\n\n"
            "module.exports = { swaggerSpec, endpoints };\n"
        )


def _json_content(schema: dict[str, Any], example: Any = None) -> dict[str, Any]:
    media: dict[str, Any] = {"schema": schema}
    if example is not None:
        media["example"] = example
    return {"application/json": media}


def _operation(endpoint: EndpointContract) -> dict[str, Any]:
    operation: dict[str, Any] = {
        "summary": endpoint.summary,
        "description": endpoint.description,
        "operationId": endpoint.operation_id,
        "tags": list(endpoint.tags),
    }
    if endpoint.parameters:
        operation["parameters"] = [
            {
                "name": param.name,
                "in": param.location,
                "required": param.required,
                "schema": {"type": param.param_type},
                "description": param.description,
            }
            for param in endpoint.parameters
        ]
    if endpoint.request_schema is not None:
        operation["requestBody"] = {
            "required": True,
            "content": _json_content(endpoint.request_schema.to_openapi(), endpoint.request_example),
        }
    responses: dict[str, Any] = {}
    for code, response in endpoint.responses.items():
        entry: dict[str, Any] = {"description": response.description}
        if response.schema_name:
            entry["content"] = _json_content({"$ref": REF_PREFIX + response.schema_name})
        responses[str(code)] = entry
    operation["responses"] = responses
    if not endpoint.requires_auth:
        operation["security"] = []
    return operation
