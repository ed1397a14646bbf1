"""Contract assembler: merges one route's analyses into an EndpointContract."""

import re
from typing import Any

from pydantic import BaseModel, Field

from api_contract_infer.parser.base import (
    BODY_METHODS,
    ControllerAnalysis,
    FieldDescriptor,
    FieldKind,
    Param,
    RouteDescriptor,
    path_placeholders,
)
from api_contract_infer.parser.middleware import MiddlewareTags
from api_contract_infer.schema.node import SchemaNode
from api_contract_infer.schema.registry import SchemaRegistry

from .defaults import SmartField, generic_default_fields, select_default_fields
from .examples import build_example

SUCCESS_SCHEMA = "ApiResponse"
ERROR_SCHEMA = "ErrorResponse"

DEFAULT_STATUS_CODES = (200, 400, 500)

STATUS_DESCRIPTIONS = {
    201: "Created",
    204: "No content",
    400: "Bad request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not found",
    409: "Conflict",
    500: "Internal server error",
}

SUMMARY_VERBS = {"GET": "Get", "POST": "Create", "PUT": "Update", "PATCH": "Update", "DELETE": "Delete"}

HINT_FORMATS = {"email": "email", "password": "password", "uuid": "uuid", "date": "date"}

_SYNTHETIC_HANDLERS = ("unknown", "bind", "anonymous")
_CAMEL_BOUNDARY = re.compile(r"([A-Z])")


class ResponseContract(BaseModel):
    """One documented response of an endpoint."""

    description: str
    schema_name: str | None = None  # component schema the body refers to


class EndpointContract(BaseModel):
    """Everything documented about one endpoint."""

    route: RouteDescriptor
    summary: str
    description: str
    tags: list[str] = []
    parameters: list[Param] = []
    request_schema: SchemaNode | None = None
    request_source: str | None = None  # validator / declared / controller / defaults / none
    request_example: Any = None
    responses: dict[int, ResponseContract] = Field(default_factory=dict)
    requires_auth: bool = False
    source_file: str = ""

    @property
    def method(self) -> str:
        return self.route.method

    @property
    def path(self) -> str:
        return self.route.normalized_path

    @property
    def operation_id(self) -> str:
        return self.route.operation_id


def humanize(name: str) -> str:
    """`refreshToken` -> `Refresh token`, `reset-password` -> `Reset password`."""
    words = _CAMEL_BOUNDARY.sub(r" \1", name.replace("-", " ").replace("_", " "))
    words = " ".join(words.split()).lower()
    return words[:1].upper() + words[1:]


def summarize(route: RouteDescriptor) -> str:
    """Summary from the handler name, or verb plus the last literal path segment."""
    handler = route.handler_reference.split(".")[-1] if route.handler_reference else None
    if handler and handler not in _SYNTHETIC_HANDLERS:
        return humanize(handler)
    segments = [s for s in route.normalized_path.split("/") if s and not s.startswith("{")]
    subject = humanize(segments[-1]) if segments else "Endpoint"
    verb = SUMMARY_VERBS.get(route.method)
    return f"{verb} {subject.lower()}" if verb else subject


def tag_for(source: str) -> str:
    return source[:1].upper() + source[1:] if source else "API"


def describe_status(code: int) -> str:
    if code in STATUS_DESCRIPTIONS:
        return STATUS_DESCRIPTIONS[code]
    return "Error" if code >= 400 else "Success"


def field_schema(field: FieldDescriptor) -> SchemaNode:
    fmt = HINT_FORMATS.get(field.semantic_hint or "")
    if field.kind == FieldKind.OBJECT:
        node = SchemaNode.untyped()
    else:
        node = SchemaNode.primitive(field.kind.value, fmt)
    node.description = field.label
    return node


def _default_schema(field: SmartField) -> SchemaNode:
    if field.type == "object":
        node = SchemaNode.untyped()
    else:
        node = SchemaNode.primitive(field.type)
    node.description = field.description
    return node


def build_request_schema(
    route: RouteDescriptor,
    analysis: ControllerAnalysis | None,
    bridge_schema: SchemaNode | None,
    registry: SchemaRegistry,
    smart_defaults: bool = True,
) -> tuple[SchemaNode, str]:
    """Request body schema and the source it came from, highest priority first.

    Validator schema, then a declared request type, then controller fields
    topped up with smart defaults. Defaults are never added when the route
    names a validator that could not be resolved.
    """
    if bridge_schema is not None:
        return bridge_schema, "validator"

    if analysis is not None and analysis.request_type:
        declared = registry.copy(analysis.request_type)
        if declared is not None:
            return declared, "declared"

    properties: dict[str, SchemaNode] = {}
    required: list[str] = []
    for field in analysis.input_fields if analysis is not None else []:
        properties[field.name] = field_schema(field)
        if field.required:
            required.append(field.name)
    source = "controller" if properties else "none"

    if smart_defaults and not route.validation_schema_ref:
        defaults = select_default_fields(route)
        if not properties and not defaults:
            defaults = generic_default_fields(route)
        for field in defaults:
            if field.name in properties:
                continue
            properties[field.name] = _default_schema(field)
            if field.required:
                required.append(field.name)
            if source == "none":
                source = "defaults"

    return SchemaNode.object_schema(properties, required), source


def build_responses(
    analysis: ControllerAnalysis | None,
    requires_auth: bool,
    registry: SchemaRegistry,
) -> dict[int, ResponseContract]:
    found = analysis is not None and analysis.found
    codes = set(analysis.status_codes if found else DEFAULT_STATUS_CODES)
    if requires_auth:
        codes.add(401)
    responses = {}
    for code in sorted(codes):
        if code >= 400:
            schema_name = ERROR_SCHEMA
        elif code == 204:
            schema_name = None
        else:
            declared = analysis.response_type_by_status.get(code) if found else None
            schema_name = declared if declared and declared in registry else SUCCESS_SCHEMA
        responses[code] = ResponseContract(description=describe_status(code), schema_name=schema_name)
    return responses


def assemble_endpoint(
    route: RouteDescriptor,
    tags: MiddlewareTags,
    analysis: ControllerAnalysis | None,
    bridge_schema: SchemaNode | None,
    registry: SchemaRegistry,
    smart_defaults: bool = True,
    source_file: str = "",
) -> EndpointContract:
    """Build the contract for one route from its classified middleware and analyses."""
    contract = EndpointContract(
        route=route,
        summary=summarize(route),
        description=f"{route.method} {route.normalized_path}",
        tags=[tag_for(route.source)],
        parameters=[
            Param(name=name, location="path", required=True, param_type="string", description=f"{name} parameter")
            for name in path_placeholders(route.normalized_path)
        ],
        requires_auth=tags.requires_auth,
        responses=build_responses(analysis, tags.requires_auth, registry),
        source_file=source_file,
    )
    if route.method in BODY_METHODS:
        schema, source = build_request_schema(route, analysis, bridge_schema, registry, smart_defaults)
        contract.request_schema = schema
        contract.request_source = source
        contract.request_example = build_example(schema, registry)
    return contract
