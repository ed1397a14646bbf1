"""Data models produced by the source parsers.

The route extractor and the controller inferencer convert raw source text
into these models for the schema and assembly stages.
"""

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")
BODY_METHODS = ("POST", "PUT", "PATCH")

_EXPRESS_PARAM = re.compile(r":([A-Za-z_$][\w$]*)\??")
_CANONICAL_PARAM = re.compile(r"\{([A-Za-z_$][\w$]*)\}")


def canonical_path(path: str) -> str:
    """Rewrite `:name` segments to `{name}`. Already-canonical paths are unchanged."""
    return _EXPRESS_PARAM.sub(lambda m: "{" + m.group(1) + "}", path)


def express_path(path: str) -> str:
    """Inverse of `canonical_path`: rewrite `{name}` back to `:name`."""
    return _CANONICAL_PARAM.sub(lambda m: ":" + m.group(1), path)


def path_placeholders(path: str) -> list[str]:
    return _CANONICAL_PARAM.findall(path)


def join_paths(base: str, path: str) -> str:
    """Join a mount prefix and a route path without doubling or trailing slashes."""
    joined = "/" + "/".join(part for part in (base + "/" + path).split("/") if part)
    return joined


class Param(BaseModel):
    """A single operation parameter (query, path, header, or cookie)."""

    name: str
    location: str  # query / path / header / cookie
    required: bool
    param_type: str  # string / integer / boolean / array / object
    description: str = ""


class RouteDescriptor(BaseModel):
    """One endpoint registration discovered in a routing file."""

    model_config = ConfigDict(frozen=True)

    method: str  # GET / POST / PUT / PATCH / DELETE
    raw_path: str  # /users/:id, as written
    normalized_path: str  # /api/v1/users/{id}, mount prefix included
    middleware_names: tuple[str, ...] = ()
    validation_schema_ref: str | None = None
    handler_reference: str | None = None  # authController.login
    operation_id: str
    source: str = ""  # logical routing module, e.g. "auth"

    @property
    def handler_object(self) -> str | None:
        """Object part of a dotted handler reference (`authController`)."""
        if not self.handler_reference or "." not in self.handler_reference:
            return None
        parts = self.handler_reference.split(".")
        if parts[0] == "this" and len(parts) > 2:
            return parts[1]
        return parts[0]

    @property
    def is_anonymous(self) -> bool:
        return self.handler_reference is None


class FieldKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"


class FieldDescriptor(BaseModel):
    """A request-body field inferred from a handler implementation."""

    name: str
    kind: FieldKind = FieldKind.STRING
    semantic_hint: str | None = None  # email / password / uuid / date
    required: bool = True

    @property
    def label(self) -> str:
        """Human readable kind, e.g. `string (email)`."""
        if self.semantic_hint:
            return f"{self.kind.value} ({self.semantic_hint})"
        return self.kind.value


class ControllerAnalysis(BaseModel):
    """What a single handler body reveals about its endpoint."""

    method_name: str
    found: bool = True
    input_fields: list[FieldDescriptor] = Field(default_factory=list)
    observed_status_codes: set[int] = Field(default_factory=set)
    response_type_by_status: dict[int, str] = Field(default_factory=dict)
    request_type: str | None = None

    @property
    def status_codes(self) -> list[int]:
        """Observed codes in ascending order, `[200]` when none was emitted."""
        return sorted(self.observed_status_codes) or [200]
