"""The shared schema graph node.

Declared types, validation-library schemas and controller-inferred fields all
end up as `SchemaNode` trees, which render to OpenAPI schema objects.
"""

from typing import Any, Literal

from pydantic import BaseModel

REF_PREFIX = "#/components/schemas/"

CONSTRAINT_KEYS = ("minLength", "maxLength", "minimum", "maximum", "pattern", "minItems", "maxItems")

NodeKind = Literal["primitive", "object", "array", "enum", "reference"]


class SchemaNode(BaseModel):
    """One node of the schema graph."""

    kind: NodeKind = "object"
    type: str | None = None  # string / number / integer / boolean / object / array
    format: str | None = None
    description: str | None = None
    properties: dict[str, "SchemaNode"] | None = None
    required: list[str] = []
    items: "SchemaNode | None" = None
    enum: list[Any] | None = None
    nullable: bool = False
    ref: str | None = None
    additional_properties: "bool | SchemaNode | None" = None
    constraints: dict[str, Any] = {}
    default: Any = None
    example: Any = None
    one_of: list["SchemaNode"] | None = None
    any_of: list["SchemaNode"] | None = None
    all_of: list["SchemaNode"] | None = None

    @classmethod
    def primitive(cls, type_: str, format_: str | None = None, **kwargs) -> "SchemaNode":
        return cls(kind="primitive", type=type_, format=format_, **kwargs)

    @classmethod
    def object_schema(cls, properties: dict[str, "SchemaNode"] | None = None, required: list[str] | None = None) -> "SchemaNode":
        return cls(kind="object", type="object", properties=properties, required=required or [])

    @classmethod
    def array(cls, items: "SchemaNode | None" = None) -> "SchemaNode":
        return cls(kind="array", type="array", items=items or cls.untyped())

    @classmethod
    def reference(cls, name: str) -> "SchemaNode":
        return cls(kind="reference", ref=name)

    @classmethod
    def untyped(cls) -> "SchemaNode":
        return cls(kind="object", type="object")

    def copy_node(self) -> "SchemaNode":
        """Independently mutable deep copy."""
        return self.model_copy(deep=True)

    def to_openapi(self) -> dict[str, Any]:
        """Render as an OpenAPI 3.0 schema object."""
        if self.kind == "reference" and self.ref:
            ref = {"$ref": REF_PREFIX + self.ref}
            # siblings of $ref are ignored in 3.0
            return {"allOf": [ref], "nullable": True} if self.nullable else ref

        schema: dict[str, Any] = {}
        if self.type:
            schema["type"] = self.type
        if self.format:
            schema["format"] = self.format
        if self.properties is not None:
            schema["properties"] = {name: node.to_openapi() for name, node in self.properties.items()}
            if self.required:
                schema["required"] = list(self.required)
        if isinstance(self.additional_properties, SchemaNode):
            schema["additionalProperties"] = self.additional_properties.to_openapi()
        elif self.additional_properties is not None:
            schema["additionalProperties"] = self.additional_properties
        if self.items is not None:
            schema["items"] = self.items.to_openapi()
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        schema.update(self.constraints)
        if self.default is not None:
            schema["default"] = self.default
        if self.description:
            schema["description"] = self.description
        if self.example is not None:
            schema["example"] = self.example
        if self.nullable:
            schema["nullable"] = True
        for key, group in (("oneOf", self.one_of), ("anyOf", self.any_of), ("allOf", self.all_of)):
            if group:
                schema[key] = [node.to_openapi() for node in group]
        return schema

    @classmethod
    def from_json_schema(cls, data: dict[str, Any]) -> "SchemaNode":
        """Build a node from an (already normalized) JSON/OpenAPI schema dict."""
        if "$ref" in data:
            return cls(kind="reference", ref=str(data["$ref"]).rsplit("/", 1)[-1], nullable=bool(data.get("nullable")))

        type_ = data.get("type")
        if "enum" in data:
            kind = "enum"
        elif type_ == "array" or "items" in data:
            kind = "array"
        elif type_ == "object" or "properties" in data or type_ is None:
            kind = "object"
        else:
            kind = "primitive"

        node = cls(
            kind=kind,
            type=type_,
            format=data.get("format"),
            description=data.get("description"),
            enum=list(data["enum"]) if "enum" in data else None,
            nullable=bool(data.get("nullable", False)),
            constraints={key: data[key] for key in CONSTRAINT_KEYS if key in data},
            default=data.get("default"),
            example=data.get("example"),
        )
        if "properties" in data:
            node.properties = {name: cls.from_json_schema(value) for name, value in data["properties"].items()}
            node.required = [name for name in data.get("required", []) if name in node.properties]
        if "items" in data and isinstance(data["items"], dict):
            node.items = cls.from_json_schema(data["items"])
        additional = data.get("additionalProperties")
        if isinstance(additional, dict):
            node.additional_properties = cls.from_json_schema(additional)
        elif isinstance(additional, bool):
            node.additional_properties = additional
        for key, attr in (("oneOf", "one_of"), ("anyOf", "any_of"), ("allOf", "all_of")):
            if key in data:
                setattr(node, attr, [cls.from_json_schema(item) for item in data[key]])
        return node


SchemaNode.model_rebuild()


def is_envelope(node: SchemaNode) -> bool:
    """A response wrapper: boolean `success` plus a `data` or `error` payload."""
    properties = node.properties or {}
    success = properties.get("success")
    if success is None or success.type != "boolean":
        return False
    return "data" in properties or "error" in properties
