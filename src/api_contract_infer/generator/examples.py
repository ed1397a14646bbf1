"""Example payloads synthesized by walking a schema graph."""

from typing import Any

from api_contract_infer.schema.node import SchemaNode
from api_contract_infer.schema.registry import SchemaRegistry

MAX_DEPTH = 8
MAX_ARRAY_ITEMS = 3

FORMAT_EXAMPLES = {
    "email": "user@example.com",
    "password": "P@ssw0rd123",
    "uuid": "123e4567-e89b-12d3-a456-426614174000",
    "date": "2024-01-01",
    "date-time": "2024-01-01T00:00:00Z",
    "uri": "https://example.com",
    "hostname": "example.com",
    "ipv4": "127.0.0.1",
}


def build_example(node: SchemaNode | None, registry: SchemaRegistry | None = None, depth: int = 0) -> Any:
    """Walk at most MAX_DEPTH levels of `node` and return a representative value.

    References are followed through `registry`; anything deeper than the limit
    (or an unknown reference) yields None.
    """
    if node is None or depth >= MAX_DEPTH:
        return None
    if node.example is not None:
        return node.example
    if node.default is not None:
        return node.default
    if node.enum:
        return node.enum[0]

    if node.kind == "reference":
        target = registry.get(node.ref) if registry is not None and node.ref else None
        return build_example(target, registry, depth + 1)

    if node.all_of:
        merged: dict[str, Any] = {}
        for part in node.all_of:
            value = build_example(part, registry, depth + 1)
            if isinstance(value, dict):
                merged.update(value)
        return merged
    for group in (node.one_of, node.any_of):
        if group:
            return build_example(group[0], registry, depth + 1)

    if node.type == "array" or node.kind == "array":
        count = min(max(node.constraints.get("minItems", 1), 1), MAX_ARRAY_ITEMS)
        return [build_example(node.items, registry, depth + 1) for _ in range(count)]
    if node.type == "string":
        return FORMAT_EXAMPLES.get(node.format or "", "string")
    if node.type in ("number", "integer"):
        return node.constraints.get("minimum", 0)
    if node.type == "boolean":
        return True

    if node.properties:
        return {name: build_example(child, registry, depth + 1) for name, child in node.properties.items()}
    if isinstance(node.additional_properties, SchemaNode):
        return {"key": build_example(node.additional_properties, registry, depth + 1)}
    return {}
