"""Validates a generated OpenAPI document for structural consistency."""

import json
import re
from typing import Any

import yaml

from api_contract_infer.schema.node import REF_PREFIX

_PLACEHOLDER = re.compile(r"\{([^}]+)\}")


def validate_serializable(spec: dict[str, Any]) -> dict[str, str]:
    """Check the document survives JSON and YAML serialization.

    Returns dict of {location: error_message} for failures.
    """
    errors = {}
    try:
        json.dumps(spec)
    except (TypeError, ValueError) as e:
        errors["document"] = f"Not JSON serializable: {e}"
    try:
        yaml.safe_load(yaml.safe_dump(spec))
    except yaml.YAMLError as e:
        errors["document.yaml"] = f"YAMLError: {e}"
    return errors


def validate_path_parameters(spec: dict[str, Any]) -> dict[str, str]:
    """Check every `{name}` in a path is declared as a path parameter, and vice versa."""
    errors = {}
    for path, operations in spec.get("paths", {}).items():
        placeholders = set(_PLACEHOLDER.findall(path))
        for method, operation in operations.items():
            declared = {p["name"] for p in operation.get("parameters", []) if p.get("in") == "path"}
            location = f"{method.upper()} {path}"
            if placeholders - declared:
                errors[location] = f"Undeclared path parameter(s): {', '.join(sorted(placeholders - declared))}"
            elif declared - placeholders:
                errors[location] = f"Path parameter(s) not in path: {', '.join(sorted(declared - placeholders))}"
    return errors


def _refs(value: Any, found: list[str]) -> None:
    if isinstance(value, dict):
        ref = value.get("$ref")
        if isinstance(ref, str):
            found.append(ref)
        for child in value.values():
            _refs(child, found)
    elif isinstance(value, list):
        for child in value:
            _refs(child, found)


def validate_references(spec: dict[str, Any]) -> dict[str, str]:
    """Check every `$ref` points at a schema in `components.schemas`."""
    schemas = spec.get("components", {}).get("schemas", {})
    found: list[str] = []
    _refs(spec, found)
    errors = {}
    for ref in found:
        name = ref[len(REF_PREFIX):] if ref.startswith(REF_PREFIX) else None
        if name is None or name not in schemas:
            errors[ref] = "Dangling schema reference"
    return errors


def validate_operation_ids(spec: dict[str, Any]) -> dict[str, str]:
    """Check operation ids are unique across the document."""
    seen: dict[str, str] = {}
    errors = {}
    for path, operations in spec.get("paths", {}).items():
        for method, operation in operations.items():
            operation_id = operation.get("operationId")
            if not operation_id:
                continue
            location = f"{method.upper()} {path}"
            if operation_id in seen:
                errors[location] = f"Duplicate operationId {operation_id} (also {seen[operation_id]})"
            else:
                seen[operation_id] = location
    return errors


def validate_document(spec: dict[str, Any]) -> dict[str, str]:
    """Run all validations on a generated document.

    Returns dict of {location: error_message} for every problem found.
    """
    errors = {}
    errors.update(validate_serializable(spec))
    errors.update(validate_path_parameters(spec))
    errors.update(validate_references(spec))
    errors.update(validate_operation_ids(spec))
    return errors
