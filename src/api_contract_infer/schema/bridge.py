"""Validation-schema bridge.

Resolves a route's validator reference (`authSchemas.register`) to a schema
node. The validator module is located from the route file's imports and a
list of conventional directories, the member is looked up statically and,
when enabled, through the runtime loader. Both paths produce joi-to-json
style JSON schema, which `clean_json_schema` normalises for OpenAPI 3.0.

Resolution never raises: every failure is logged, reported through the
`warn` callback and turned into None.
"""

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from api_contract_infer.errors import ContractInferenceError, SourceNotFoundError, UnresolvableReferenceError
from api_contract_infer.parser.imports import SOURCE_SUFFIXES, resolve_specifier

from .joi import JoiModule
from .node import CONSTRAINT_KEYS, SchemaNode
from .runtime import RuntimeLoaderGate

logger = logging.getLogger(__name__)

SCHEMA_SUFFIXES = ("Schemas", "Schema", "Validators", "Validator")

PASSTHROUGH_KEYS = ("format", *CONSTRAINT_KEYS, "default", "description", "example")


def clean_json_schema(schema: Any) -> Any:
    """Normalise a JSON schema to OpenAPI 3.0.

    `type: [X, "null"]` becomes `type: X, nullable: true`; several non-null
    types plus null become `oneOf`; `null` inside `enum` becomes `nullable`.
    Bounds, formats and annotations pass through; nested schemas are
    normalised recursively.
    """
    if not isinstance(schema, dict):
        return schema

    cleaned: dict[str, Any] = {}
    type_ = schema.get("type")
    if isinstance(type_, list):
        non_null = [t for t in type_ if t != "null"]
        if "null" in type_ and len(non_null) == 1:
            cleaned["type"] = non_null[0]
            cleaned["nullable"] = True
        elif "null" in type_ and len(non_null) > 1:
            cleaned["oneOf"] = [{"type": t} for t in non_null] + [{"type": "null"}]
        else:
            cleaned["type"] = non_null[0] if len(non_null) == 1 else type_
    elif type_ is not None:
        cleaned["type"] = type_

    if "$ref" in schema:
        cleaned["$ref"] = schema["$ref"]
    if isinstance(schema.get("properties"), dict):
        cleaned["properties"] = {key: clean_json_schema(value) for key, value in schema["properties"].items()}
    if isinstance(schema.get("required"), list):
        cleaned["required"] = list(schema["required"])
    if "items" in schema:
        cleaned["items"] = clean_json_schema(schema["items"])
    if "additionalProperties" in schema:
        cleaned["additionalProperties"] = clean_json_schema(schema["additionalProperties"])

    for key in PASSTHROUGH_KEYS:
        if key in schema:
            cleaned[key] = schema[key]

    if isinstance(schema.get("enum"), list):
        if None in schema["enum"]:
            cleaned["enum"] = [value for value in schema["enum"] if value is not None]
            cleaned["nullable"] = True
        else:
            cleaned["enum"] = list(schema["enum"])

    if "nullable" in schema:
        cleaned["nullable"] = schema["nullable"]

    for key in ("oneOf", "anyOf", "allOf"):
        if isinstance(schema.get(key), list):
            cleaned[key] = [clean_json_schema(item) for item in schema[key]]
    return cleaned


def split_reference(reference: str) -> tuple[str | None, str]:
    """`authSchemas.register` -> (`authSchemas`, `register`); a bare name has no group."""
    parts = [part for part in reference.strip().split(".") if part]
    if len(parts) < 2:
        return None, reference.strip()
    return parts[0], parts[-1]


def strip_group_suffix(group: str) -> str:
    for suffix in SCHEMA_SUFFIXES:
        if group.endswith(suffix) and len(group) > len(suffix):
            return group[: -len(suffix)]
    return group


def _module_files(directory: Path, stem: str) -> list[Path]:
    return [directory / f"{stem}{suffix}" for suffix in SOURCE_SUFFIXES]


def candidate_modules(
    reference: str,
    validators_dir: Path | None,
    project_root: Path,
    route_file: Path | None = None,
    imports: dict[str, str] | None = None,
) -> list[Path]:
    """Existing validator module paths for a reference, most specific first."""
    group, member = split_reference(reference)
    candidates: list[Path] = []

    imported = (imports or {}).get(group or member)
    if imported and route_file is not None:
        resolved = resolve_specifier(imported, route_file)
        if resolved is not None:
            candidates.append(resolved)

    stems = [strip_group_suffix(group), strip_group_suffix(group).lower()] if group else [member]
    directories: list[Path] = []
    if validators_dir is not None:
        directories.append(validators_dir)
    directories.append(project_root / "src" / "validators")
    if route_file is not None:
        route_dir = route_file.parent
        directories += [route_dir.parent / "validators", route_dir.parent.parent / "validators", route_dir / "validators"]

    for directory in directories:
        for stem in dict.fromkeys(stems):
            candidates.extend(_module_files(directory, stem))

    existing: list[Path] = []
    for candidate in candidates:
        if candidate.is_file() and candidate.resolve() not in existing:
            existing.append(candidate.resolve())
    return existing


class ValidationSchemaBridge:
    """Turns validator references into schema nodes, with a per-run module cache."""

    def __init__(
        self,
        validators_dir: Path | None,
        project_root: Path,
        runtime: RuntimeLoaderGate | None = None,
        warn: Callable[[str], None] | None = None,
    ):
        self.validators_dir = validators_dir
        self.project_root = project_root
        self.runtime = runtime
        self._warn = warn or (lambda message: None)
        self._modules: dict[Path, JoiModule] = {}
        self._lock = threading.Lock()

    def resolve(
        self,
        reference: str,
        route_file: Path | None = None,
        imports: dict[str, str] | None = None,
    ) -> SchemaNode | None:
        """Schema node for `reference`, or None when it cannot be resolved."""
        try:
            raw = self._load(reference, route_file, imports)
            node = SchemaNode.from_json_schema(clean_json_schema(raw))
        except (ContractInferenceError, OSError, ValueError) as exc:
            message = f"Validator {reference} not resolved: {exc}"
            logger.warning(message)
            self._warn(message)
            return None
        logger.debug("Resolved validator %s", reference)
        return node

    def _load(self, reference: str, route_file: Path | None, imports: dict[str, str] | None) -> dict[str, Any]:
        group, member = split_reference(reference)
        modules = candidate_modules(reference, self.validators_dir, self.project_root, route_file, imports)
        if not modules:
            raise SourceNotFoundError("validator file not found")
        path = modules[0]
        try:
            return self._static(path, group, member)
        except UnresolvableReferenceError as exc:
            if self.runtime is None:
                raise
            logger.info("Static extraction of %s failed (%s); loading at runtime", reference, exc)
            return self.runtime.load(path, group, member)

    def module(self, path: Path) -> JoiModule:
        with self._lock:
            cached = self._modules.get(path)
        if cached is not None:
            return cached
        parsed = JoiModule(path.read_bytes(), origin=str(path))
        with self._lock:
            return self._modules.setdefault(path, parsed)

    def _static(self, path: Path, group: str | None, member: str) -> dict[str, Any]:
        module = self.module(path)
        node = None
        if group:
            node = module.member(group, member) or module.member(strip_group_suffix(group), member)
        if node is None:
            node = module.export(member)
        if node is None:
            where = f"{group}.{member}" if group else member
            raise UnresolvableReferenceError(f"{where} not found in {path.name}")
        return module.to_json_schema(node)
