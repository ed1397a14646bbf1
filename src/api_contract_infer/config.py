"""Generator configuration and options-file loading."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from api_contract_infer.errors import SourceNotFoundError
from api_contract_infer.parser.middleware import DEFAULT_AUTH_MARKERS


def _default_servers() -> list[dict[str, str]]:
    return [{"url": "http://localhost:3000", "description": "Development server"}]


class GeneratorConfig(BaseModel):
    """Options of one run. Accepts snake_case and camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    routes_dir: Path = Path("src/routes")
    controllers_dir: Path = Path("src/controllers")
    validators_dir: Path | None = Path("src/api/v1/validators")
    schemas_dir: Path | None = None
    project_root: Path = Path(".")
    output_file: Path = Path("swagger-docs.json")
    base_path: str = "/api/v1"
    title: str = "API Documentation"
    version: str = "1.0.0"
    description: str = "Auto-generated API documentation"
    servers: list[dict[str, str]] = Field(default_factory=_default_servers)
    custom_schemas: dict[str, Any] = Field(default_factory=dict)
    smart_defaults: bool = True
    field_type_inference: bool = True
    auth_middleware: list[str] = Field(default_factory=lambda: list(DEFAULT_AUTH_MARKERS))
    runtime_loading: bool = False
    node_binary: str = "node"
    workers: int = Field(default=1, ge=1)

    def resolve(self, path: Path | None) -> Path | None:
        """Resolve a configured directory against `project_root`."""
        if path is None:
            return None
        return path if path.is_absolute() else self.project_root / path


def load_config(path: Path, **overrides: Any) -> GeneratorConfig:
    """Read a YAML (or JSON) options file; non-None `overrides` win over file values."""
    if not path.exists():
        raise SourceNotFoundError(f"Config file not found: {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    for key, value in overrides.items():
        if value is None:
            continue
        data.pop(key, None)
        data[to_camel(key)] = value
    return GeneratorConfig.model_validate(data)
