"""Per-run analysis context.

Holds the state shared by every route file of one run: the configuration,
the named-schema registry, the validator bridge with its runtime-loader gate,
and the accumulated warnings. There are no module-level singletons; two runs
with two contexts do not see each other's state.
"""

import logging
import threading

from api_contract_infer.config import GeneratorConfig
from api_contract_infer.schema.bridge import ValidationSchemaBridge
from api_contract_infer.schema.registry import SchemaRegistry
from api_contract_infer.schema.runtime import RuntimeLoaderGate
from api_contract_infer.schema.types import TypeGraphResolver

logger = logging.getLogger(__name__)


class AnalysisContext:
    def __init__(self, config: GeneratorConfig):
        self.config = config
        self.registry = SchemaRegistry()
        self.resolver = TypeGraphResolver(self.registry)
        self.runtime = (
            RuntimeLoaderGate(config.node_binary, cwd=config.project_root) if config.runtime_loading else None
        )
        self.bridge = ValidationSchemaBridge(
            config.resolve(config.validators_dir),
            config.project_root,
            runtime=self.runtime,
            warn=self.warn,
        )
        self._warnings: list[str] = []
        self._lock = threading.Lock()

    def warn(self, message: str) -> None:
        """Record a per-unit degradation; it ends up in `Document.warnings`."""
        with self._lock:
            self._warnings.append(message)

    @property
    def warnings(self) -> list[str]:
        with self._lock:
            return list(self._warnings)
