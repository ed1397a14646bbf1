"""Top-level driver: route files in, one Document out.

Each routing file is analysed independently: extract registrations,
classify middleware, analyse the matching handler, resolve the validator
reference and assemble contracts. A failure inside one file is recorded as a
warning and never stops the run. With `workers > 1` files are analysed on a
thread pool; results are merged in sorted file order either way, so the
output does not depend on scheduling.
"""

import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from api_contract_infer.config import GeneratorConfig
from api_contract_infer.context import AnalysisContext
from api_contract_infer.errors import ContractInferenceError, MalformedDeclarationError
from api_contract_infer.generator.assembler import EndpointContract, assemble_endpoint
from api_contract_infer.generator.document import Document
from api_contract_infer.parser.base import BODY_METHODS, ControllerAnalysis, RouteDescriptor
from api_contract_infer.parser.controller import analyze_controller
from api_contract_infer.parser.detect import detect_source_files, find_controller_file, source_stem
from api_contract_infer.parser.imports import parse_imports
from api_contract_infer.parser.middleware import classify
from api_contract_infer.parser.mounts import load_mounts, module_stem
from api_contract_infer.parser.routes import extract_routes
from api_contract_infer.schema.node import SchemaNode

logger = logging.getLogger(__name__)


class RouteFileAnalyzer:
    """Analyses one routing file against the shared context."""

    def __init__(self, context: AnalysisContext, mounts: Mapping[str, str], declared: Mapping[str, SchemaNode]):
        self.context = context
        self.config = context.config
        self.mounts = mounts
        self.declared = declared

    def analyze(self, path: Path) -> list[EndpointContract]:
        """Contracts for every registration in `path`; never raises."""
        try:
            return self._analyze(path)
        except ContractInferenceError as exc:
            self._warn(f"{path.name}: {exc}")
        except Exception as exc:  # per-file boundary
            logger.exception("Unexpected error while analysing %s", path)
            self._warn(f"{path.name}: unexpected {type(exc).__name__}: {exc}")
        return []

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.context.warn(message)

    def _analyze(self, path: Path) -> list[EndpointContract]:
        content = path.read_text(encoding="utf-8", errors="replace")
        stem = source_stem(path)
        module = module_stem(stem)
        base_path = self.mounts.get(module, self.config.base_path)

        file_warnings: list[str] = []
        routes = extract_routes(content, base_path, source=module, warnings=file_warnings)
        for message in file_warnings:
            self.context.warn(message)
        if not routes:
            logger.info("%s: no routes found", path.name)
            return []
        logger.info("%s: %d route(s), base path %s", path.name, len(routes), base_path)

        imports = parse_imports(content)
        controllers: dict[str | None, str | None] = {}
        contracts = []
        for route in routes:
            try:
                contracts.append(self._assemble(route, path, stem, imports, controllers))
            except ContractInferenceError as exc:
                self._warn(f"{path.name}: {route.method} {route.raw_path} skipped: {exc}")
        return contracts

    def _assemble(
        self,
        route: RouteDescriptor,
        path: Path,
        stem: str,
        imports: dict[str, str],
        controllers: dict[str | None, str | None],
    ) -> EndpointContract:
        tags = classify(route, self.config.auth_middleware)
        analysis = self._controller_analysis(route, stem, controllers)

        bridge_schema = None
        if route.validation_schema_ref and route.method in BODY_METHODS:
            bridge_schema = self.context.bridge.resolve(route.validation_schema_ref, path, imports)

        return assemble_endpoint(
            route,
            tags,
            analysis,
            bridge_schema,
            self.context.registry,
            smart_defaults=self.config.smart_defaults,
            source_file=str(path),
        )

    def _controller_content(self, stem: str, handler_object: str | None, cache: dict) -> str | None:
        if handler_object in cache:
            return cache[handler_object]
        controllers_dir = self.config.resolve(self.config.controllers_dir)
        controller_file = find_controller_file(stem, controllers_dir, handler_object)
        if controller_file is None:
            logger.debug("No controller file for %s (%s)", stem, handler_object)
            cache[handler_object] = None
        else:
            logger.debug("Controller for %s: %s", stem, controller_file.name)
            cache[handler_object] = controller_file.read_text(encoding="utf-8", errors="replace")
        return cache[handler_object]

    def _controller_analysis(self, route: RouteDescriptor, stem: str, cache: dict) -> ControllerAnalysis | None:
        if route.is_anonymous:
            return None
        content = self._controller_content(stem, route.handler_object, cache)
        if content is None:
            return None
        method_name = route.handler_reference.split(".")[-1]
        try:
            return analyze_controller(
                content,
                method_name,
                route.method,
                declared=self.declared,
                type_inference=self.config.field_type_inference,
            )
        except MalformedDeclarationError as exc:
            self._warn(f"{route.handler_reference}: handler not analysed: {exc}")
            return None


def _load_declared_types(context: AnalysisContext) -> None:
    schemas_dir = context.config.resolve(context.config.schemas_dir)
    if schemas_dir is None:
        return
    try:
        context.resolver.load_directory(schemas_dir)
    except ContractInferenceError as exc:
        logger.warning(str(exc))
        context.warn(str(exc))
        return
    context.resolver.resolve_all()
    logger.info("Registered %d named schema(s)", len(context.registry))


def merge_endpoints(batches: list[list[EndpointContract]], context: AnalysisContext) -> list[EndpointContract]:
    """Flatten per-file results; a repeated (method, path) replaces the earlier one."""
    merged: dict[tuple[str, str], EndpointContract] = {}
    for batch in batches:
        for endpoint in batch:
            key = (endpoint.method, endpoint.path)
            previous = merged.get(key)
            if previous is not None:
                message = (
                    f"Duplicate route {endpoint.method} {endpoint.path}: "
                    f"{endpoint.source_file} overrides {previous.source_file}"
                )
                logger.warning(message)
                context.warn(message)
            merged[key] = endpoint
    return list(merged.values())


def run_pipeline(config: GeneratorConfig) -> Document:
    """Analyse every routing file of the configured project and build the Document."""
    context = AnalysisContext(config)
    document = Document(
        title=config.title,
        version=config.version,
        description=config.description,
        servers=config.servers,
        custom_schemas=config.custom_schemas,
    )

    routes_dir = config.resolve(config.routes_dir)
    if not routes_dir.is_dir():
        message = f"Routes directory not found: {routes_dir}"
        logger.warning(message)
        document.warnings.append(message)
        return document

    controllers_dir = config.resolve(config.controllers_dir)
    if not controllers_dir.is_dir():
        message = f"Controllers directory not found: {controllers_dir}"
        logger.warning(message)
        context.warn(message)

    _load_declared_types(context)
    declared = context.registry.snapshot()
    mounts = load_mounts(routes_dir, config.base_path)
    files = detect_source_files(routes_dir)
    logger.info("Processing %d route file(s) from %s", len(files), routes_dir)

    analyzer = RouteFileAnalyzer(context, mounts, declared)
    if config.workers > 1 and len(files) > 1:
        with ThreadPoolExecutor(max_workers=config.workers) as pool:
            batches = list(pool.map(analyzer.analyze, files))
    else:
        batches = [analyzer.analyze(path) for path in files]

    document.endpoints = merge_endpoints(batches, context)
    document.schemas = context.registry.snapshot()
    document.warnings = context.warnings
    logger.info("Generated %d endpoint contract(s)", len(document.endpoints))
    return document
