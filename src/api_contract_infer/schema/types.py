"""Type graph resolver.

Turns TypeScript interface, type-alias and enum declarations into schema
nodes. Declarations are parsed with tree-sitter's TypeScript grammar and
classified by the shape of their type expressions. Named types already in
the registry are inlined by value; a name that is still being resolved on
the current path becomes a reference, which is how self-referential and
mutually-referential types terminate.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from api_contract_infer.errors import ContractInferenceError, SourceNotFoundError
from api_contract_infer.parser.detect import detect_source_files

from .node import SchemaNode
from .registry import SchemaRegistry

logger = logging.getLogger(__name__)

TS_LANGUAGE = Language(tree_sitter_typescript.language_typescript())

DECLARATION_TYPES = ("interface_declaration", "type_alias_declaration", "enum_declaration")

PRIMITIVES = {
    "string": "string",
    "number": "number",
    "bigint": "number",
    "boolean": "boolean",
    "String": "string",
    "Number": "number",
    "Boolean": "boolean",
}
UNWRAPPED_GENERICS = ("Promise", "Readonly", "Required", "NonNullable", "Awaited")
ARRAY_GENERICS = ("Array", "ReadonlyArray", "Set")


def parse_typescript(source: bytes) -> Node:
    """Parse TypeScript (or plain JavaScript) source and return the root node."""
    return Parser(TS_LANGUAGE).parse(source).root_node


def node_text(node: Node) -> str:
    return node.text.decode("utf-8") if node.text is not None else ""


def _strip_quotes(text: str) -> str:
    if len(text) >= 2 and text[0] in "'\"`" and text[-1] == text[0]:
        return text[1:-1]
    return text


def top_level_declarations(root: Node) -> list[Node]:
    """Interface, alias and enum declarations at module level, exported or not."""
    found = []
    for child in root.named_children:
        if child.type == "export_statement":
            inner = child.child_by_field_name("declaration")
            candidates = [inner] if inner is not None else child.named_children
        else:
            candidates = [child]
        found.extend(node for node in candidates if node is not None and node.type in DECLARATION_TYPES)
    return found


@dataclass
class Declaration:
    name: str
    node: Node
    origin: str = ""


class TypeGraphResolver:
    """Resolves declared type names into registry-backed schema nodes."""

    def __init__(self, registry: SchemaRegistry):
        self.registry = registry
        self.declarations: dict[str, Declaration] = {}

    def load_directory(self, directory: Path) -> int:
        """Collect every declaration below `directory`; returns how many were found."""
        if not directory.is_dir():
            raise SourceNotFoundError(f"Schemas directory not found: {directory}")
        before = len(self.declarations)
        for path in detect_source_files(directory):
            self.load_source(path.read_bytes(), origin=str(path))
        found = len(self.declarations) - before
        logger.info("Found %d type declaration(s) in %s", found, directory)
        return found

    def load_source(self, source: bytes | str, origin: str = "") -> None:
        if isinstance(source, str):
            source = source.encode("utf-8")
        for node in top_level_declarations(parse_typescript(source)):
            name_node = node.child_by_field_name("name")
            if name_node is None:
                continue
            name = node_text(name_node)
            self.declarations[name] = Declaration(name=name, node=node, origin=origin)

    def resolve_all(self) -> dict[str, SchemaNode]:
        """Resolve every collected declaration into the registry."""
        resolved = {}
        for name in self.declarations:
            schema = self.resolve(name)
            if schema is not None:
                resolved[name] = schema
        return resolved

    def resolve(self, name: str) -> SchemaNode | None:
        """A copy of the schema for a declared name, or None on failure."""
        if name not in self.declarations:
            return None
        try:
            return self.registry.resolve(name, lambda: self._build(name, {name}))
        except (ContractInferenceError, RecursionError, UnicodeDecodeError) as exc:
            logger.warning("Could not resolve type %s: %s", name, exc)
            return None

    # -- construction ---------------------------------------------------------

    def _build(self, name: str, visited: set[str]) -> SchemaNode:
        declaration = self.declarations[name].node
        if declaration.type == "interface_declaration":
            return self._interface(declaration, visited)
        if declaration.type == "enum_declaration":
            return self._enum(declaration)
        value = declaration.child_by_field_name("value")
        return self._convert(value, visited) if value is not None else SchemaNode.untyped()

    def _named(self, name: str, visited: set[str]) -> SchemaNode:
        cached = self.registry.copy(name)
        if cached is not None:
            return cached
        if name in visited or self.registry.is_building(name):
            return SchemaNode.reference(name)
        visited.add(name)
        resolved = self.registry.resolve(name, lambda: self._build(name, visited))
        return resolved if resolved is not None else SchemaNode.reference(name)

    def _convert(self, node: Node | None, visited: set[str]) -> SchemaNode:
        if node is None:
            return SchemaNode.untyped()
        kind = node.type
        if kind in ("type_annotation", "parenthesized_type", "readonly_type", "opting_type_annotation"):
            inner = node.named_children
            return self._convert(inner[-1] if inner else None, visited)
        if kind == "predefined_type":
            text = node_text(node)
            if text in PRIMITIVES:
                return SchemaNode.primitive(PRIMITIVES[text])
            return SchemaNode.untyped()
        if kind in ("type_identifier", "nested_type_identifier"):
            return self._identifier(node_text(node).split(".")[-1], visited)
        if kind == "generic_type":
            return self._generic(node, visited)
        if kind == "array_type":
            return SchemaNode.array(self._convert(node.named_children[0], visited))
        if kind == "tuple_type":
            members = node.named_children
            return SchemaNode.array(self._convert(members[0], visited) if members else None)
        if kind == "union_type":
            return self._union(node, visited)
        if kind == "intersection_type":
            return self._intersection(node, visited)
        if kind == "literal_type":
            return self._literal(node)
        if kind == "object_type":
            return self._object(node, visited)
        if kind == "template_literal_type":
            return SchemaNode.primitive("string")
        return SchemaNode.untyped()

    def _identifier(self, name: str, visited: set[str]) -> SchemaNode:
        if name == "Date":
            return SchemaNode.primitive("string", "date-time")
        if name in PRIMITIVES:
            return SchemaNode.primitive(PRIMITIVES[name])
        if name in self.declarations:
            return self._named(name, visited)
        return SchemaNode.untyped()

    def _generic(self, node: Node, visited: set[str]) -> SchemaNode:
        name_node = node.child_by_field_name("name")
        name = node_text(name_node).split(".")[-1] if name_node is not None else ""
        arguments_node = node.child_by_field_name("type_arguments")
        arguments = arguments_node.named_children if arguments_node is not None else []
        if name in ARRAY_GENERICS:
            return SchemaNode.array(self._convert(arguments[0], visited) if arguments else None)
        if name in UNWRAPPED_GENERICS and arguments:
            return self._convert(arguments[0], visited)
        if name == "Partial" and arguments:
            schema = self._convert(arguments[0], visited)
            schema.required = []
            return schema
        if name == "Record":
            schema = SchemaNode.untyped()
            schema.additional_properties = self._convert(arguments[1], visited) if len(arguments) > 1 else True
            return schema
        return self._identifier(name, visited)

    def _union(self, node: Node, visited: set[str]) -> SchemaNode:
        members = _flatten(node, "union_type")
        nulls = [m for m in members if _literal_kind(m) == "null"]
        rest = [m for m in members if _literal_kind(m) not in ("null", "undefined")]
        nullable = bool(nulls)

        if rest and all(_literal_kind(m) == "string" for m in rest):
            values = [_strip_quotes(node_text(m.named_children[0])) for m in rest]
            return SchemaNode(kind="enum", type="string", enum=values, nullable=nullable)
        if rest and all(_literal_kind(m) in ("true", "false") for m in rest):
            return SchemaNode.primitive("boolean", nullable=nullable)
        if not rest:
            return SchemaNode(kind="primitive", nullable=nullable)
        # a single member, or a mixed union: the first non-null member
        schema = self._convert(rest[0], visited)
        if nullable:
            schema.nullable = True
        return schema

    def _intersection(self, node: Node, visited: set[str]) -> SchemaNode:
        parts = [self._convert(member, set(visited)) for member in _flatten(node, "intersection_type")]
        objects = [part for part in parts if part.properties is not None]
        if not objects:
            return parts[0] if parts else SchemaNode.untyped()
        merged = SchemaNode.object_schema({}, [])
        for part in objects:
            merged.properties.update(part.properties)
            merged.required.extend(name for name in part.required if name not in merged.required)
        return merged

    def _literal(self, node: Node) -> SchemaNode:
        literal_kind = _literal_kind(node)
        text = node_text(node.named_children[0]) if node.named_children else node_text(node)
        if literal_kind == "string":
            return SchemaNode(kind="enum", type="string", enum=[_strip_quotes(text)])
        if literal_kind == "number":
            value = float(text) if "." in text else int(text, 0)
            return SchemaNode(kind="enum", type="number", enum=[value])
        if literal_kind in ("true", "false"):
            return SchemaNode.primitive("boolean")
        if literal_kind == "null":
            return SchemaNode(kind="primitive", nullable=True)
        return SchemaNode.untyped()

    def _interface(self, node: Node, visited: set[str]) -> SchemaNode:
        schema = SchemaNode.object_schema({}, [])
        for child in node.children:
            if child.type not in ("extends_type_clause", "extends_clause"):
                continue
            for base in child.named_children:
                inherited = self._convert(base, set(visited))
                schema.properties.update(inherited.properties or {})
                schema.required.extend(n for n in inherited.required if n not in schema.required)
        body = node.child_by_field_name("body")
        if body is not None:
            self._members(body, visited, schema)
        return schema

    def _object(self, node: Node, visited: set[str]) -> SchemaNode:
        schema = SchemaNode.object_schema({}, [])
        self._members(node, visited, schema)
        return schema

    def _members(self, body: Node, visited: set[str], schema: SchemaNode) -> None:
        for member in body.named_children:
            if member.type == "property_signature":
                name_node = member.child_by_field_name("name")
                if name_node is None:
                    continue
                name = _strip_quotes(node_text(name_node))
                optional = any(child.type == "?" for child in member.children)
                annotation = member.child_by_field_name("type")
                # siblings get their own copy of the path so they may revisit a shared type
                schema.properties[name] = self._convert(annotation, set(visited))
                if name in schema.required:
                    schema.required.remove(name)
                if not optional:
                    schema.required.append(name)
            elif member.type == "index_signature":
                annotation = member.child_by_field_name("type") or (member.named_children[-1] if member.named_children else None)
                schema.additional_properties = self._convert(annotation, set(visited))

    def _enum(self, node: Node) -> SchemaNode:
        body = node.child_by_field_name("body")
        values: list = []
        for member in body.named_children if body is not None else []:
            if member.type == "enum_assignment":
                value = member.child_by_field_name("value")
                name = member.child_by_field_name("name")
                if value is not None and value.type == "string":
                    values.append(_strip_quotes(node_text(value)))
                elif value is not None and value.type == "number":
                    text = node_text(value)
                    values.append(float(text) if "." in text else int(text, 0))
                elif name is not None:
                    values.append(node_text(name))
            elif member.type in ("property_identifier", "string"):
                values.append(_strip_quotes(node_text(member)))
        numeric = bool(values) and all(isinstance(v, (int, float)) for v in values)
        return SchemaNode(kind="enum", type="number" if numeric else "string", enum=values)


def _flatten(node: Node, node_type: str) -> list[Node]:
    members: list[Node] = []
    for child in node.named_children:
        if child.type == node_type:
            members.extend(_flatten(child, node_type))
        else:
            members.append(child)
    return members


def _literal_kind(node: Node) -> str | None:
    """Kind of a `literal_type` (`string`, `number`, `null`, ...) or None for other nodes."""
    if node.type == "predefined_type" and node_text(node) in ("null", "undefined"):
        return node_text(node)
    if node.type != "literal_type":
        return None
    if not node.named_children:
        return node_text(node)
    inner = node.named_children[0]
    if inner.type == "unary_expression":
        return "number"
    return inner.type
