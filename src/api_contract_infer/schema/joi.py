"""Static Joi schema extraction.

Validator modules are parsed with tree-sitter instead of being executed.
Joi schemas are plain call chains (`Joi.string().email().required()`), so
each chain is unrolled into a type constructor plus modifiers and rendered
as a JSON-schema dict in the same dialect joi-to-json produces: nullable
types as `type: [X, "null"]` and `null` kept inside `enum`. The bridge
normalises that dialect afterwards.
"""

import logging
import threading
from typing import Any

from tree_sitter import Node

from api_contract_infer.errors import SchemaConversionError

from .types import node_text, parse_typescript

logger = logging.getLogger(__name__)

JOI_MODULES = ("joi", "@hapi/joi")

TYPE_CONSTRUCTORS: dict[str, dict[str, Any]] = {
    "string": {"type": "string"},
    "number": {"type": "number"},
    "boolean": {"type": "boolean"},
    "bool": {"type": "boolean"},
    "date": {"type": "string", "format": "date-time"},
    "binary": {"type": "string", "format": "binary"},
    "object": {"type": "object"},
    "array": {"type": "array"},
    "any": {},
    "alternatives": {"anyOf": []},
    "alt": {"anyOf": []},
}

STRING_FORMATS = {
    "email": "email",
    "uri": "uri",
    "uuid": "uuid",
    "guid": "uuid",
    "isoDate": "date-time",
    "iso": "date-time",
    "hostname": "hostname",
    "ip": "ipv4",
    "base64": "byte",
}

BOUND_KEYS = {
    "string": ("minLength", "maxLength"),
    "array": ("minItems", "maxItems"),
}

# presence rules Joi also exposes as top-level shorthands, e.g. `Joi.forbidden()`
ANY_SHORTHANDS = ("required", "exist", "optional", "forbidden", "allow")

_UNKNOWN = object()

# modifiers with no schema counterpart
IGNORED_MODIFIERS = frozenset(
    "trim lowercase uppercase strict messages message options prefs custom external when strip label "
    "meta error unit precision empty insensitive normalize case invalid disallow not unknown rename "
    "and or xor nand oxor with without timestamp raw cast sparse unique single truncate".split()
)


def _unwrap(node: Node) -> Node:
    while node.type in ("parenthesized_expression", "as_expression", "satisfies_expression", "non_null_expression"):
        node = node.named_children[0]
    return node


class _Presence:
    REQUIRED = "required"
    OPTIONAL = "optional"
    FORBIDDEN = "forbidden"


class JoiModule:
    """Module-level bindings and exports of one validator source file."""

    def __init__(self, source: bytes | str, origin: str = ""):
        if isinstance(source, str):
            source = source.encode("utf-8")
        self.origin = origin
        self.bindings: dict[str, Node] = {}
        self.exports: dict[str, Node] = {}
        self.joi_names: set[str] = {"Joi", "joi"}
        self._resolving: set[str] = set()
        self._lock = threading.RLock()
        self._collect(parse_typescript(source))

    # -- collection -------------------------------------------------------------

    def _collect(self, root: Node) -> None:
        for statement in root.named_children:
            if statement.type == "import_statement":
                self._import(statement)
            elif statement.type in ("lexical_declaration", "variable_declaration"):
                self._declarations(statement, exported=False)
            elif statement.type == "export_statement":
                self._export(statement)
            elif statement.type == "expression_statement":
                self._assignment(statement)

    def _import(self, statement: Node) -> None:
        source = statement.child_by_field_name("source")
        if source is None or node_text(source)[1:-1] not in JOI_MODULES:
            return
        for clause in statement.named_children:
            if clause.type != "import_clause":
                continue
            for item in clause.named_children:
                if item.type == "identifier":
                    self.joi_names.add(node_text(item))
                elif item.type == "namespace_import":
                    self.joi_names.update(node_text(n) for n in item.named_children if n.type == "identifier")

    def _declarations(self, statement: Node, exported: bool) -> None:
        for declarator in statement.named_children:
            if declarator.type != "variable_declarator":
                continue
            name = declarator.child_by_field_name("name")
            value = declarator.child_by_field_name("value")
            if name is None or value is None or name.type != "identifier":
                continue
            value = _unwrap(value)
            if _is_joi_require(value):
                self.joi_names.add(node_text(name))
                continue
            self.bindings[node_text(name)] = value
            if exported:
                self.exports[node_text(name)] = value

    def _export(self, statement: Node) -> None:
        declaration = statement.child_by_field_name("declaration")
        if declaration is not None and declaration.type in ("lexical_declaration", "variable_declaration"):
            self._declarations(declaration, exported=True)
            return
        value = statement.child_by_field_name("value")
        if value is not None:
            self.exports["default"] = _unwrap(value)
            return
        for clause in statement.named_children:
            if clause.type != "export_clause":
                continue
            for specifier in clause.named_children:
                local = specifier.child_by_field_name("name")
                alias = specifier.child_by_field_name("alias") or local
                if local is not None and node_text(local) in self.bindings:
                    self.exports[node_text(alias)] = self.bindings[node_text(local)]

    def _assignment(self, statement: Node) -> None:
        expression = statement.named_children[0] if statement.named_children else None
        if expression is None or expression.type != "assignment_expression":
            return
        left = node_text(expression.child_by_field_name("left")).replace(" ", "")
        right = _unwrap(expression.child_by_field_name("right"))
        if left == "module.exports":
            if right.type == "object":
                for key, value in self._object_members(right).items():
                    self.exports[key] = value
            else:
                self.exports["default"] = right
        elif left.startswith(("module.exports.", "exports.")):
            self.exports[left.rsplit(".", 1)[-1]] = right

    # -- lookup -----------------------------------------------------------------

    def _deref(self, node: Node) -> Node:
        seen = set()
        node = _unwrap(node)
        while node.type == "identifier" and node_text(node) in self.bindings and node_text(node) not in seen:
            seen.add(node_text(node))
            node = self.bindings[node_text(node)]
        return node

    def _object_members(self, node: Node) -> dict[str, Node]:
        members: dict[str, Node] = {}
        for child in node.named_children:
            if child.type == "pair":
                key = child.child_by_field_name("key")
                value = child.child_by_field_name("value")
                if key is not None and value is not None:
                    members[_key_text(key)] = _unwrap(value)
            elif child.type == "shorthand_property_identifier":
                name = node_text(child)
                if name in self.bindings:
                    members[name] = self.bindings[name]
            elif child.type == "spread_element" and child.named_children:
                target = self._deref(child.named_children[0])
                if target.type == "object":
                    members.update(self._object_members(target))
        return members

    def member(self, group: str, name: str) -> Node | None:
        """`group.name` where `group` is an exported (or module-level) object literal."""
        container = self.exports.get(group) or self.bindings.get(group)
        if container is None:
            return None
        container = self._deref(container)
        if container.type != "object":
            return None
        return self._object_members(container).get(name)

    def export(self, name: str) -> Node | None:
        """A direct top-level export, including members of a default-exported object."""
        if name in self.exports:
            return self.exports[name]
        default = self.exports.get("default")
        if default is not None:
            default = self._deref(default)
            if default.type == "object":
                return self._object_members(default).get(name)
        return None

    # -- conversion -------------------------------------------------------------

    def to_json_schema(self, node: Node) -> dict[str, Any]:
        """Convert a Joi expression to a JSON-schema dict, or raise SchemaConversionError."""
        with self._lock:
            schema, _ = self._convert(node)
        return schema

    def _convert(self, node: Node) -> tuple[dict[str, Any], str | None]:
        node = _unwrap(node)
        calls: list[tuple[str, list[Node]]] = []
        current = node
        while current.type == "call_expression":
            function = current.child_by_field_name("function")
            arguments = current.child_by_field_name("arguments")
            if function is None or function.type != "member_expression":
                break
            property_node = function.child_by_field_name("property")
            calls.append((node_text(property_node), arguments.named_children if arguments is not None else []))
            current = _unwrap(function.child_by_field_name("object"))
        calls.reverse()

        if current.type == "identifier" and node_text(current) in self.joi_names:
            if not calls:
                raise SchemaConversionError(f"Bare Joi reference is not a schema: {node_text(node)[:60]}")
            constructor, arguments = calls[0]
            if constructor in ANY_SHORTHANDS:
                schema, modifiers = {}, calls
            else:
                schema = self._construct(constructor, arguments)
                modifiers = calls[1:]
        elif current.type == "identifier" and node_text(current) in self.bindings:
            schema, presence = self._reference(node_text(current))
            modifiers = calls
            return self._apply(schema, modifiers, presence)
        else:
            raise SchemaConversionError(f"Not a Joi schema expression: {node_text(node)[:60]}")
        return self._apply(schema, modifiers, None)

    def _reference(self, name: str) -> tuple[dict[str, Any], str | None]:
        if name in self._resolving:
            raise SchemaConversionError(f"Circular schema reference: {name}")
        self._resolving.add(name)
        try:
            return self._convert(self.bindings[name])
        finally:
            self._resolving.discard(name)

    def _construct(self, constructor: str, arguments: list[Node]) -> dict[str, Any]:
        if constructor in ("valid", "equal", "only"):
            return {"enum": self._values(arguments)}
        if constructor not in TYPE_CONSTRUCTORS:
            raise SchemaConversionError(f"Unsupported Joi type: {constructor}")
        schema = dict(TYPE_CONSTRUCTORS[constructor])
        if "anyOf" in schema:
            schema["anyOf"] = [self.to_json_schema(arg) for arg in arguments]
        elif constructor == "object" and arguments:
            self._keys(schema, arguments[0])
        elif constructor == "array" and arguments:
            self._items(schema, arguments)
        return schema

    def _apply(
        self, schema: dict[str, Any], modifiers: list[tuple[str, list[Node]]], presence: str | None
    ) -> tuple[dict[str, Any], str | None]:
        for name, arguments in modifiers:
            first = arguments[0] if arguments else None
            kind = schema.get("type")
            if name in ("required", "exist"):
                presence = _Presence.REQUIRED
            elif name == "optional":
                presence = _Presence.OPTIONAL
            elif name == "forbidden":
                presence = _Presence.FORBIDDEN
            elif name in STRING_FORMATS:
                schema["format"] = STRING_FORMATS[name]
            elif name == "integer":
                schema["type"] = "integer"
            elif name in ("min", "max", "length"):
                self._bound(schema, name, first)
            elif name in ("greater", "less"):
                value = self._value(first)
                if isinstance(value, (int, float)):
                    schema["minimum" if name == "greater" else "maximum"] = value
            elif name in ("pattern", "regex"):
                if first is not None and first.type == "regex":
                    schema["pattern"] = node_text(first.child_by_field_name("pattern"))
            elif name in ("valid", "equal", "only"):
                schema["enum"] = self._values(arguments)
            elif name == "allow":
                self._allow(schema, arguments)
            elif name == "default" and first is not None:
                value = self._value(first)
                if value is not _UNKNOWN and value is not None:
                    schema["default"] = value
            elif name == "description" and isinstance(self._value(first), str):
                schema["description"] = self._value(first)
            elif name in ("example", "examples") and self._value(first) not in (_UNKNOWN, None):
                schema["example"] = self._value(first)
            elif name in ("keys", "append") and first is not None and kind == "object":
                self._keys(schema, first)
            elif name == "items" and kind == "array":
                self._items(schema, arguments)
            elif name == "try" and "anyOf" in schema:
                schema["anyOf"].extend(self.to_json_schema(arg) for arg in arguments)
            elif name not in IGNORED_MODIFIERS:
                logger.debug("Ignoring Joi modifier .%s() in %s", name, self.origin)
        return schema, presence

    def _bound(self, schema: dict[str, Any], name: str, argument: Node | None) -> None:
        value = self._value(argument) if argument is not None else None
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return
        if schema.get("type") == "object":
            return
        low, high = BOUND_KEYS.get(schema.get("type"), ("minimum", "maximum"))
        if name in ("min", "length"):
            schema[low] = value
        if name in ("max", "length"):
            schema[high] = value

    def _allow(self, schema: dict[str, Any], arguments: list[Node]) -> None:
        values = self._values(arguments)
        if None not in values:
            if "enum" in schema:
                schema["enum"].extend(values)
            return
        if "enum" in schema:
            schema["enum"].append(None)
        if isinstance(schema.get("type"), str):
            schema["type"] = [schema["type"], "null"]
        elif "anyOf" in schema:
            schema["anyOf"].append({"type": "null"})

    def _keys(self, schema: dict[str, Any], argument: Node) -> None:
        target = self._deref(argument)
        if target.type != "object":
            raise SchemaConversionError(f"Joi object keys must be an object literal: {node_text(argument)[:60]}")
        properties = schema.setdefault("properties", {})
        required = schema.setdefault("required", [])
        for key, value in self._object_members(target).items():
            child, presence = self._convert(value)
            if presence == _Presence.FORBIDDEN:
                properties.pop(key, None)
                continue
            properties[key] = child
            if presence == _Presence.REQUIRED and key not in required:
                required.append(key)
            elif presence != _Presence.REQUIRED and key in required:
                required.remove(key)
        if not required:
            schema.pop("required")

    def _items(self, schema: dict[str, Any], arguments: list[Node]) -> None:
        items = [self.to_json_schema(arg) for arg in arguments]
        if len(items) == 1:
            schema["items"] = items[0]
        elif items:
            schema["items"] = {"anyOf": items}

    def _values(self, arguments: list[Node]) -> list[Any]:
        values: list[Any] = []
        for argument in arguments:
            if argument.type == "spread_element" and argument.named_children:
                argument = argument.named_children[0]
            target = self._deref(argument)
            if target.type == "array":
                values.extend(self._value(item) for item in target.named_children)
            else:
                values.append(self._value(argument))
        return [value for value in values if value is not _UNKNOWN]

    def _value(self, node: Node | None) -> Any:
        """Evaluate a literal expression; anything non-literal yields `_UNKNOWN`."""
        if node is None:
            return _UNKNOWN
        node = self._deref(node)
        kind = node.type
        text = node_text(node)
        if kind == "string" or (kind == "template_string" and not any(
            child.type == "template_substitution" for child in node.named_children
        )):
            return text[1:-1]
        if kind == "number":
            try:
                return float(text) if any(c in text for c in ".eE") and not text.startswith("0x") else int(text, 0)
            except ValueError:
                return _UNKNOWN
        if kind == "unary_expression" and text.startswith("-"):
            value = self._value(node.named_children[0]) if node.named_children else None
            return -value if isinstance(value, (int, float)) else _UNKNOWN
        if kind in ("true", "false"):
            return kind == "true"
        if kind == "null":
            return None
        if kind == "array":
            items = [self._value(item) for item in node.named_children if item.type != "comment"]
            return _UNKNOWN if any(item is _UNKNOWN for item in items) else items
        if kind == "object":
            members = {key: self._value(value) for key, value in self._object_members(node).items()}
            return _UNKNOWN if any(value is _UNKNOWN for value in members.values()) else members
        return _UNKNOWN


def _key_text(node: Node) -> str:
    text = node_text(node)
    if node.type == "string":
        return text[1:-1]
    if node.type == "computed_property_name":
        return text[1:-1].strip().strip("'\"")
    return text


def _is_joi_require(node: Node) -> bool:
    if node.type != "call_expression":
        return False
    function = node.child_by_field_name("function")
    arguments = node.child_by_field_name("arguments")
    if function is None or node_text(function) != "require" or arguments is None:
        return False
    strings = [arg for arg in arguments.named_children if arg.type == "string"]
    return bool(strings) and node_text(strings[0])[1:-1] in JOI_MODULES
