"""Controller field inferencer.

Locates one handler method in a controller file and reads its body for the
request fields it destructures, the status codes it emits and the declared
types its responses carry. All of it is heuristic string work over the
source text; mismatches fall back to plain string fields and the generic
response envelope rather than failing.
"""

import logging
import re
from collections.abc import Mapping

from api_contract_infer.errors import MalformedDeclarationError
from api_contract_infer.schema.node import SchemaNode, is_envelope

from .base import ControllerAnalysis, FieldDescriptor, FieldKind
from .scanning import find_matching, object_entries, split_top_level, strip_comments

logger = logging.getLogger(__name__)

VERB_PREFIXES = ("get", "post", "put", "patch", "delete", "create", "update", "list", "fetch", "remove", "handle")

# (substrings, kind, hint) in priority order
NAME_RULES: tuple[tuple[tuple[str, ...], FieldKind, str | None], ...] = (
    (("email",), FieldKind.STRING, "email"),
    (("password",), FieldKind.STRING, "password"),
    (("id",), FieldKind.STRING, "uuid"),
    (("age", "count"), FieldKind.NUMBER, None),
    (("price", "amount"), FieldKind.NUMBER, None),
    (("date", "time"), FieldKind.STRING, "date"),
)
_FLAG_PREFIX = re.compile(r"^(?:is|has)(?=[A-Z_0-9]|$)")

_IDENT = r"[A-Za-z_$][\w$]*"
_STATUS = re.compile(r"\.\s*(?:status|sendStatus)\s*\(\s*(\d{3})\s*\)")
_RESPONSE = re.compile(r"\b(?:res|response)\s*(?:\.\s*status\s*\(\s*(\d{3})\s*\)\s*)?\.\s*(?:json|send)\s*\(")
_DESTRUCTURE = re.compile(r"\b(?:const|let|var)\s*(?=\{)")
_FROM_BODY = re.compile(
    rf"\s*(?::[^=;]+)?=\s*\(?\s*(?:req|request)\s*\.\s*body\b(?:\s+as\s+({_IDENT}))?"
)
_BODY_MEMBER = re.compile(rf"\b(?:req|request)\s*\.\s*body\s*\.\s*({_IDENT})")
_BODY_CAST = re.compile(rf"\b(?:req|request)\s*\.\s*body\s+as\s+({_IDENT})")
_BODY_ANNOTATION = re.compile(rf"\b(?:const|let|var)\s+{_IDENT}\s*:\s*({_IDENT})\s*=\s*(?:req|request)\s*\.\s*body\b")
_ANNOTATED_VAR = re.compile(rf"\b(?:const|let|var)\s+({_IDENT})\s*:\s*({_IDENT})\s*(<[^=;]*>)?\s*=\s*")
_PLAIN_VAR = re.compile(rf"\b(?:const|let|var)\s+({_IDENT})\s*=\s*(?=\{{)")
_CAST = re.compile(rf"\s+as\s+({_IDENT})\s*$")
_ARROW_BODY = re.compile(r"(?:=>|\))\s*\{")


def method_name_candidates(name: str, http_method: str | None = None) -> list[str]:
    """The method name followed by its common verb-prefix variants."""
    capitalized = name[:1].upper() + name[1:]
    candidates = [name]
    if http_method:
        candidates.append(http_method.lower() + capitalized)
    candidates.append("handle" + capitalized)
    for prefix in VERB_PREFIXES:
        rest = name[len(prefix):]
        if name.startswith(prefix) and rest[:1].isupper():
            candidates.append(rest[:1].lower() + rest[1:])
    return list(dict.fromkeys(candidates))


def _definition_pattern(name: str) -> re.Pattern:
    return re.compile(
        rf"(?<![\w$.])(?:function\s*\*?\s*)?{re.escape(name)}\s*"
        rf"(?:[=:]\s*(?:async\s+)?(?:function\s*[\w$]*\s*)?(?:[A-Za-z_$][\w$.]*\s*)?)?"
        rf"(?:<[^<>()]*>\s*)?\("
    )


def _locate_body(text: str, open_paren: int) -> tuple[int, int, str] | None:
    """Return (body_open, body_close, params) for a definition whose parameter list opens at `open_paren`."""
    close_paren = find_matching(text, open_paren)
    if close_paren is None:
        raise MalformedDeclarationError(f"unterminated parameter list at offset {open_paren}")
    params = text[open_paren + 1:close_paren]
    j = close_paren + 1
    rest = text[j:j + 400]
    head = re.match(r"\s*(?::[^{;]*?)?\s*(?:=>)?\s*\{", rest)
    if head:
        brace = j + head.end() - 1
    else:
        # wrapped handler: asyncHandler(async (req, res) => { ... })
        inner = _ARROW_BODY.search(text, open_paren, close_paren)
        if not inner:
            return None
        brace = inner.end() - 1
        params_match = text.rfind("(", open_paren + 1, inner.start() + 1)
        if params_match != -1:
            params_end = find_matching(text, params_match)
            if params_end is not None:
                params = text[params_match + 1:params_end]
    body_close = find_matching(text, brace)
    if body_close is None:
        raise MalformedDeclarationError(f"unterminated method body at offset {brace}")
    return brace, body_close, params


def find_method_body(content: str, method_name: str, http_method: str | None = None) -> tuple[str, str, str] | None:
    """Locate a handler by name (or a verb-prefix variant).

    Returns (resolved_name, body, params) or None when no definition is found.
    """
    text = strip_comments(content)
    for candidate in method_name_candidates(method_name, http_method):
        for match in _definition_pattern(candidate).finditer(text):
            located = _locate_body(text, match.end() - 1)
            if located is None:
                continue
            brace, body_close, params = located
            return candidate, text[brace + 1:body_close], params
    return None


def infer_field_kind(name: str, usage: str, enabled: bool = True) -> tuple[FieldKind, str | None]:
    """Name-substring rules first, then usage patterns, then string."""
    if not enabled:
        return FieldKind.STRING, None
    lowered = name.lower()
    for needles, kind, hint in NAME_RULES:
        if any(needle in lowered for needle in needles):
            return kind, hint
    if _FLAG_PREFIX.match(name):
        return FieldKind.BOOLEAN, None

    escaped = re.escape(name)
    if re.search(rf"\b(?:parseInt|parseFloat|Number)\s*\(\s*{escaped}\b", usage):
        return FieldKind.NUMBER, None
    if re.search(rf"typeof\s+{escaped}\s*===?\s*['\"]number['\"]", usage):
        return FieldKind.NUMBER, None
    if re.search(rf"\b{escaped}\s*\.\s*(?:toLowerCase|toUpperCase|trim|split)\s*\(", usage):
        return FieldKind.STRING, None
    if re.search(rf"\b{escaped}\s*[!=]==?\s*(?:true|false)\b", usage):
        return FieldKind.BOOLEAN, None
    if re.search(rf"typeof\s+{escaped}\s*===?\s*['\"]boolean['\"]|\bBoolean\s*\(\s*{escaped}\s*\)", usage):
        return FieldKind.BOOLEAN, None
    return FieldKind.STRING, None


def _destructured_fields(body: str, type_inference: bool) -> tuple[list[FieldDescriptor], str | None]:
    fields: list[FieldDescriptor] = []
    request_type = None
    for match in _DESTRUCTURE.finditer(body):
        open_brace = match.end()
        close_brace = find_matching(body, open_brace)
        if close_brace is None:
            continue
        source = _FROM_BODY.match(body, close_brace + 1)
        if not source:
            continue
        request_type = request_type or source.group(1)
        usage = body[close_brace:]
        for entry in split_top_level(body[open_brace + 1:close_brace]):
            if entry.startswith("..."):
                continue
            name, _, target = entry.partition(":")
            name, has_default, _ = name.partition("=")
            name = name.strip()
            if not re.fullmatch(_IDENT, name):
                continue
            target = target.strip()
            has_default = has_default or "=" in target.split("{")[0]
            if target.startswith("{"):
                kind, hint = FieldKind.OBJECT, None
            else:
                kind, hint = infer_field_kind(name, usage, type_inference)
            fields.append(FieldDescriptor(name=name, kind=kind, semantic_hint=hint, required=not has_default))
    return fields, request_type


def _signature_request_type(params: str) -> str | None:
    """Third type argument of `Request<Params, ResBody, ReqBody>` in a parameter list."""
    start = re.search(r"\bRequest\s*<", params)
    if not start:
        return None
    depth = 0
    args: list[str] = []
    current = start.end()
    for i in range(start.end() - 1, len(params)):
        ch = params[i]
        if ch in "<{[(":
            depth += 1
        elif ch in ">}])":
            depth -= 1
            if depth == 0:
                args.append(params[current:i])
                break
        elif ch == "," and depth == 1:
            args.append(params[current:i])
            current = i + 1
    if len(args) >= 3 and re.fullmatch(_IDENT, args[2].strip()):
        return args[2].strip()
    return None


def _structural_match(keys: set[str], declared: Mapping[str, SchemaNode]) -> str | None:
    """Declared non-envelope type whose property names best overlap `keys`."""
    best: tuple[float, str] | None = None
    for name in sorted(declared):
        node = declared[name]
        if not node.properties or is_envelope(node):
            continue
        names = set(node.properties)
        overlap = len(keys & names)
        if not overlap:
            continue
        score = overlap / len(keys | names)
        if best is None or score > best[0]:
            best = (score, name)
    return best[1] if best else None


class _ResponseTyper:
    """Resolves the declared type carried by one response expression."""

    def __init__(self, body: str, declared: Mapping[str, SchemaNode]):
        self.declared = declared
        self.annotations: dict[str, tuple[str, str | None]] = {}
        self.literals: dict[str, str] = {}
        for match in _ANNOTATED_VAR.finditer(body):
            self.annotations[match.group(1)] = (match.group(2), match.group(3))
            self._record_literal(body, match.group(1), match.end())
        for match in _PLAIN_VAR.finditer(body):
            self._record_literal(body, match.group(1), match.end())

    def _record_literal(self, body: str, name: str, value_start: int) -> None:
        if body[value_start:value_start + 1] != "{":
            return
        end = find_matching(body, value_start)
        if end is not None:
            self.literals[name] = body[value_start:end + 1]

    def _is_declared(self, name: str | None) -> bool:
        return bool(name) and name in self.declared and not is_envelope(self.declared[name])

    def _is_envelope_name(self, name: str | None) -> bool:
        return bool(name) and name in self.declared and is_envelope(self.declared[name])

    def resolve(self, expression: str) -> str | None:
        expression = expression.strip()
        type_name = generic = literal = None
        cast = _CAST.search(expression)
        if cast:
            type_name = cast.group(1)
            expression = expression[: cast.start()].strip()
        if re.fullmatch(_IDENT, expression):
            annotated = self.annotations.get(expression)
            if annotated and not type_name:
                type_name, generic = annotated
            literal = self.literals.get(expression)
        elif expression.startswith("{"):
            literal = expression

        if self._is_declared(type_name):
            return type_name
        entries = object_entries(literal) if literal else {}
        envelope_literal = "success" in entries and ("data" in entries or "error" in entries)
        if self._is_envelope_name(type_name) or envelope_literal:
            return self._data_type(entries.get("data"), generic) or (type_name if self._is_envelope_name(type_name) else None)
        if entries:
            return _structural_match(set(entries), self.declared) or type_name
        return type_name

    def _data_type(self, data: str | None, generic: str | None) -> str | None:
        if generic:
            argument = re.match(rf"<\s*({_IDENT})", generic)
            if argument and self._is_declared(argument.group(1)):
                return argument.group(1)
        if not data:
            return None
        cast = _CAST.search(data)
        if cast and self._is_declared(cast.group(1)):
            return cast.group(1)
        if re.fullmatch(_IDENT, data):
            annotated = self.annotations.get(data)
            if annotated and self._is_declared(annotated[0]):
                return annotated[0]
            data = self.literals.get(data, "")
        if data.startswith("{"):
            return _structural_match(set(object_entries(data)), self.declared)
        return None


def analyze_controller(
    content: str,
    method_name: str,
    http_method: str | None = None,
    declared: Mapping[str, SchemaNode] | None = None,
    type_inference: bool = True,
) -> ControllerAnalysis:
    """Analyze one handler method of a controller file.

    A method that cannot be found yields an analysis with `found=False`.
    """
    located = find_method_body(content, method_name, http_method)
    if located is None:
        logger.debug("Handler %s not found", method_name)
        return ControllerAnalysis(method_name=method_name, found=False)
    resolved, body, params = located
    declared = declared or {}

    fields, request_type = _destructured_fields(body, type_inference)
    seen = {f.name for f in fields}
    for match in _BODY_MEMBER.finditer(body):
        name = match.group(1)
        if name in seen:
            continue
        seen.add(name)
        kind, hint = infer_field_kind(name, body[match.start():], type_inference)
        fields.append(FieldDescriptor(name=name, kind=kind, semantic_hint=hint, required=False))

    cast = _BODY_CAST.search(body) or _BODY_ANNOTATION.search(body)
    request_type = request_type or (cast.group(1) if cast else None) or _signature_request_type(params)

    analysis = ControllerAnalysis(method_name=resolved, input_fields=fields, request_type=request_type)
    analysis.observed_status_codes.update(int(code) for code in _STATUS.findall(body))

    typer = _ResponseTyper(body, declared)
    for match in _RESPONSE.finditer(body):
        code = int(match.group(1)) if match.group(1) else 200
        analysis.observed_status_codes.add(code)
        if code >= 400:
            continue
        close = find_matching(body, match.end() - 1)
        if close is None:
            continue
        type_name = typer.resolve(body[match.end():close])
        if type_name:
            analysis.response_type_by_status[code] = type_name
    return analysis
