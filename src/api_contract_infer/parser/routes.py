"""Route extractor - finds endpoint registrations in a routing file.

A registration is a verb call (`router.post(...)`, `app.get(...)`) whose
first argument is a quoted path literal. The argument list is delimited with
a balanced scan so that inline handlers, nested calls and line breaks do not
cut it short.
"""

import logging
import re

from .base import HTTP_METHODS, RouteDescriptor, canonical_path, join_paths
from .middleware import is_validation_call, middleware_name
from .scanning import find_matching, skip_string, split_top_level, strip_comments, unquote

logger = logging.getLogger(__name__)

_VERB_CALL = re.compile(r"\.\s*(" + "|".join(m.lower() for m in HTTP_METHODS) + r")\s*\(\s*(?=['\"`])")
_HANDLER_REF = re.compile(
    r"([A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*)(?:\.bind\([^()]*\))?\s*\)*\s*$"
)
_FUNCTION_KEYWORD = re.compile(r"\bfunction\b")
_ANONYMOUS = re.compile(
    r"^(?:async\s+)?(?:function\s*[\w$]*\s*)?\(\s*[A-Za-z_$][\w$]*(?:\s*:\s*[^,()]+)?\s*,"
    r"\s*[A-Za-z_$][\w$]*(?:\s*:\s*[^,()]+)?\s*(?:,[^()]*)?\)"
)


def operation_id_for(method: str, raw_path: str) -> str:
    """Synthesize an operation id from method and path segments.

    `POST /users/:id/reset-password` -> `postUsersIdResetpassword`.
    """
    segments = [re.sub(r"[^A-Za-z0-9]", "", part) for part in raw_path.split("/")]
    segments = [s for s in segments if s]
    words = [
        seg.lower() if index == 0 else seg[:1].upper() + seg[1:].lower()
        for index, seg in enumerate(segments)
    ]
    tail = "".join(words)
    return method.lower() + tail[:1].upper() + tail[1:]


def _handler_reference(expression: str) -> str | None:
    """Final dotted identifier of the handler argument, minus a `.bind(...)` suffix."""
    if _ANONYMOUS.match(expression.strip()) or "=>" in expression or _FUNCTION_KEYWORD.search(expression):
        return None
    match = _HANDLER_REF.search(expression.strip())
    if not match:
        return None
    return match.group(1)


def _validation_ref(args: list[str]) -> str | None:
    for arg in args:
        name = middleware_name(arg)
        if not name or not is_validation_call(name):
            continue
        open_at = arg.find("(")
        if open_at == -1:
            continue
        close_at = find_matching(arg, open_at)
        if close_at is None:
            continue
        inner = arg[open_at + 1:close_at].strip()
        if inner:
            return inner
    return None


def extract_routes(
    content: str,
    base_path: str = "",
    source: str = "",
    warnings: list[str] | None = None,
) -> list[RouteDescriptor]:
    """Extract every endpoint registration from one routing file, left to right.

    Malformed registrations (unterminated argument lists) are skipped and, when
    `warnings` is given, reported there.
    """
    text = strip_comments(content)
    routes: list[RouteDescriptor] = []
    position = 0
    while True:
        match = _VERB_CALL.search(text, position)
        if not match:
            break
        method = match.group(1).upper()
        open_paren = text.index("(", match.start())
        close_paren = find_matching(text, open_paren)
        if close_paren is None:
            message = f"{source or '<routes>'}: unterminated {method} registration at offset {match.start()}"
            logger.warning(message)
            if warnings is not None:
                warnings.append(message)
            position = match.end()
            continue
        position = close_paren + 1

        path_end = skip_string(text, match.end())
        raw_path = unquote(text[match.end():path_end]) if path_end else None
        if raw_path is None or not raw_path.startswith("/"):
            continue

        args = split_top_level(text[open_paren + 1:close_paren])[1:]
        routes.append(_build_descriptor(method, raw_path, args, base_path, source))
    return routes


def _build_descriptor(method: str, raw_path: str, args: list[str], base_path: str, source: str) -> RouteDescriptor:
    handler_ref = _handler_reference(args[-1]) if args else None
    middleware_args: list[str] = []
    for arg in args[:-1]:
        end = find_matching(arg, 0) if arg.startswith("[") else None
        if end is not None:
            middleware_args.extend(split_top_level(arg[1:end]))
        else:
            middleware_args.append(arg)
    names = [name for name in (middleware_name(a) for a in middleware_args) if name]

    operation_id = handler_ref.split(".")[-1] if handler_ref else None
    if not operation_id or operation_id in ("bind", "unknown"):
        operation_id = operation_id_for(method, raw_path)

    return RouteDescriptor(
        method=method,
        raw_path=raw_path,
        normalized_path=join_paths(base_path, canonical_path(raw_path)),
        middleware_names=tuple(names),
        validation_schema_ref=_validation_ref(middleware_args),
        handler_reference=handler_ref,
        operation_id=operation_id,
        source=source,
    )
