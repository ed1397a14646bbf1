"""Index of the names a source file imports and where they come from."""

import re
from pathlib import Path

_DEFAULT_IMPORT = re.compile(
    r"""import\s+(?:type\s+)?([A-Za-z_$][\w$]*)\s*(?:,\s*\{([^}]*)\})?\s*from\s*['"]([^'"]+)['"]"""
)
_NAMED_IMPORT = re.compile(r"""import\s+(?:type\s+)?\{([^}]*)\}\s*from\s*['"]([^'"]+)['"]""")
_NAMESPACE_IMPORT = re.compile(r"""import\s+\*\s+as\s+([A-Za-z_$][\w$]*)\s+from\s*['"]([^'"]+)['"]""")
_REQUIRE = re.compile(
    r"""(?:const|let|var)\s+([A-Za-z_$][\w$]*|\{[^}]*\})\s*=\s*require\(\s*['"]([^'"]+)['"]\s*\)"""
)

SOURCE_SUFFIXES = (".ts", ".tsx", ".js", ".mjs", ".cjs")


def _named(names: str) -> list[str]:
    result = []
    for item in names.split(","):
        item = item.strip()
        if not item:
            continue
        # `a as b` and `a: b` both bind the local name b
        for sep in (" as ", ":"):
            if sep in item:
                item = item.split(sep)[-1].strip()
        result.append(item.removeprefix("type ").strip())
    return result


def parse_imports(content: str) -> dict[str, str]:
    """Map each locally bound name to its module specifier."""
    imports: dict[str, str] = {}
    for match in _DEFAULT_IMPORT.finditer(content):
        imports[match.group(1)] = match.group(3)
        if match.group(2):
            for name in _named(match.group(2)):
                imports[name] = match.group(3)
    for match in _NAMED_IMPORT.finditer(content):
        for name in _named(match.group(1)):
            imports[name] = match.group(2)
    for match in _NAMESPACE_IMPORT.finditer(content):
        imports[match.group(1)] = match.group(2)
    for match in _REQUIRE.finditer(content):
        target = match.group(1)
        if target.startswith("{"):
            for name in _named(target.strip("{}")):
                imports[name] = match.group(2)
        else:
            imports[target] = match.group(2)
    return imports


def resolve_specifier(specifier: str, importer: Path) -> Path | None:
    """Resolve a relative module specifier to an existing source file."""
    if not specifier.startswith("."):
        return None
    base = (importer.parent / specifier).resolve()
    candidates = [base] if base.suffix in SOURCE_SUFFIXES else []
    candidates += [base.with_name(base.name + suffix) for suffix in SOURCE_SUFFIXES]
    candidates += [base / f"index{suffix}" for suffix in SOURCE_SUFFIXES]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None
