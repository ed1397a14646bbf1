"""Source discovery: routing files and the handler file that backs each one."""

from pathlib import Path

from .imports import SOURCE_SUFFIXES
from .mounts import module_stem

CONTROLLER_PATTERNS = ("{name}controller", "{name}.controller", "{name}_controller", "{name}-controller", "{name}")

_SKIPPED_MARKERS = (".d.ts", ".test.", ".spec.")


def source_stem(path: Path) -> str:
    """File name without its source suffix (`auth.routes.ts` -> `auth.routes`)."""
    name = path.name
    for suffix in SOURCE_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return path.stem


def detect_source_files(directory: Path) -> list[Path]:
    """List analysable source files below `directory`, sorted by relative path.

    The sort order is the documented tie-breaker for duplicate registrations.
    """
    if not directory.is_dir():
        return []
    files = [
        path
        for path in directory.rglob("*")
        if path.is_file()
        and path.suffix in SOURCE_SUFFIXES
        and not any(marker in path.name for marker in _SKIPPED_MARKERS)
    ]
    return sorted(files, key=lambda p: p.relative_to(directory).as_posix())


def plural_variants(name: str) -> list[str]:
    """Singular/plural spellings to try after `name` itself."""
    lowered = name.lower()
    if lowered.endswith("ies"):
        return [name[:-3] + "y"]
    if lowered.endswith(("ses", "xes", "ches", "shes")):
        return [name[:-2], name[:-1]]
    if lowered.endswith("s"):
        return [name[:-1]]
    if lowered.endswith("y") and len(name) > 1 and lowered[-2] not in "aeiou":
        return [name[:-1] + "ies"]
    return [name + "s"]


def _base_names(route_stem: str, handler_object: str | None) -> list[str]:
    names: list[str] = []
    if handler_object:
        names.append(handler_object)
        trimmed = handler_object[: -len("controller")] if handler_object.lower().endswith("controller") else ""
        if trimmed:
            names.append(trimmed)
    module = module_stem(route_stem)
    names.extend([route_stem, module])
    expanded: list[str] = []
    for name in names:
        for candidate in [name, *plural_variants(name)]:
            if candidate and candidate.lower() not in (e.lower() for e in expanded):
                expanded.append(candidate)
    return expanded


def find_controller_file(
    route_stem: str,
    controllers_dir: Path,
    handler_object: str | None = None,
) -> Path | None:
    """Find the handler-implementation file for a routing module.

    Candidates come from the handler reference's object (`authController`)
    and from the route file's stem, each tried with the usual controller
    naming patterns and a singular/plural fallback. Matching ignores case.
    """
    files = detect_source_files(controllers_dir)
    if not files:
        return None
    index: dict[str, Path] = {}
    for path in files:
        index.setdefault(source_stem(path).lower(), path)

    for name in _base_names(route_stem, handler_object):
        for pattern in CONTROLLER_PATTERNS:
            key = pattern.format(name=name.lower())
            if key in index:
                return index[key]
    return None
