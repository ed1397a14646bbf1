"""Sub-router mount manifest parser.

The routes index (`routes/index.ts`) mounts each routing module under a
prefix with `router.use('/auth', authRoutes)`. This module turns those
statements into an effective base path per routing module.
"""

import logging
import re
from pathlib import Path

from .base import join_paths
from .imports import SOURCE_SUFFIXES, parse_imports
from .scanning import find_matching, split_top_level, strip_comments, unquote

logger = logging.getLogger(__name__)

COMMON_ROUTE_GROUPS = ("auth", "users", "payments", "transactions", "health", "docs", "test")

_USE_CALL = re.compile(r"\.\s*use\s*\(")
_REQUIRE_ARG = re.compile(r"""^require\(\s*['"]([^'"]+)['"]\s*\)""")
_ROUTE_SUFFIX = re.compile(r"(?:[._-]?(?:routes|router|route))$", re.IGNORECASE)


def module_stem(name: str) -> str:
    """Logical routing module for a file stem or router variable.

    `auth.routes`, `authRoutes`, `auth-router` and `auth` all map to `auth`.
    """
    stem = _ROUTE_SUFFIX.sub("", name)
    return stem or name


def _module_for(reference: str, imports: dict[str, str]) -> str | None:
    reference = reference.strip()
    required = _REQUIRE_ARG.match(reference)
    if required:
        return module_stem(Path(required.group(1)).stem)
    if not re.fullmatch(r"[A-Za-z_$][\w$]*", reference):
        return None
    if reference in imports:
        name = Path(imports[reference]).name
        for suffix in SOURCE_SUFFIXES:
            name = name.removesuffix(suffix)
        return module_stem(name)
    return module_stem(reference)


def parse_mounts(content: str, base_path: str) -> dict[str, str]:
    """Map routing module names to their mounted base path."""
    text = strip_comments(content)
    imports = parse_imports(content)
    mounts: dict[str, str] = {}
    for match in _USE_CALL.finditer(text):
        open_paren = match.end() - 1
        close_paren = find_matching(text, open_paren)
        if close_paren is None:
            continue
        args = split_top_level(text[open_paren + 1:close_paren])
        if len(args) < 2:
            continue
        prefix = unquote(args[0])
        if prefix is None:
            continue
        module = _module_for(args[-1], imports)
        if module:
            mounts[module] = join_paths(base_path, prefix)
            logger.debug("Found router mount: %s -> %s", module, mounts[module])
    return mounts


def load_mounts(routes_dir: Path, base_path: str) -> dict[str, str]:
    """Read the routes index and compute each module's base path.

    No index: empty mapping, so every module uses `base_path`.
    Index without mounts: the common route-group fallback table.
    """
    index = next(
        (routes_dir / f"index{suffix}" for suffix in (".ts", ".js", ".mjs", ".cjs") if (routes_dir / f"index{suffix}").is_file()),
        None,
    )
    if index is None:
        logger.info("No index found in %s, using default base path", routes_dir)
        return {}
    mounts = parse_mounts(index.read_text(encoding="utf-8"), base_path)
    if not mounts:
        logger.info("No router mounts found in %s, using default route groups", index.name)
        mounts = {name: join_paths(base_path, name) for name in COMMON_ROUTE_GROUPS}
    return mounts
