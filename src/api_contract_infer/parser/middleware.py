"""Middleware classifier - tags registrations with auth and validation markers."""

import re
from collections.abc import Iterable

from pydantic import BaseModel

from .base import RouteDescriptor

DEFAULT_AUTH_MARKERS = (
    "authenticate",
    "requireAuth",
    "requireAdmin",
    "isAuthenticated",
    "verifyToken",
    "protect",
    "ensureAuthenticated",
    "authorize",
    "requireRole",
)

VALIDATION_CALLS = ("validate", "validateBody", "validateRequest", "validator", "celebrate")

_CALLEE = re.compile(r"^\s*(?:new\s+)?([A-Za-z_$][\w$]*(?:\s*\.\s*[A-Za-z_$][\w$]*)*)")


class MiddlewareTags(BaseModel):
    """Classification of one registration's middleware chain."""

    requires_auth: bool = False
    auth_middleware: list[str] = []
    validation_middleware: list[str] = []


def middleware_name(expression: str) -> str | None:
    """Reduce a middleware argument to its callee name.

    `authenticate` -> `authenticate`, `requireRole('admin')` -> `requireRole`,
    `passport.authenticate('jwt')` -> `passport.authenticate`.
    Inline functions and literals have no name.
    """
    expression = expression.strip()
    if expression.startswith(("(", "async", "function", "[", "{", "'", '"', "`")):
        return None
    match = _CALLEE.match(expression)
    if not match:
        return None
    return re.sub(r"\s+", "", match.group(1))


def is_validation_call(name: str) -> bool:
    return name.split(".")[-1] in VALIDATION_CALLS


def is_auth_marker(name: str, markers: Iterable[str] = DEFAULT_AUTH_MARKERS) -> bool:
    lowered = name.lower()
    return any(marker.lower() in lowered for marker in markers)


def classify(route: RouteDescriptor, markers: Iterable[str] = DEFAULT_AUTH_MARKERS) -> MiddlewareTags:
    """Tag a route with the auth and validation middleware it carries."""
    markers = tuple(markers)
    tags = MiddlewareTags()
    for name in route.middleware_names:
        if is_validation_call(name):
            tags.validation_middleware.append(name)
        elif is_auth_marker(name, markers):
            tags.auth_middleware.append(name)
    tags.requires_auth = bool(tags.auth_middleware)
    return tags
