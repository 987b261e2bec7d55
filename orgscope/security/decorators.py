from __future__ import annotations

from collections.abc import Callable


def require_roles(roles: list[str]) -> Callable:
    """
    Attach required roles to a route handler.

    The decorator does not check anything itself: `enforce_security` reads
    the metadata after routing and merges it with the YAML rule.
    """

    def decorator(fn: Callable) -> Callable:
        existing = set(getattr(fn, "__access_required_roles__", set()))
        setattr(fn, "__access_required_roles__", existing | {r.upper() for r in roles})
        return fn

    return decorator


def scoped_listing() -> Callable:
    """Narrow every ORM select of this handler to the caller's subtree."""

    def decorator(fn: Callable) -> Callable:
        setattr(fn, "__access_scoped_listing__", True)
        return fn

    return decorator
