"""
Typed access failures.

None of these are transient: callers surface them as-is and never retry.
The HTTP mapping lives in `orgscope.main`.
"""

from __future__ import annotations


class AccessError(Exception):
    """Base class; `code` is the stable reason kept in logs."""

    code = "ACCESS_ERROR"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class ScopeMissing(AccessError):
    """The principal has no resolvable position in the hierarchy."""

    code = "SCOPE_MISSING"


class Forbidden(AccessError):
    """Resolved principal, but the target is outside its subtree or at the wrong level."""

    code = "FORBIDDEN"


class MeetingLocked(Forbidden):
    code = "MEETING_LOCKED"


class IneligibleMember(AccessError):
    """Member's age bracket does not match the bureau group."""

    code = "INELIGIBLE_MEMBER"


class OutOfScope(AccessError):
    """Member's Section is not inside the bureau post's scope."""

    code = "OUT_OF_SCOPE"


class NotFound(AccessError):
    code = "NOT_FOUND"
