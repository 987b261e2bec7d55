from __future__ import annotations

from dataclasses import dataclass

from orgscope.policy.scopes import AccessScope, Principal


@dataclass(frozen=True)
class AccessContext:
    """
    Per-request access context.

    Attached to:
    - request.state.access (FastAPI request lifetime)
    - Session.info["access"] (SQLAlchemy session lifetime)

    Rebuilt on every request; never cached across requests.
    """

    principal: Principal
    scope: AccessScope

    # Route decision (driven by config / decorators)
    scoped_listing: bool

    @property
    def user_id(self) -> str:
        return self.principal.user_id

    @property
    def role(self):
        return self.principal.role
