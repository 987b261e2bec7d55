from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session, with_loader_criteria


@event.listens_for(Session, "do_orm_execute")
def _apply_scope_filters(execute_state) -> None:
    """
    Transparent hierarchy scoping for list routes.

    On routes flagged `scoped`, `db.scalars(select(Meeting))` only returns
    meetings inside the caller's subtree. Detail routes are left unfiltered so
    the policies can tell an out-of-scope record (403) from a missing one (404).
    """

    if not execute_state.is_select:
        return

    access = execute_state.session.info.get("access")
    if access is None or not access.scoped_listing:
        return

    # Local import to avoid cycles.
    from orgscope.policy.queries import SCOPED_MODELS  # noqa: WPS433 (local import)

    stmt = execute_state.statement
    for model, build_filter in SCOPED_MODELS.items():
        stmt = stmt.options(with_loader_criteria(model, build_filter(access.scope)))

    execute_state.statement = stmt
