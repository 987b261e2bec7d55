from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from orgscope.db.session import get_db
from orgscope.models.security import User
from orgscope.schemas.security import MeOut, ScopeOut, UserOut
from orgscope.security.context import AccessContext
from orgscope.security.decorators import require_roles, scoped_listing
from orgscope.security.dependencies import get_access, get_current_user

router = APIRouter(tags=["users"])


@router.get("/me", response_model=MeOut)
def me(user=Depends(get_current_user), access: AccessContext = Depends(get_access)) -> MeOut:
    scope = access.scope
    return MeOut(
        user=UserOut.model_validate(user),
        scope=ScopeOut(
            scope_type=scope.descriptor.scope_type.value,
            scope_id=scope.descriptor.scope_id,
            localite_id=scope.localite_id,
            overridden=scope.overridden,
        ),
    )


@router.get("/users", response_model=list[UserOut])
@require_roles(["LOCALITE", "OWNER", "SOUS_LOCALITE_ADMIN"])
@scoped_listing()
def list_users(db: Session = Depends(get_db)) -> list[User]:
    # No config entry required: decorators provide rule metadata, enforced globally.
    return list(db.scalars(select(User).order_by(User.email)).all())
