from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from .core.enums import Role
from .core.security import decode_user_id, oauth2_scheme
from .database import get_db
from .models.user import User
from .schemas.access import ResolvedProfile
from .services.access_gate import evaluate_access
from .services.status_resolver import resolve_profile


def get_current_user(
    token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials.",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user_id = decode_user_id(token)
    if user_id is None:
        raise credentials_exception
    user = db.get(User, user_id)
    if user is None:
        raise credentials_exception
    return user


def require_access(*roles: Role):
    """Run the access gate for an endpoint; no roles means any approved role."""
    allowed_roles = frozenset(roles) if roles else None

    def _access_dependency(
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> ResolvedProfile:
        resolution = resolve_profile(db, current_user.id)
        decision = evaluate_access(
            identity_present=True,
            loading=False,
            profile=resolution.profile,
            allowed_roles=allowed_roles,
        )
        if not decision.granted:
            reason = decision.reason
            if resolution.failed and resolution.notices:
                reason = resolution.notices[0].description
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"outcome": decision.outcome.value, "reason": reason},
            )
        return resolution.profile

    return _access_dependency


def require_role(expected_role: Role):
    """Role check without the approval gate, for applicant-only endpoints."""

    def _role_dependency(
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> ResolvedProfile:
        resolution = resolve_profile(db, current_user.id)
        if resolution.profile is None or resolution.profile.role != expected_role:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role.")
        return resolution.profile

    return _role_dependency
