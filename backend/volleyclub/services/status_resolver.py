import logging
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..core.enums import NoticeLevel, Role
from ..models.club import ClubCoachAssignment
from ..models.coach_request import CoachMainRequest
from ..models.user import Profile
from ..schemas.access import Notice, ResolvedProfile

logger = logging.getLogger(__name__)

PROFILE_NOT_FOUND = Notice(
    level=NoticeLevel.INFO,
    title="Perfil no encontrado",
    description="No se encontró un perfil para este usuario. Por favor, completa tu información.",
)


@dataclass
class Resolution:
    profile: ResolvedProfile | None = None
    notices: list[Notice] = field(default_factory=list)
    failed: bool = False


def latest_coach_request(db: Session, user_id: int) -> CoachMainRequest | None:
    return (
        db.query(CoachMainRequest)
        .filter(CoachMainRequest.user_id == user_id)
        .order_by(CoachMainRequest.created_at.desc(), CoachMainRequest.id.desc())
        .first()
    )


def latest_assignment(db: Session, user_id: int) -> ClubCoachAssignment | None:
    return (
        db.query(ClubCoachAssignment)
        .filter(ClubCoachAssignment.coach_user_id == user_id)
        .order_by(ClubCoachAssignment.created_at.desc(), ClubCoachAssignment.id.desc())
        .first()
    )


def resolve_profile(db: Session, user_id: int) -> Resolution:
    """Load the caller's profile plus the status that gates its role.

    A missing profile is reported as an informational notice. Store errors are
    logged and reported as an error notice with ``failed`` set, so callers keep
    whatever state they had before.
    """
    try:
        profile = db.query(Profile).filter(Profile.user_id == user_id).first()
        if profile is None:
            return Resolution(notices=[PROFILE_NOT_FOUND])
        resolved = ResolvedProfile.model_validate(profile)
        if profile.role == Role.COACH_MAIN:
            request = latest_coach_request(db, user_id)
            resolved.request_status = request.status if request else None
        elif profile.role == Role.COACH_TEAM:
            assignment = latest_assignment(db, user_id)
            resolved.assignment_status = assignment.status if assignment else None
        return Resolution(profile=resolved)
    except (SQLAlchemyError, LookupError) as exc:
        # LookupError: a stored status outside the known enumerations.
        logger.error("Error fetching profile for user %s: %s", user_id, exc)
        return Resolution(
            notices=[
                Notice(
                    level=NoticeLevel.ERROR,
                    title="Error al cargar el perfil",
                    description="No se pudo cargar el perfil del usuario.",
                )
            ],
            failed=True,
        )


def make_resolver(session_factory: sessionmaker) -> Callable[[int], Resolution]:
    """Bind ``resolve_profile`` to a session factory, one session per call."""

    def _resolve(user_id: int) -> Resolution:
        with session_factory() as db:
            return resolve_profile(db, user_id)

    return _resolve
