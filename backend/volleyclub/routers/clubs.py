from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..core.enums import AssignmentStatus, NoticeLevel, Role
from ..database import get_db
from ..dependencies import require_access
from ..models.club import Club
from ..schemas.access import Notice, ResolvedProfile
from ..schemas.approval import (
    AssignmentActionResult,
    AssignmentDecision,
    AssignmentQueueItem,
    AssignmentRead,
)
from ..schemas.club import ClubCodeRead, ClubRead
from ..services.approvals import (
    ActionFailed,
    InvalidTransition,
    RecordNotFound,
    can_manage_club,
    decide_assignment,
    find_owned_club,
    list_pending_assignments,
    regenerate_club_code,
)
from ..services.notifications import send_assignment_decision

router = APIRouter(prefix="/clubs", tags=["clubs"])


def _managed_club(db: Session, profile: ResolvedProfile, club_id: int) -> Club:
    club = db.get(Club, club_id)
    if not club or not can_manage_club(db, profile.role, profile.user_id, club_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Club not found.")
    return club


@router.get("/me", response_model=ClubRead)
def read_my_club(
    profile: ResolvedProfile = Depends(require_access(Role.COACH_MAIN)),
    db: Session = Depends(get_db),
) -> Club:
    club = find_owned_club(db, profile.user_id)
    if club is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Club not found.")
    return club


@router.get("/{club_id}/assignments", response_model=list[AssignmentQueueItem])
def list_club_assignments(
    club_id: int,
    profile: ResolvedProfile = Depends(require_access(Role.COACH_MAIN, Role.ADMIN)),
    db: Session = Depends(get_db),
) -> list[AssignmentQueueItem]:
    _managed_club(db, profile, club_id)
    items = []
    for assignment in list_pending_assignments(db, club_id):
        coach_profile = assignment.coach.profile
        items.append(
            AssignmentQueueItem(
                **AssignmentRead.model_validate(assignment).model_dump(),
                coach_full_name=coach_profile.full_name if coach_profile else assignment.coach.email,
                coach_email=assignment.coach.email,
            )
        )
    return items


@router.post("/assignments/{assignment_id}/decision", response_model=AssignmentActionResult)
def decide_club_assignment(
    assignment_id: int,
    payload: AssignmentDecision,
    background_tasks: BackgroundTasks,
    profile: ResolvedProfile = Depends(require_access(Role.COACH_MAIN, Role.ADMIN)),
    db: Session = Depends(get_db),
) -> AssignmentActionResult:
    decision = AssignmentStatus(payload.status)
    try:
        assignment = decide_assignment(
            db,
            assignment_id,
            decision,
            actor_role=profile.role,
            actor_user_id=profile.user_id,
        )
    except RecordNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    except InvalidTransition as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)
    except ActionFailed as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)

    approved = decision == AssignmentStatus.APPROVED
    coach = assignment.coach
    full_name = coach.profile.full_name if coach.profile else coach.email
    background_tasks.add_task(
        send_assignment_decision, coach.email, full_name, assignment.club.name, approved
    )
    notice = Notice(
        level=NoticeLevel.SUCCESS if approved else NoticeLevel.INFO,
        title="Entrenador aprobado" if approved else "Solicitud rechazada",
        description=(
            f"{full_name} ya puede acceder al club"
            if approved
            else f"La solicitud de {full_name} ha sido rechazada"
        ),
    )
    return AssignmentActionResult(assignment=AssignmentRead.model_validate(assignment), notice=notice)


@router.post("/{club_id}/code", response_model=ClubCodeRead)
def regenerate_code(
    club_id: int,
    profile: ResolvedProfile = Depends(require_access(Role.COACH_MAIN, Role.ADMIN)),
    db: Session = Depends(get_db),
) -> ClubCodeRead:
    club = _managed_club(db, profile, club_id)
    try:
        club = regenerate_club_code(db, club)
    except ActionFailed as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
    return ClubCodeRead(club_id=club.id, club_code=club.club_code)
