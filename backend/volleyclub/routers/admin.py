from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..core.enums import ApprovalStatus, NoticeLevel, Role
from ..database import get_db
from ..dependencies import require_access
from ..schemas.access import Notice, ResolvedProfile
from ..schemas.approval import (
    CoachRequestActionResult,
    CoachRequestQueueItem,
    CoachRequestRead,
    RequestDecision,
)
from ..services.approvals import (
    ActionFailed,
    InvalidTransition,
    RecordNotFound,
    decide_coach_request,
    list_pending_coach_requests,
)
from ..services.notifications import send_request_decision

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/coach-requests", response_model=list[CoachRequestQueueItem])
def list_coach_requests(
    _: ResolvedProfile = Depends(require_access(Role.ADMIN)),
    db: Session = Depends(get_db),
) -> list[CoachRequestQueueItem]:
    return [
        CoachRequestQueueItem(
            **CoachRequestRead.model_validate(row.request).model_dump(),
            user_full_name=row.full_name,
            user_email=row.email,
            club_name=row.request.club.name,
            club_city=row.request.club.city,
        )
        for row in list_pending_coach_requests(db)
    ]


@router.post("/coach-requests/{request_id}/decision", response_model=CoachRequestActionResult)
def decide_request(
    request_id: int,
    payload: RequestDecision,
    background_tasks: BackgroundTasks,
    _: ResolvedProfile = Depends(require_access(Role.ADMIN)),
    db: Session = Depends(get_db),
) -> CoachRequestActionResult:
    decision = ApprovalStatus(payload.status)
    try:
        request = decide_coach_request(
            db,
            request_id,
            decision,
            rejection_reason=payload.rejection_reason,
            admin_notes=payload.admin_notes,
        )
    except RecordNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    except InvalidTransition as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)
    except ActionFailed as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)

    approved = decision == ApprovalStatus.APPROVED
    full_name = request.user.profile.full_name if request.user.profile else request.user.email
    background_tasks.add_task(
        send_request_decision, request.user.email, full_name, approved, payload.rejection_reason
    )
    if approved:
        notice = Notice(
            level=NoticeLevel.SUCCESS,
            title="Solicitud Aprobada",
            description="El entrenador principal ha sido aprobado y puede acceder a la plataforma",
        )
    else:
        notice = Notice(
            level=NoticeLevel.INFO,
            title="Solicitud Rechazada",
            description="La solicitud ha sido rechazada",
        )
    return CoachRequestActionResult(request=CoachRequestRead.model_validate(request), notice=notice)
