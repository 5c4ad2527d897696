import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session, sessionmaker

from ..core.config import get_settings
from ..core.enums import ApprovalStatus, NoticeLevel, Role
from ..core.security import decode_user_id
from ..database import get_db, get_session_factory
from ..dependencies import get_current_user, require_role
from ..models.user import User
from ..schemas.access import AccessState, Notice, ResolvedProfile, RouteCheck
from ..schemas.approval import (
    AdditionalInfoSubmit,
    CoachRequestActionResult,
    CoachRequestRead,
    RequestDetailRead,
    RequestStatusScreen,
)
from ..services.access_gate import PROTECTED_ROUTES, evaluate_access, status_label
from ..services.approvals import (
    ActionFailed,
    InvalidTransition,
    RecordNotFound,
    resubmit_additional_info,
)
from ..services.profile_store import ProfileStore
from ..services.status_resolver import latest_coach_request, make_resolver, resolve_profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/access", tags=["access"])


def _refresh_hint(profile: ResolvedProfile | None) -> float | None:
    if profile is not None and profile.status == ApprovalStatus.PENDING:
        return get_settings().profile_refresh_interval_seconds
    return None


@router.get("/me", response_model=AccessState)
def read_access_state(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AccessState:
    resolution = resolve_profile(db, current_user.id)
    decision = evaluate_access(identity_present=True, loading=False, profile=resolution.profile)
    return AccessState(
        profile=resolution.profile,
        decision=decision,
        notices=resolution.notices,
        refresh_after_seconds=_refresh_hint(resolution.profile),
    )


@router.get("/check", response_model=RouteCheck)
def check_route(
    path: str = Query(..., description="Front-end route to evaluate, e.g. /admin"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RouteCheck:
    normalized = "/" + path.strip("/")
    if normalized not in PROTECTED_ROUTES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Route not found.")
    allowed_roles = PROTECTED_ROUTES[normalized]
    resolution = resolve_profile(db, current_user.id)
    decision = evaluate_access(
        identity_present=True,
        loading=False,
        profile=resolution.profile,
        allowed_roles=allowed_roles,
    )
    return RouteCheck(
        path=normalized,
        allowed_roles=sorted(allowed_roles, key=lambda role: role.value) if allowed_roles else None,
        decision=decision,
    )


@router.get("/request-status", response_model=RequestStatusScreen)
def read_request_status(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RequestStatusScreen:
    request = latest_coach_request(db, current_user.id)
    if request is None:
        return RequestStatusScreen()
    detail = request.detail
    rejected = request.status == ApprovalStatus.REJECTED
    return RequestStatusScreen(
        request=CoachRequestRead.model_validate(request),
        detail=RequestDetailRead.model_validate(detail) if detail else None,
        label=status_label(request.status),
        rejection_reason=detail.rejection_reason if rejected and detail else None,
        can_resubmit=rejected,
    )


@router.post("/request/additional-info", response_model=CoachRequestActionResult)
def submit_additional_info(
    payload: AdditionalInfoSubmit,
    profile: ResolvedProfile = Depends(require_role(Role.COACH_MAIN)),
    db: Session = Depends(get_db),
) -> CoachRequestActionResult:
    try:
        request = resubmit_additional_info(db, profile.user_id, payload.additional_info)
    except RecordNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    except InvalidTransition as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)
    except ActionFailed as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
    return CoachRequestActionResult(
        request=CoachRequestRead.model_validate(request),
        notice=Notice(
            level=NoticeLevel.SUCCESS,
            title="Información enviada",
            description="Tu información adicional ha sido enviada para revisión",
        ),
    )


@router.websocket("/stream")
async def stream_access_state(
    websocket: WebSocket,
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Push the caller's resolved access state whenever it changes.

    Requires JWT token in query parameter: ?token=<jwt_token>. Sending the text
    ``refresh`` forces a new resolution.

    The store only polls while the profile is ``pending``. After a rejection it
    is idle, so a client that resubmits through ``/access/request/additional-info``
    sends ``refresh`` to pick up the new ``pending`` state and resume polling.
    """
    await websocket.accept()
    token = websocket.query_params.get("token")
    user_id = decode_user_id(token) if token else None
    if user_id is None:
        await websocket.close(code=1008, reason="Invalid authentication token")
        return

    last_sent: dict | None = None

    async def push(store: ProfileStore) -> None:
        nonlocal last_sent
        state = AccessState(
            profile=store.profile,
            decision=store.decide(),
            notices=store.drain_notices(),
            refresh_after_seconds=_refresh_hint(store.profile),
        ).model_dump(mode="json")
        if state == last_sent:
            return
        last_sent = state
        await websocket.send_json(state)

    store = ProfileStore(make_resolver(session_factory), on_change=push)
    try:
        await store.set_identity(user_id)
        while True:
            message = await websocket.receive_text()
            if message.strip() == "refresh":
                await store.refresh()
    except WebSocketDisconnect:
        logger.info("Access stream disconnected for user %s", user_id)
    finally:
        await store.close()
