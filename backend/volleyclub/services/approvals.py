"""Status transitions for main-coach requests and club-coach assignments.

Each action runs in a single transaction: if any step fails the session is
rolled back and ``ActionFailed`` names the step that broke.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import ApprovalStatus, AssignmentStatus, Role
from ..core.security import generate_club_code
from ..models.club import Club, ClubCoachAssignment, ClubRepresentative
from ..models.coach_request import CoachMainRequest, CoachMainRequestDetail
from ..models.user import Profile
from .status_resolver import latest_coach_request

logger = logging.getLogger(__name__)

DECIDABLE_REQUEST_STATUSES = frozenset({ApprovalStatus.PENDING, ApprovalStatus.UNDER_REVIEW})
RESUBMITTABLE_REQUEST_STATUSES = frozenset({ApprovalStatus.PENDING, ApprovalStatus.REJECTED})
CLUB_CODE_ATTEMPTS = 5


class ApprovalError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RecordNotFound(ApprovalError):
    pass


class InvalidTransition(ApprovalError):
    pass


class ActionFailed(ApprovalError):
    def __init__(self, operation: str):
        super().__init__(f"Could not {operation}.")
        self.operation = operation


@dataclass
class CoachRequestQueueRow:
    request: CoachMainRequest
    full_name: str
    email: str


def list_pending_coach_requests(db: Session) -> list[CoachRequestQueueRow]:
    requests = (
        db.query(CoachMainRequest)
        .filter(CoachMainRequest.status.in_(DECIDABLE_REQUEST_STATUSES))
        .order_by(CoachMainRequest.created_at.desc(), CoachMainRequest.id.desc())
        .all()
    )
    user_ids = {request.user_id for request in requests}
    names: dict[int, str] = {}
    if user_ids:
        names = {
            profile.user_id: profile.full_name
            for profile in db.query(Profile).filter(Profile.user_id.in_(user_ids))
        }
    return [
        CoachRequestQueueRow(
            request=request,
            full_name=names.get(request.user_id, request.user.email),
            email=request.user.email,
        )
        for request in requests
    ]


def _upsert_detail(db: Session, request: CoachMainRequest) -> CoachMainRequestDetail:
    detail = (
        db.query(CoachMainRequestDetail)
        .filter(CoachMainRequestDetail.request_id == request.id)
        .first()
    )
    if detail is None:
        detail = CoachMainRequestDetail(request_id=request.id)
        db.add(detail)
    return detail


def _owner_profile(db: Session, user_id: int) -> Profile:
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    if profile is None:
        raise RecordNotFound("Applicant profile not found.")
    return profile


def decide_coach_request(
    db: Session,
    request_id: int,
    decision: ApprovalStatus,
    *,
    rejection_reason: str | None = None,
    admin_notes: str | None = None,
) -> CoachMainRequest:
    """Approve or reject a main-coach request and mirror the result on the profile."""
    request = db.get(CoachMainRequest, request_id)
    if request is None:
        raise RecordNotFound("Coach request not found.")
    if request.status not in DECIDABLE_REQUEST_STATUSES:
        raise InvalidTransition("Request already processed.")
    profile = _owner_profile(db, request.user_id)

    operation = "update coach request status"
    try:
        request.status = decision
        db.flush()
        operation = "update profile status"
        profile.status = decision
        db.flush()
        if decision == ApprovalStatus.REJECTED and (rejection_reason or admin_notes):
            operation = "record rejection details"
            detail = _upsert_detail(db, request)
            if rejection_reason:
                detail.rejection_reason = rejection_reason
            if admin_notes:
                detail.admin_notes = admin_notes
            db.flush()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to %s for coach request %s: %s", operation, request_id, exc)
        raise ActionFailed(operation) from exc
    db.refresh(request)
    logger.info("Coach request %s marked %s", request_id, decision.value)
    return request


def resubmit_additional_info(db: Session, user_id: int, additional_info: str) -> CoachMainRequest:
    """Store the applicant's extra information and send the request back to review.

    The rejection reason stays on the detail row.
    """
    request = latest_coach_request(db, user_id)
    if request is None:
        raise RecordNotFound("No coach request found for this account.")
    if request.status not in RESUBMITTABLE_REQUEST_STATUSES:
        raise InvalidTransition("Request is not open for resubmission.")
    profile = _owner_profile(db, user_id)

    operation = "save additional information"
    try:
        detail = _upsert_detail(db, request)
        detail.additional_info = additional_info
        db.flush()
        operation = "reset coach request status"
        request.status = ApprovalStatus.PENDING
        profile.status = ApprovalStatus.PENDING
        db.flush()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to %s for coach request %s: %s", operation, request.id, exc)
        raise ActionFailed(operation) from exc
    db.refresh(request)
    return request


def find_owned_club(db: Session, user_id: int) -> Club | None:
    representative = (
        db.query(ClubRepresentative)
        .filter(ClubRepresentative.user_id == user_id)
        .order_by(ClubRepresentative.id)
        .first()
    )
    return representative.club if representative else None


def can_manage_club(db: Session, profile_role: Role, user_id: int, club_id: int) -> bool:
    if profile_role == Role.ADMIN:
        return True
    return (
        db.query(ClubRepresentative)
        .filter(ClubRepresentative.user_id == user_id, ClubRepresentative.club_id == club_id)
        .first()
        is not None
    )


def list_pending_assignments(db: Session, club_id: int) -> list[ClubCoachAssignment]:
    return (
        db.query(ClubCoachAssignment)
        .filter(
            ClubCoachAssignment.club_id == club_id,
            ClubCoachAssignment.status == AssignmentStatus.PENDING,
        )
        .order_by(ClubCoachAssignment.created_at.desc(), ClubCoachAssignment.id.desc())
        .all()
    )


def decide_assignment(
    db: Session,
    assignment_id: int,
    decision: AssignmentStatus,
    *,
    actor_role: Role,
    actor_user_id: int,
) -> ClubCoachAssignment:
    """Approve or reject a secondary coach's request to join a club.

    The coach's profile is left untouched; the gate reads the assignment.
    """
    assignment = db.get(ClubCoachAssignment, assignment_id)
    if assignment is None or not can_manage_club(
        db, actor_role, actor_user_id, assignment.club_id
    ):
        raise RecordNotFound("Assignment not found.")
    if assignment.status != AssignmentStatus.PENDING:
        raise InvalidTransition("Assignment already processed.")

    try:
        assignment.status = decision
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to update club assignment %s: %s", assignment_id, exc)
        raise ActionFailed("update club assignment status") from exc
    db.refresh(assignment)
    logger.info("Club assignment %s marked %s", assignment_id, decision.value)
    return assignment


def unique_club_code(db: Session) -> str:
    for _ in range(CLUB_CODE_ATTEMPTS):
        code = generate_club_code()
        if db.query(Club.id).filter(Club.club_code == code).first() is None:
            return code
    raise ActionFailed("generate a unique club code")


def regenerate_club_code(db: Session, club: Club) -> Club:
    code = unique_club_code(db)
    try:
        club.club_code = code
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to regenerate code for club %s: %s", club.id, exc)
        raise ActionFailed("regenerate club code") from exc
    db.refresh(club)
    return club
