import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..core.enums import ApprovalStatus, AssignmentStatus, Role
from ..core.security import create_access_token, get_password_hash, verify_password
from ..database import get_db
from ..dependencies import get_current_user
from ..models.club import Club, ClubCoachAssignment, ClubRepresentative
from ..models.coach_request import CoachMainRequest
from ..models.user import Profile, User
from ..schemas.user import (
    MainCoachRegistration,
    ProfileRead,
    RegistrationRead,
    SecondaryCoachRegistration,
    Token,
    UserRead,
)
from ..services.approvals import ActionFailed, unique_club_code
from ..services.notifications import send_join_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _ensure_email_available(db: Session, email: str) -> None:
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered.")


def _create_identity(db: Session, *, email: str, password: str, full_name: str, role: Role) -> User:
    user = User(email=email, password_hash=get_password_hash(password))
    db.add(user)
    db.flush()
    user.profile = Profile(
        user_id=user.id,
        full_name=full_name,
        role=role,
        status=ApprovalStatus.PENDING,
    )
    db.flush()
    return user


@router.post(
    "/register/main-coach", response_model=RegistrationRead, status_code=status.HTTP_201_CREATED
)
def register_main_coach(payload: MainCoachRegistration, db: Session = Depends(get_db)) -> RegistrationRead:
    _ensure_email_available(db, payload.email)
    try:
        club_code = unique_club_code(db)
    except ActionFailed as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
    user = _create_identity(
        db,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        role=Role.COACH_MAIN,
    )
    club = Club(
        name=payload.club_name,
        city=payload.city,
        province=payload.province,
        country=payload.country,
        email=payload.email,
        phone=payload.phone,
        address=payload.address,
        club_code=club_code,
    )
    db.add(club)
    db.flush()
    db.add(CoachMainRequest(user_id=user.id, club_id=club.id, status=ApprovalStatus.PENDING))
    db.add(
        ClubRepresentative(
            club_id=club.id,
            user_id=user.id,
            full_name=payload.full_name,
            personal_email=payload.email,
        )
    )
    db.commit()
    db.refresh(user)
    logger.info("Main coach %s registered club %s", user.id, club.id)
    return RegistrationRead(
        user=UserRead.model_validate(user),
        profile=ProfileRead.model_validate(user.profile),
        club_id=club.id,
        club_name=club.name,
    )


@router.post(
    "/register/secondary-coach",
    response_model=RegistrationRead,
    status_code=status.HTTP_201_CREATED,
)
def register_secondary_coach(
    payload: SecondaryCoachRegistration,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> RegistrationRead:
    club = db.query(Club).filter(Club.club_code == payload.club_code.strip().upper()).first()
    if club is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid club code.")
    _ensure_email_available(db, payload.email)
    user = _create_identity(
        db,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        role=Role.COACH_TEAM,
    )
    db.add(
        ClubCoachAssignment(
            club_id=club.id, coach_user_id=user.id, status=AssignmentStatus.PENDING
        )
    )
    db.commit()
    db.refresh(user)
    recipients = [rep.personal_email for rep in club.representatives]
    if recipients:
        background_tasks.add_task(send_join_request, recipients, payload.full_name, club.name)
    return RegistrationRead(
        user=UserRead.model_validate(user),
        profile=ProfileRead.model_validate(user.profile),
        club_id=club.id,
        club_name=club.name,
    )


@router.post("/login", response_model=Token)
def login(email: str, password: str, db: Session = Depends(get_db)) -> Token:
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials.")
    return Token(access_token=create_access_token(_token_claims(user)))


@router.get("/me", response_model=UserRead)
def read_me(current_user: User = Depends(get_current_user)) -> User:
    return current_user


@router.post("/refresh", response_model=Token)
def refresh_token(current_user: User = Depends(get_current_user)) -> Token:
    return Token(access_token=create_access_token(_token_claims(current_user)))


def _token_claims(user: User) -> dict:
    claims = {"sub": str(user.id)}
    if user.profile is not None:
        claims["role"] = user.profile.role.value
    return claims
