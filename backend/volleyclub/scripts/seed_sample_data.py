from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from volleyclub.core.enums import ApprovalStatus, AssignmentStatus, Role
from volleyclub.core.security import get_password_hash
from volleyclub.database import SessionLocal
from volleyclub.models.club import Club, ClubCoachAssignment, ClubRepresentative
from volleyclub.models.coach_request import CoachMainRequest
from volleyclub.models.user import Profile, User
from volleyclub.services.approvals import unique_club_code

logger = logging.getLogger(__name__)


def ensure_user(
    db: Session,
    *,
    full_name: str,
    email: str,
    role: Role,
    password: str,
    status: ApprovalStatus | None,
) -> User:
    user = db.query(User).filter_by(email=email).first()
    if user:
        return user
    user = User(email=email, password_hash=get_password_hash(password))
    db.add(user)
    db.flush()
    db.add(Profile(user_id=user.id, full_name=full_name, role=role, status=status))
    db.flush()
    return user


def ensure_club_with_request(db: Session, *, coach: User, name: str) -> Club:
    club = db.query(Club).filter_by(name=name).first()
    if club:
        return club
    club = Club(
        name=name,
        city="Rosario",
        province="Santa Fe",
        country="Argentina",
        email=coach.email,
        club_code=unique_club_code(db),
    )
    db.add(club)
    db.flush()
    db.add(
        ClubRepresentative(
            club_id=club.id,
            user_id=coach.id,
            full_name=coach.profile.full_name,
            personal_email=coach.email,
        )
    )
    db.add(CoachMainRequest(user_id=coach.id, club_id=club.id, status=ApprovalStatus.PENDING))
    db.flush()
    return club


def ensure_assignment(db: Session, *, club: Club, coach: User) -> ClubCoachAssignment:
    assignment = (
        db.query(ClubCoachAssignment)
        .filter_by(club_id=club.id, coach_user_id=coach.id)
        .first()
    )
    if assignment:
        return assignment
    assignment = ClubCoachAssignment(
        club_id=club.id, coach_user_id=coach.id, status=AssignmentStatus.PENDING
    )
    db.add(assignment)
    db.flush()
    return assignment


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    db = SessionLocal()
    try:
        ensure_user(
            db,
            full_name="Admin Federación",
            email="admin@volley.example.com",
            role=Role.ADMIN,
            password="adminpass123",
            status=ApprovalStatus.APPROVED,
        )
        main_coach = ensure_user(
            db,
            full_name="Laura Principal",
            email="laura@volley.example.com",
            role=Role.COACH_MAIN,
            password="coachpass123",
            status=ApprovalStatus.PENDING,
        )
        club = ensure_club_with_request(db, coach=main_coach, name="Club Atlético Rosario Voley")
        team_coach = ensure_user(
            db,
            full_name="Martín Asistente",
            email="martin@volley.example.com",
            role=Role.COACH_TEAM,
            password="coachpass123",
            status=ApprovalStatus.PENDING,
        )
        ensure_assignment(db, club=club, coach=team_coach)
        db.commit()
        logger.info("Seed complete. Club code for %s: %s", club.name, club.club_code)
    finally:
        db.close()


if __name__ == "__main__":
    main()
