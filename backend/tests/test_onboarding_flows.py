import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.websockets import WebSocketDisconnect

from volleyclub.core.enums import ApprovalStatus, AssignmentStatus, Role
from volleyclub.core.security import get_password_hash
from volleyclub.models.club import Club, ClubCoachAssignment
from volleyclub.models.coach_request import CoachMainRequest, CoachMainRequestDetail
from volleyclub.models.user import Profile, User


def register_main_coach(
    client: TestClient,
    full_name: str,
    email: str,
    club_name: str = "Club Voley Norte",
    password: str = "password123",
) -> dict:
    response = client.post(
        "/auth/register/main-coach",
        json={
            "full_name": full_name,
            "email": email,
            "password": password,
            "club_name": club_name,
            "city": "Córdoba",
            "province": "Córdoba",
            "country": "Argentina",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def register_secondary_coach(
    client: TestClient, full_name: str, email: str, club_code: str, password: str = "password123"
):
    return client.post(
        "/auth/register/secondary-coach",
        json={
            "full_name": full_name,
            "email": email,
            "password": password,
            "club_code": club_code,
        },
    )


def login(client: TestClient, email: str, password: str = "password123") -> str:
    response = client.post(
        "/auth/login",
        params={"email": email, "password": password},
    )
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def create_admin(db: Session, email: str = "admin@example.com", password: str = "password123") -> User:
    user = User(email=email, password_hash=get_password_hash(password))
    db.add(user)
    db.flush()
    db.add(Profile(user_id=user.id, full_name="Admin", role=Role.ADMIN, status=ApprovalStatus.APPROVED))
    db.commit()
    return user


def admin_token(client: TestClient, db: Session) -> str:
    create_admin(db)
    return login(client, "admin@example.com")


def pending_request_id(client: TestClient, token: str, email: str) -> int:
    response = client.get("/admin/coach-requests", headers=auth_header(token))
    assert response.status_code == 200, response.text
    return next(item["id"] for item in response.json() if item["user_email"] == email)


def decide(client: TestClient, token: str, request_id: int, status: str, **extra):
    return client.post(
        f"/admin/coach-requests/{request_id}/decision",
        json={"status": status, **extra},
        headers=auth_header(token),
    )


def approved_main_coach(client: TestClient, admin: str, email: str, club_name: str) -> tuple[str, dict]:
    registration = register_main_coach(client, "Owner " + club_name, email, club_name=club_name)
    response = decide(client, admin, pending_request_id(client, admin, email), "approved")
    assert response.status_code == 200, response.text
    return login(client, email), registration


def club_code(db: Session, club_id: int) -> str:
    db.expire_all()
    return db.get(Club, club_id).club_code


def access_state(client: TestClient, token: str) -> dict:
    response = client.get("/access/me", headers=auth_header(token))
    assert response.status_code == 200, response.text
    return response.json()


def test_main_coach_registration_waits_on_request_status(client: TestClient):
    registration = register_main_coach(client, "Laura Principal", "laura@example.com")
    assert registration["profile"]["role"] == "coach_main"
    assert registration["profile"]["status"] == "pending"

    token = login(client, "laura@example.com")
    state = access_state(client, token)
    assert state["profile"]["request_status"] == "pending"
    assert state["decision"]["outcome"] == "request_status"
    assert state["refresh_after_seconds"] == 5.0

    club = client.get("/clubs/me", headers=auth_header(token))
    assert club.status_code == 403
    assert club.json()["detail"]["outcome"] == "request_status"


def test_main_coach_without_request_row_is_not_let_through(client: TestClient, db_session: Session):
    register_main_coach(client, "Sin Solicitud", "nosolicitud@example.com")
    db_session.query(CoachMainRequest).delete()
    db_session.commit()

    state = access_state(client, login(client, "nosolicitud@example.com"))
    assert state["profile"]["request_status"] is None
    assert state["decision"]["outcome"] == "request_status"

    screen = client.get(
        "/access/request-status", headers=auth_header(login(client, "nosolicitud@example.com"))
    )
    assert screen.status_code == 200
    assert screen.json()["request"] is None
    assert screen.json()["can_resubmit"] is False


def test_duplicate_email_is_rejected(client: TestClient):
    register_main_coach(client, "Laura Principal", "laura@example.com")
    response = client.post(
        "/auth/register/main-coach",
        json={
            "full_name": "Otra Laura",
            "email": "laura@example.com",
            "password": "password123",
            "club_name": "Otro Club",
            "city": "Rosario",
            "province": "Santa Fe",
            "country": "Argentina",
        },
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered."


def test_unauthenticated_calls_require_login(client: TestClient):
    assert client.get("/access/me").status_code == 401
    assert client.get("/admin/coach-requests").status_code == 401
    assert client.get("/access/me", headers=auth_header("not-a-token")).status_code == 401


def test_admin_approval_mirrors_profile_status(client: TestClient, db_session: Session):
    admin = admin_token(client, db_session)
    register_main_coach(client, "Laura Principal", "laura@example.com", club_name="Club Sur")

    queue = client.get("/admin/coach-requests", headers=auth_header(admin)).json()
    assert len(queue) == 1
    assert queue[0]["user_full_name"] == "Laura Principal"
    assert queue[0]["club_name"] == "Club Sur"
    assert queue[0]["club_city"] == "Córdoba"

    response = decide(client, admin, queue[0]["id"], "approved")
    assert response.status_code == 200, response.text
    assert response.json()["request"]["status"] == "approved"
    assert response.json()["notice"]["title"] == "Solicitud Aprobada"
    assert client.get("/admin/coach-requests", headers=auth_header(admin)).json() == []

    db_session.expire_all()
    request = db_session.get(CoachMainRequest, queue[0]["id"])
    profile = db_session.query(Profile).filter(Profile.user_id == request.user_id).one()
    assert request.status == ApprovalStatus.APPROVED
    assert profile.status == ApprovalStatus.APPROVED

    coach = login(client, "laura@example.com")
    state = access_state(client, coach)
    assert state["decision"]["outcome"] == "authorized"
    assert state["refresh_after_seconds"] is None
    club = client.get("/clubs/me", headers=auth_header(coach))
    assert club.status_code == 200
    assert club.json()["name"] == "Club Sur"


def test_failed_profile_update_leaves_both_statuses_untouched(client: TestClient, db_session: Session):
    admin = admin_token(client, db_session)
    register_main_coach(client, "Laura Principal", "laura@example.com")
    request_id = pending_request_id(client, admin, "laura@example.com")

    def _fail(mapper, connection, target):
        raise SQLAlchemyError("profile write failed")

    event.listen(Profile, "before_update", _fail)
    try:
        response = decide(client, admin, request_id, "approved")
    finally:
        event.remove(Profile, "before_update", _fail)

    assert response.status_code == 500
    assert response.json()["detail"] == "Could not update profile status."

    db_session.expire_all()
    request = db_session.get(CoachMainRequest, request_id)
    profile = db_session.query(Profile).filter(Profile.user_id == request.user_id).one()
    assert request.status == ApprovalStatus.PENDING
    assert profile.status == ApprovalStatus.PENDING


def test_processed_request_cannot_be_decided_again(client: TestClient, db_session: Session):
    admin = admin_token(client, db_session)
    register_main_coach(client, "Laura Principal", "laura@example.com")
    request_id = pending_request_id(client, admin, "laura@example.com")

    assert decide(client, admin, request_id, "approved").status_code == 200
    again = decide(client, admin, request_id, "rejected")
    assert again.status_code == 409
    assert again.json()["detail"] == "Request already processed."
    assert decide(client, admin, 9999, "approved").status_code == 404
    assert decide(client, admin, request_id, "under_review").status_code == 422


def test_rejected_main_coach_resubmits_additional_info(client: TestClient, db_session: Session):
    admin = admin_token(client, db_session)
    register_main_coach(client, "Laura Principal", "laura@example.com")
    request_id = pending_request_id(client, admin, "laura@example.com")

    rejected = decide(
        client, admin, request_id, "rejected", rejection_reason="Missing certification"
    )
    assert rejected.status_code == 200, rejected.text
    assert rejected.json()["notice"]["title"] == "Solicitud Rechazada"

    coach = login(client, "laura@example.com")
    assert access_state(client, coach)["decision"]["outcome"] == "request_status"
    screen = client.get("/access/request-status", headers=auth_header(coach)).json()
    assert screen["request"]["status"] == "rejected"
    assert screen["label"]["label"] == "Rechazada"
    assert screen["rejection_reason"] == "Missing certification"
    assert screen["can_resubmit"] is True

    response = client.post(
        "/access/request/additional-info",
        json={"additional_info": "Certification attached"},
        headers=auth_header(coach),
    )
    assert response.status_code == 200, response.text
    assert response.json()["request"]["status"] == "pending"
    assert response.json()["notice"]["title"] == "Información enviada"

    db_session.expire_all()
    detail = (
        db_session.query(CoachMainRequestDetail)
        .filter(CoachMainRequestDetail.request_id == request_id)
        .one()
    )
    assert detail.additional_info == "Certification attached"
    assert detail.rejection_reason == "Missing certification"
    profile = db_session.query(Profile).filter(Profile.full_name == "Laura Principal").one()
    assert profile.status == ApprovalStatus.PENDING

    screen = client.get("/access/request-status", headers=auth_header(coach)).json()
    assert screen["label"]["label"] == "Pendiente"
    assert screen["rejection_reason"] is None
    assert screen["can_resubmit"] is False
    assert pending_request_id(client, admin, "laura@example.com") == request_id


def test_resubmission_on_pending_request_only_updates_detail(client: TestClient, db_session: Session):
    register_main_coach(client, "Laura Principal", "laura@example.com")
    coach = login(client, "laura@example.com")

    for info in ("Primera versión", "Segunda versión"):
        response = client.post(
            "/access/request/additional-info",
            json={"additional_info": info},
            headers=auth_header(coach),
        )
        assert response.status_code == 200, response.text
        assert response.json()["request"]["status"] == "pending"

    db_session.expire_all()
    details = db_session.query(CoachMainRequestDetail).all()
    assert len(details) == 1
    assert details[0].additional_info == "Segunda versión"


def test_resubmission_guards(client: TestClient, db_session: Session):
    admin = admin_token(client, db_session)
    coach, registration = approved_main_coach(client, admin, "owner@example.com", "Club Centro")

    approved = client.post(
        "/access/request/additional-info",
        json={"additional_info": "Más datos"},
        headers=auth_header(coach),
    )
    assert approved.status_code == 409

    blank = client.post(
        "/access/request/additional-info",
        json={"additional_info": "   "},
        headers=auth_header(coach),
    )
    assert blank.status_code == 422

    code = club_code(db_session, registration["club_id"])
    assert register_secondary_coach(client, "Ayudante", "helper@example.com", code).status_code == 201
    helper = login(client, "helper@example.com")
    forbidden = client.post(
        "/access/request/additional-info",
        json={"additional_info": "Quiero entrar"},
        headers=auth_header(helper),
    )
    assert forbidden.status_code == 403


def test_role_allow_list_overrides_approval(client: TestClient, db_session: Session):
    admin = admin_token(client, db_session)
    coach, _ = approved_main_coach(client, admin, "owner@example.com", "Club Centro")

    denied = client.get("/admin/coach-requests", headers=auth_header(coach))
    assert denied.status_code == 403
    assert denied.json()["detail"]["outcome"] == "access_denied"

    admin_page = client.get("/access/check", params={"path": "/admin"}, headers=auth_header(coach))
    assert admin_page.json()["decision"]["outcome"] == "access_denied"
    assert admin_page.json()["allowed_roles"] == ["admin"]
    club_page = client.get("/access/check", params={"path": "coach/club"}, headers=auth_header(coach))
    assert club_page.json()["path"] == "/coach/club"
    assert club_page.json()["decision"]["outcome"] == "authorized"
    dashboard = client.get("/access/check", params={"path": "/dashboard"}, headers=auth_header(admin))
    assert dashboard.json()["allowed_roles"] is None
    assert dashboard.json()["decision"]["outcome"] == "authorized"

    missing = client.get("/access/check", params={"path": "/nowhere"}, headers=auth_header(coach))
    assert missing.status_code == 404


def test_secondary_coach_joins_after_club_approval(client: TestClient, db_session: Session):
    admin = admin_token(client, db_session)
    owner, registration = approved_main_coach(client, admin, "owner@example.com", "Club Centro")
    club_id = registration["club_id"]

    invalid = register_secondary_coach(client, "Ayudante", "helper@example.com", "NOPE1234")
    assert invalid.status_code == 400
    assert invalid.json()["detail"] == "Invalid club code."

    joined = register_secondary_coach(
        client, "Ayudante", "helper@example.com", club_code(db_session, club_id).lower()
    )
    assert joined.status_code == 201, joined.text
    assert joined.json()["profile"]["role"] == "coach_team"
    assert joined.json()["club_id"] == club_id

    helper = login(client, "helper@example.com")
    state = access_state(client, helper)
    assert state["profile"]["assignment_status"] == "pending"
    assert state["decision"]["outcome"] == "pending"

    queue = client.get(f"/clubs/{club_id}/assignments", headers=auth_header(owner))
    assert queue.status_code == 200, queue.text
    assert [item["coach_full_name"] for item in queue.json()] == ["Ayudante"]

    response = client.post(
        f"/clubs/assignments/{queue.json()[0]['id']}/decision",
        json={"status": "approved"},
        headers=auth_header(owner),
    )
    assert response.status_code == 200, response.text
    assert response.json()["assignment"]["status"] == "approved"
    assert client.get(f"/clubs/{club_id}/assignments", headers=auth_header(owner)).json() == []

    state = access_state(client, helper)
    assert state["decision"]["outcome"] == "authorized"
    teams = client.get("/access/check", params={"path": "/coach/teams"}, headers=auth_header(helper))
    assert teams.json()["decision"]["outcome"] == "authorized"
    club_page = client.get("/access/check", params={"path": "/coach/club"}, headers=auth_header(helper))
    assert club_page.json()["decision"]["outcome"] == "access_denied"

    db_session.expire_all()
    profile = db_session.query(Profile).filter(Profile.full_name == "Ayudante").one()
    assert profile.status == ApprovalStatus.PENDING


def test_rejected_assignment_is_terminal_until_store_changes(client: TestClient, db_session: Session):
    admin = admin_token(client, db_session)
    owner, registration = approved_main_coach(client, admin, "owner@example.com", "Club Centro")
    code = club_code(db_session, registration["club_id"])
    assert register_secondary_coach(client, "Ayudante", "helper@example.com", code).status_code == 201
    assignment_id = client.get(
        f"/clubs/{registration['club_id']}/assignments", headers=auth_header(owner)
    ).json()[0]["id"]

    rejected = client.post(
        f"/clubs/assignments/{assignment_id}/decision",
        json={"status": "rejected"},
        headers=auth_header(owner),
    )
    assert rejected.status_code == 200

    helper = login(client, "helper@example.com")
    assert access_state(client, helper)["decision"]["outcome"] == "access_denied"
    page = client.get("/access/check", params={"path": "/dashboard"}, headers=auth_header(helper))
    assert page.json()["decision"]["outcome"] == "access_denied"

    again = client.post(
        f"/clubs/assignments/{assignment_id}/decision",
        json={"status": "approved"},
        headers=auth_header(owner),
    )
    assert again.status_code == 409

    db_session.expire_all()
    db_session.get(ClubCoachAssignment, assignment_id).status = AssignmentStatus.APPROVED
    db_session.commit()
    assert access_state(client, helper)["decision"]["outcome"] == "authorized"


def test_only_the_owning_club_decides_assignments(client: TestClient, db_session: Session):
    admin = admin_token(client, db_session)
    owner, registration = approved_main_coach(client, admin, "owner@example.com", "Club Centro")
    other, _ = approved_main_coach(client, admin, "other@example.com", "Club Oeste")
    code = club_code(db_session, registration["club_id"])
    assert register_secondary_coach(client, "Ayudante", "helper@example.com", code).status_code == 201
    assignment_id = client.get(
        f"/clubs/{registration['club_id']}/assignments", headers=auth_header(owner)
    ).json()[0]["id"]

    assert (
        client.get(f"/clubs/{registration['club_id']}/assignments", headers=auth_header(other)).status_code
        == 404
    )
    foreign = client.post(
        f"/clubs/assignments/{assignment_id}/decision",
        json={"status": "approved"},
        headers=auth_header(other),
    )
    assert foreign.status_code == 404

    by_admin = client.post(
        f"/clubs/assignments/{assignment_id}/decision",
        json={"status": "approved"},
        headers=auth_header(admin),
    )
    assert by_admin.status_code == 200, by_admin.text


def test_club_code_regeneration_invalidates_previous_code(client: TestClient, db_session: Session):
    admin = admin_token(client, db_session)
    owner, registration = approved_main_coach(client, admin, "owner@example.com", "Club Centro")
    club_id = registration["club_id"]
    old_code = club_code(db_session, club_id)

    response = client.post(f"/clubs/{club_id}/code", headers=auth_header(owner))
    assert response.status_code == 200, response.text
    new_code = response.json()["club_code"]
    assert new_code != old_code
    assert len(new_code) == 8

    assert register_secondary_coach(client, "Tarde", "late@example.com", old_code).status_code == 400
    assert register_secondary_coach(client, "Tarde", "late@example.com", new_code).status_code == 201


def test_missing_profile_is_an_informational_notice(client: TestClient, db_session: Session):
    db_session.add(User(email="ghost@example.com", password_hash=get_password_hash("password123")))
    db_session.commit()

    state = access_state(client, login(client, "ghost@example.com"))
    assert state["profile"] is None
    assert state["decision"]["outcome"] == "profile_missing"
    assert state["notices"][0]["level"] == "info"
    assert state["notices"][0]["title"] == "Perfil no encontrado"


def test_unrecognised_stored_status_fails_closed(client: TestClient, db_session: Session):
    registration = register_main_coach(client, "Laura Principal", "laura@example.com")
    db_session.execute(
        text("UPDATE coach_main_requests SET status = 'mystery' WHERE user_id = :user_id"),
        {"user_id": registration["user"]["id"]},
    )
    db_session.commit()

    state = access_state(client, login(client, "laura@example.com"))
    assert state["decision"]["outcome"] != "authorized"
    assert state["notices"][0]["level"] == "error"


def test_access_stream_sends_resolved_state(client: TestClient):
    register_main_coach(client, "Laura Principal", "laura@example.com")
    token = login(client, "laura@example.com")

    with client.websocket_connect(f"/access/stream?token={token}") as websocket:
        state = websocket.receive_json()
    assert state["profile"]["full_name"] == "Laura Principal"
    assert state["decision"]["outcome"] == "request_status"
    assert state["refresh_after_seconds"] == 5.0


def test_access_stream_picks_up_resubmission_on_refresh(client: TestClient, db_session: Session):
    admin = admin_token(client, db_session)
    register_main_coach(client, "Laura Principal", "laura@example.com")
    request_id = pending_request_id(client, admin, "laura@example.com")
    assert decide(client, admin, request_id, "rejected").status_code == 200
    coach = login(client, "laura@example.com")

    with client.websocket_connect(f"/access/stream?token={coach}") as websocket:
        state = websocket.receive_json()
        assert state["profile"]["status"] == "rejected"
        assert state["refresh_after_seconds"] is None

        response = client.post(
            "/access/request/additional-info",
            json={"additional_info": "Certification attached"},
            headers=auth_header(coach),
        )
        assert response.status_code == 200, response.text

        websocket.send_text("refresh")
        state = websocket.receive_json()
    assert state["profile"]["status"] == "pending"
    assert state["profile"]["request_status"] == "pending"
    assert state["decision"]["outcome"] == "request_status"
    assert state["refresh_after_seconds"] == 5.0


def test_access_stream_rejects_invalid_token(client: TestClient):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/access/stream?token=bad") as websocket:
            websocket.receive_json()
    assert excinfo.value.code == 1008


def test_statuses_are_stored_as_lowercase_values(client: TestClient, db_session: Session):
    registration = register_main_coach(client, "Laura Principal", "laura@example.com")
    user_id = registration["user"]["id"]

    profile_row = db_session.execute(
        text("SELECT role, status FROM profiles WHERE user_id = :user_id"), {"user_id": user_id}
    ).one()
    assert tuple(profile_row) == ("coach_main", "pending")
    request_status = db_session.execute(
        text("SELECT status FROM coach_main_requests WHERE user_id = :user_id"), {"user_id": user_id}
    ).scalar_one()
    assert request_status == "pending"

    db_session.execute(
        text("UPDATE coach_main_requests SET status = 'approved' WHERE user_id = :user_id"),
        {"user_id": user_id},
    )
    db_session.execute(
        text("UPDATE profiles SET status = 'approved' WHERE user_id = :user_id"),
        {"user_id": user_id},
    )
    db_session.commit()

    state = access_state(client, login(client, "laura@example.com"))
    assert state["profile"]["role"] == "coach_main"
    assert state["decision"]["outcome"] == "authorized"


def test_assignment_reset_in_store_unlocks_secondary_coach(client: TestClient, db_session: Session):
    registration = register_main_coach(client, "Laura Principal", "laura@example.com")
    code = club_code(db_session, registration["club_id"])
    assert register_secondary_coach(client, "Ayudante", "helper@example.com", code).status_code == 201
    helper = login(client, "helper@example.com")
    assert access_state(client, helper)["decision"]["outcome"] == "pending"

    db_session.execute(
        text("UPDATE club_coach_assignments SET status = 'approved' WHERE club_id = :club_id"),
        {"club_id": registration["club_id"]},
    )
    db_session.commit()

    state = access_state(client, helper)
    assert state["profile"]["assignment_status"] == "approved"
    assert state["decision"]["outcome"] == "authorized"


def test_under_review_requests_stay_in_admin_queue(client: TestClient, db_session: Session):
    admin = admin_token(client, db_session)
    registration = register_main_coach(client, "Laura Principal", "laura@example.com")
    db_session.execute(
        text("UPDATE coach_main_requests SET status = 'under_review' WHERE user_id = :user_id"),
        {"user_id": registration["user"]["id"]},
    )
    db_session.commit()

    queue = client.get("/admin/coach-requests", headers=auth_header(admin)).json()
    assert [item["status"] for item in queue] == ["under_review"]

    response = decide(client, admin, queue[0]["id"], "approved")
    assert response.status_code == 200, response.text
    assert client.get("/admin/coach-requests", headers=auth_header(admin)).json() == []
