"""Route access decisions for coaches, club members and administrators.

Only an explicit ``approved`` status lets an applicant through; anything else
(pending, rejected, under review, missing) keeps them on a waiting or denied
screen.
"""

from collections.abc import Collection

from ..core.enums import ApprovalStatus, AssignmentStatus, GateOutcome, Role
from ..schemas.access import GateDecision, ResolvedProfile
from ..schemas.approval import StatusLabel

ALL_COACHES = frozenset({Role.COACH_MAIN, Role.COACH_TEAM, Role.ADMIN})

# Front-end page routes and the roles allowed on each; ``None`` means any role.
PROTECTED_ROUTES: dict[str, frozenset[Role] | None] = {
    "/dashboard": None,
    "/players": None,
    "/coach/club": frozenset({Role.COACH_MAIN, Role.ADMIN}),
    "/coach/teams": ALL_COACHES,
    "/coach/players": ALL_COACHES,
    "/coach/matches": ALL_COACHES,
    "/coach/statistics": ALL_COACHES,
    "/admin": frozenset({Role.ADMIN}),
    "/admin/coach-requests": frozenset({Role.ADMIN}),
}

STATUS_LABELS: dict[str, StatusLabel] = {
    ApprovalStatus.PENDING.value: StatusLabel(
        status=ApprovalStatus.PENDING.value,
        label="Pendiente",
        icon="clock",
        badge="yellow",
        description="Tu solicitud está siendo revisada por un administrador",
    ),
    ApprovalStatus.APPROVED.value: StatusLabel(
        status=ApprovalStatus.APPROVED.value,
        label="Aprobada",
        icon="check-circle",
        badge="green",
        description="¡Tu solicitud ha sido aprobada! Ya puedes acceder al dashboard",
    ),
    ApprovalStatus.REJECTED.value: StatusLabel(
        status=ApprovalStatus.REJECTED.value,
        label="Rechazada",
        icon="x-circle",
        badge="red",
        description="Tu solicitud ha sido rechazada. Revisa los comentarios del administrador",
    ),
    ApprovalStatus.UNDER_REVIEW.value: StatusLabel(
        status=ApprovalStatus.UNDER_REVIEW.value,
        label="En Revisión",
        icon="alert-circle",
        badge="blue",
        description="Se está realizando una revisión adicional de tu solicitud",
    ),
}

UNKNOWN_LABEL = StatusLabel(
    label="Desconocido", icon="clock", badge="gray", description="Estado desconocido"
)


def evaluate_access(
    *,
    identity_present: bool,
    loading: bool,
    profile: ResolvedProfile | None,
    allowed_roles: Collection[Role] | None = None,
) -> GateDecision:
    if not identity_present:
        return GateDecision(outcome=GateOutcome.REDIRECT_LOGIN, reason="Not authenticated.")
    if loading:
        return GateDecision(outcome=GateOutcome.LOADING)
    if profile is None:
        return GateDecision(outcome=GateOutcome.PROFILE_MISSING, reason="Profile not loaded yet.")

    if profile.role == Role.COACH_MAIN and profile.request_status != ApprovalStatus.APPROVED:
        return GateDecision(
            outcome=GateOutcome.REQUEST_STATUS,
            reason="Main coach request is not approved.",
        )
    if profile.role == Role.COACH_TEAM and profile.assignment_status != AssignmentStatus.APPROVED:
        if profile.assignment_status == AssignmentStatus.REJECTED:
            return GateDecision(
                outcome=GateOutcome.ACCESS_DENIED,
                reason="Club assignment was rejected.",
            )
        return GateDecision(outcome=GateOutcome.PENDING, reason="Club assignment is pending approval.")

    if allowed_roles is not None and profile.role not in allowed_roles:
        return GateDecision(outcome=GateOutcome.ACCESS_DENIED, reason="Insufficient role.")
    return GateDecision(outcome=GateOutcome.AUTHORIZED)


def status_label(status: str | None) -> StatusLabel:
    if status is None:
        return UNKNOWN_LABEL
    return STATUS_LABELS.get(str(getattr(status, "value", status)), UNKNOWN_LABEL)
