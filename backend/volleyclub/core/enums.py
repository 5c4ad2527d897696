import enum


class Role(str, enum.Enum):
    ADMIN = "admin"
    COACH_MAIN = "coach_main"
    COACH_TEAM = "coach_team"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    UNDER_REVIEW = "under_review"


class AssignmentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class GateOutcome(str, enum.Enum):
    REDIRECT_LOGIN = "redirect_login"
    LOADING = "loading"
    PROFILE_MISSING = "profile_missing"
    REQUEST_STATUS = "request_status"
    PENDING = "pending"
    ACCESS_DENIED = "access_denied"
    AUTHORIZED = "authorized"


class NoticeLevel(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


def enum_values(enum_cls):
    """Persist enum values, not member names, in ``Enum`` columns."""
    return [member.value for member in enum_cls]
