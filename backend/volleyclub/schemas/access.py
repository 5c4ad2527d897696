from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..core.enums import ApprovalStatus, AssignmentStatus, GateOutcome, NoticeLevel, Role


class Notice(BaseModel):
    level: NoticeLevel
    title: str
    description: str


class ResolvedProfile(BaseModel):
    """Profile row decorated with the secondary status that gates its role."""

    user_id: int
    full_name: str
    role: Role
    status: Optional[ApprovalStatus] = None
    created_at: datetime
    updated_at: datetime
    request_status: Optional[ApprovalStatus] = None
    assignment_status: Optional[AssignmentStatus] = None

    model_config = {"from_attributes": True}


class GateDecision(BaseModel):
    outcome: GateOutcome
    reason: Optional[str] = None

    @property
    def granted(self) -> bool:
        return self.outcome == GateOutcome.AUTHORIZED


class AccessState(BaseModel):
    profile: Optional[ResolvedProfile] = None
    decision: GateDecision
    notices: list[Notice] = Field(default_factory=list)
    refresh_after_seconds: Optional[float] = None


class RouteCheck(BaseModel):
    path: str
    allowed_roles: Optional[list[Role]] = None
    decision: GateDecision
