from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ..core.enums import ApprovalStatus, AssignmentStatus
from .access import Notice


class RequestDetailRead(BaseModel):
    request_id: int
    additional_info: Optional[str] = None
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None

    model_config = {"from_attributes": True}


class CoachRequestRead(BaseModel):
    id: int
    user_id: int
    club_id: int
    status: ApprovalStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CoachRequestQueueItem(CoachRequestRead):
    user_full_name: str
    user_email: str
    club_name: str
    club_city: str


class StatusLabel(BaseModel):
    status: Optional[str] = None
    label: str
    icon: str
    badge: str
    description: str


class RequestStatusScreen(BaseModel):
    request: Optional[CoachRequestRead] = None
    detail: Optional[RequestDetailRead] = None
    label: Optional[StatusLabel] = None
    rejection_reason: Optional[str] = None
    can_resubmit: bool = False


class RequestDecision(BaseModel):
    status: Literal["approved", "rejected"]
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None


class AssignmentDecision(BaseModel):
    status: Literal["approved", "rejected"]


class AdditionalInfoSubmit(BaseModel):
    additional_info: str = Field(min_length=1)

    @field_validator("additional_info")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Additional information cannot be blank.")
        return value


class AssignmentRead(BaseModel):
    id: int
    club_id: int
    coach_user_id: int
    status: AssignmentStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AssignmentQueueItem(AssignmentRead):
    coach_full_name: str
    coach_email: str


class CoachRequestActionResult(BaseModel):
    request: CoachRequestRead
    notice: Notice


class AssignmentActionResult(BaseModel):
    assignment: AssignmentRead
    notice: Notice
