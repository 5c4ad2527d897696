from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from ..core.enums import ApprovalStatus, Role


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    sub: Optional[str] = None
    role: Optional[Role] = None


class CoachRegistrationBase(BaseModel):
    full_name: str = Field(min_length=3, max_length=150)
    email: EmailStr
    password: str = Field(min_length=8)


class MainCoachRegistration(CoachRegistrationBase):
    club_name: str = Field(min_length=2, max_length=150)
    city: str
    province: str
    country: str
    phone: Optional[str] = None
    address: Optional[str] = None


class SecondaryCoachRegistration(CoachRegistrationBase):
    club_code: str = Field(min_length=4, max_length=32)


class UserRead(BaseModel):
    id: int
    email: EmailStr
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileRead(BaseModel):
    user_id: int
    full_name: str
    role: Role
    status: Optional[ApprovalStatus] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RegistrationRead(BaseModel):
    user: UserRead
    profile: ProfileRead
    club_id: int
    club_name: str
