from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr


class ClubRead(BaseModel):
    id: int
    name: str
    city: str
    province: str
    country: str
    email: EmailStr
    phone: Optional[str] = None
    address: Optional[str] = None
    club_code: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ClubCodeRead(BaseModel):
    club_id: int
    club_code: str
