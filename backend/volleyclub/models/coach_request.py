from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.enums import ApprovalStatus, enum_values
from ..database import Base
from .club import Club
from .user import User


class CoachMainRequest(Base):
    """A main coach's application to run a newly registered club."""

    __tablename__ = "coach_main_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    club_id: Mapped[int] = mapped_column(ForeignKey("clubs.id", ondelete="CASCADE"), index=True)
    status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus, native_enum=False, values_callable=enum_values),
        default=ApprovalStatus.PENDING,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    user: Mapped[User] = relationship(lazy="joined")
    club: Mapped[Club] = relationship(lazy="joined")
    detail: Mapped[Optional["CoachMainRequestDetail"]] = relationship(
        back_populates="request", uselist=False, cascade="all, delete-orphan"
    )


class CoachMainRequestDetail(Base):
    __tablename__ = "coach_main_request_details"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(
        ForeignKey("coach_main_requests.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    additional_info: Mapped[Optional[str]] = mapped_column(Text)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    request: Mapped[CoachMainRequest] = relationship(back_populates="detail")
