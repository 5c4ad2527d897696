from .user import User, Profile
from .club import Club, ClubRepresentative, ClubCoachAssignment
from .coach_request import CoachMainRequest, CoachMainRequestDetail

__all__ = [
    "User",
    "Profile",
    "Club",
    "ClubRepresentative",
    "ClubCoachAssignment",
    "CoachMainRequest",
    "CoachMainRequestDetail",
]
