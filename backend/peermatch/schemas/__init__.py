from peermatch.schemas.profile import (
    CamelModel,
    ProfileUpdate,
    StatusUpdate,
    PublicProfile,
    ProfileEnvelope,
    ReprocessResponse,
    PresenceStatus,
    StatusResponse,
)
from peermatch.schemas.match import (
    UserSummary,
    MatchResponse,
    MatchListResponse,
    UserProfileResponse,
    ActiveUsersResponse,
)

__all__ = [
    "CamelModel",
    "ProfileUpdate",
    "StatusUpdate",
    "PublicProfile",
    "ProfileEnvelope",
    "ReprocessResponse",
    "PresenceStatus",
    "StatusResponse",
    "UserSummary",
    "MatchResponse",
    "MatchListResponse",
    "UserProfileResponse",
    "ActiveUsersResponse",
]
