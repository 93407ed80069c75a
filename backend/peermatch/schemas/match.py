from typing import List, Optional

from peermatch.schemas.profile import CamelModel, PublicProfile


class UserSummary(CamelModel):
    id: str
    username: Optional[str] = None


class MatchResponse(CamelModel):
    user: UserSummary
    profile: PublicProfile
    similarity: float
    match_type: str
    reasons: List[str] = []


class MatchListResponse(CamelModel):
    matches: List[MatchResponse]


class UserProfileResponse(CamelModel):
    user: UserSummary
    profile: PublicProfile


class ActiveUsersResponse(CamelModel):
    active_users: List[UserProfileResponse]
