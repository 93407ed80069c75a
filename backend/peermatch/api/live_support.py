from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from peermatch.auth import get_current_user
from peermatch.database import get_db
from peermatch.models import Profile, User
from peermatch.schemas import (
    ActiveUsersResponse,
    MatchListResponse,
    MatchResponse,
    PresenceStatus,
    ProfileEnvelope,
    ProfileUpdate,
    PublicProfile,
    ReprocessResponse,
    StatusResponse,
    StatusUpdate,
    UserProfileResponse,
    UserSummary,
)
from peermatch.services.matcher import MatchEngine, get_match_engine
from peermatch.services.orchestrator import ProfileUpdateOrchestrator, get_orchestrator
from peermatch.services.profile_store import ProfileNotFoundError, ProfileStore

router = APIRouter()


def _envelope(profile: Profile) -> ProfileEnvelope:
    return ProfileEnvelope(
        profile=PublicProfile.model_validate(profile.get_public_profile()),
        is_complete=profile.is_complete(),
    )


def _user_profile(profile: Profile) -> UserProfileResponse:
    user = profile.user
    return UserProfileResponse(
        user=UserSummary(id=profile.user_id, username=user.username if user else None),
        profile=PublicProfile.model_validate(profile.get_public_profile()),
    )


@router.get("/profile", response_model=ProfileEnvelope)
async def get_profile(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    profile = await ProfileStore(db).get_or_create(current_user.id)
    return _envelope(profile)


@router.put("/profile", response_model=ProfileEnvelope)
async def update_profile(
    update: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    orchestrator: ProfileUpdateOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.apply_profile_edits(
        current_user.id,
        update.slot_edits(),
        visibility=update.visibility.value if update.visibility else None,
    )
    return _envelope(result.profile)


@router.post("/reprocess-profile", response_model=ReprocessResponse)
async def reprocess_profile(
    current_user: User = Depends(get_current_user),
    orchestrator: ProfileUpdateOrchestrator = Depends(get_orchestrator),
):
    try:
        result = await orchestrator.reprocess_profile(current_user.id)
    except ProfileNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found",
        )

    envelope = _envelope(result.profile)
    return ReprocessResponse(profile=envelope.profile, is_complete=envelope.is_complete)


@router.get("/matches", response_model=MatchListResponse)
async def get_matches(
    current_user: User = Depends(get_current_user),
    engine: MatchEngine = Depends(get_match_engine),
):
    matches = await engine.find_matches(current_user.id)
    return MatchListResponse(matches=[
        MatchResponse(
            user=UserSummary(id=m.user_id, username=m.username),
            profile=PublicProfile.model_validate(m.profile),
            similarity=m.similarity,
            match_type=m.match_type.value,
            reasons=m.reasons,
        )
        for m in matches
    ])


@router.get("/active-users", response_model=ActiveUsersResponse)
async def get_active_users(
    current_user: User = Depends(get_current_user),
    engine: MatchEngine = Depends(get_match_engine),
):
    profiles = await engine.get_active_users(current_user.id)
    return ActiveUsersResponse(active_users=[_user_profile(p) for p in profiles])


@router.put("/status", response_model=StatusResponse)
async def update_status(
    update: StatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    profile = await ProfileStore(db).update_status(
        current_user.id,
        is_online=update.is_online,
        is_available_for_chat=update.is_available_for_chat,
    )
    return StatusResponse(status=PresenceStatus(
        is_online=profile.is_online,
        is_available_for_chat=profile.is_available_for_chat,
        last_seen=profile.last_seen,
    ))


@router.get("/user/{user_id}", response_model=UserProfileResponse)
async def get_user_profile(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_current_user),
):
    profile = await ProfileStore(db).get(user_id)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found",
        )
    return _user_profile(profile)
