from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from articlefeed.database import get_db
from articlefeed.dependencies import get_viewer, require_viewer
from articlefeed.models import User
from articlefeed.schemas import ProfileResponse
from articlefeed.services import user_service

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])


@router.get("/{username}", response_model=ProfileResponse)
async def get_profile(
    username: str,
    viewer: User | None = Depends(get_viewer),
    db: AsyncSession = Depends(get_db),
):
    viewer_id = viewer.id if viewer is not None else None
    return await user_service.get_profile(db, username, viewer_id)


@router.post("/{username}/follow", response_model=ProfileResponse)
async def follow_user(
    username: str,
    viewer: User = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.follow(db, viewer, username)


@router.delete("/{username}/follow", response_model=ProfileResponse)
async def unfollow_user(
    username: str,
    viewer: User = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.unfollow(db, viewer, username)


@router.get("/{username}/followers", response_model=list[str])
async def list_followers(username: str, db: AsyncSession = Depends(get_db)):
    return await user_service.list_followers(db, username)


@router.get("/{username}/followings", response_model=list[str])
async def list_followings(username: str, db: AsyncSession = Depends(get_db)):
    return await user_service.list_followings(db, username)
