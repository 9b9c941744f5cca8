import logging
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import DEFAULT_INTERESTS, Follow, User, UserInterest
from ..schemas import UserResponse
from ..utils import follower_ids
from .realtime import manager

logger = logging.getLogger(__name__)


async def load_user(db: AsyncSession, user_id: int) -> Optional[User]:
    res = await db.execute(
        select(User).where(User.id == user_id).execution_options(
            populate_existing=True)
    )
    return res.scalar_one_or_none()


async def follow_counts(db: AsyncSession, user_id: int) -> tuple[int, int]:
    followers = await db.execute(
        select(func.count(Follow.id)).where(Follow.followee_id == user_id))
    following = await db.execute(
        select(func.count(Follow.id)).where(Follow.follower_id == user_id))
    return followers.scalar() or 0, following.scalar() or 0


async def build_user_response(db: AsyncSession, user: User) -> UserResponse:
    followers, following = await follow_counts(db, user.id)
    return UserResponse.model_validate(user).model_copy(
        update={"followers_count": followers, "following_count": following})


def set_interests(user: User, names: list[str]) -> None:
    """Replace the user's interests, keeping first-seen order and dropping duplicates"""
    wanted: list[str] = []
    for name in names:
        if name not in wanted:
            wanted.append(name)
    existing = {interest.name: interest for interest in user.interests}
    user.interests = [existing.get(name) or UserInterest(name=name)
                      for name in wanted]


def new_user(email: str, username: str, password_hash: str, is_admin: bool = False) -> User:
    user = User(
        email=email,
        username=username,
        password_hash=password_hash,
        is_admin=is_admin,
        profile_pic="",
        bio="",
    )
    user.interests = [UserInterest(name=name) for name in DEFAULT_INTERESTS]
    return user


async def delete_account(db: AsyncSession, user: User) -> None:
    """
    Delete a user row and everything that references it, then tell the
    user's followers. Dependent rows go through ON DELETE CASCADE.
    """
    followers = await follower_ids(db, user.id)
    user_id, username = user.id, user.username
    await db.execute(delete(User).where(User.id == user_id))
    await db.commit()
    db.expunge_all()
    logger.info(f"User {user_id} deleted")
    for follower_id in followers:
        await manager.emit_to_user(follower_id, "userDeleted", {
            "user_id": user_id,
            "username": username,
        })
