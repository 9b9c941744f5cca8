import logging
from datetime import datetime, timedelta, timezone
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..dependencies import ensure_self, get_current_admin_user
from ..exceptions import ImageValidationError
from ..models import Follow, Notification, Spot, SpotLike, User
from ..schemas import (
    AdminUserAnalytics,
    AvatarResponse,
    FavoriteRequest,
    FavoritesResponse,
    FollowResponse,
    InterestsUpdate,
    MessageResponse,
    NotificationResponse,
    PaginatedNearbyUsers,
    PaginatedNotifications,
    PaginatedPopularUsers,
    PaginatedUsers,
    ProfileUpdate,
    SpotResponse,
    UserAnalytics,
    UserMessageResponse,
    UserResponse,
    UserSettings,
    UserSettingsResponse,
    UserSettingsUpdate,
)
from ..services.jwt_service import JWTService
from ..services.notification_service import NotificationService
from ..services.spot_service import newest_first
from ..services.storage import StorageService
from ..services.user_service import build_user_response, follow_counts, load_user, set_interests
from ..utils import (
    bounding_box,
    is_following,
    longitude_clause,
    page_envelope,
    page_offset,
    total_pages,
    within_radius,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/users",
    tags=["users"],
    responses={
        401: {"description": "Missing or invalid token"},
        403: {"description": "Not allowed for this user"},
        404: {"description": "User not found"},
    },
)


async def _apply_profile_update(db: AsyncSession, user: User, payload: ProfileUpdate) -> User:
    if payload.username is not None and payload.username != user.username:
        res = await db.execute(select(User.id).where(
            User.username == payload.username, User.id != user.id))
        if res.scalar_one_or_none() is not None:
            raise HTTPException(status_code=400, detail="Username already taken")
        user.username = payload.username
    if payload.bio is not None:
        user.bio = payload.bio
    if payload.profile_pic is not None:
        user.profile_pic = payload.profile_pic
    if payload.location is not None:
        user.longitude, user.latitude = payload.location.coordinates
    if payload.interests is not None:
        set_interests(user, list(payload.interests))
    if payload.notifications_enabled is not None:
        user.notifications_enabled = payload.notifications_enabled
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="Username already taken")
    return await load_user(db, user.id)


def _settings_of(user: User) -> dict:
    return {
        "notifications": {
            "comments": user.notify_comments,
            "likes": user.notify_likes,
            "follows": user.notify_follows,
            "recommendations": user.notify_recommendations,
        },
        "privacy": {
            "profile_public": user.profile_public,
            "share_location": user.share_location,
        },
        "notifications_enabled": user.notifications_enabled,
    }


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# Profile

@router.get("/profile", response_model=UserResponse)
async def get_profile(current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    return await build_user_response(db, current_user)


@router.put("/profile", response_model=UserResponse)
async def update_profile(payload: ProfileUpdate, current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    user = await _apply_profile_update(db, current_user, payload)
    return await build_user_response(db, user)


# Follow graph

@router.post("/follow/{user_id}", response_model=FollowResponse)
async def follow_user(user_id: int, current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot follow yourself")
    target = await _get_user_or_404(db, user_id)
    if await is_following(db, current_user.id, user_id):
        raise HTTPException(status_code=400, detail="Already following this user")

    db.add(Follow(follower_id=current_user.id, followee_id=user_id))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="Already following this user")

    await NotificationService.notify(
        db, target, current_user.id, "follow", current_user.id, "newFollower",
        {"user_id": current_user.id, "username": current_user.username},
    )
    followers, _ = await follow_counts(db, user_id)
    _, following = await follow_counts(db, current_user.id)
    return {
        "message": f"You are now following {target.username}",
        "followers_count": followers,
        "following_count": following,
    }


@router.post("/unfollow/{user_id}", response_model=FollowResponse)
async def unfollow_user(user_id: int, current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot unfollow yourself")
    target = await _get_user_or_404(db, user_id)
    res = await db.execute(select(Follow).where(
        Follow.follower_id == current_user.id, Follow.followee_id == user_id))
    follow = res.scalar_one_or_none()
    if follow is None:
        raise HTTPException(status_code=400, detail="You are not following this user")

    await db.delete(follow)
    await db.commit()

    await NotificationService.emit_if_enabled(
        target, current_user.id, "lostFollower",
        {"user_id": current_user.id, "username": current_user.username},
    )
    followers, _ = await follow_counts(db, user_id)
    _, following = await follow_counts(db, current_user.id)
    return {
        "message": f"You have unfollowed {target.username}",
        "followers_count": followers,
        "following_count": following,
    }


# Discovery

@router.get("/nearby", response_model=PaginatedNearbyUsers)
async def nearby_users(
    radius: float = Query(settings.user_nearby_default_radius_km, gt=0, le=20000),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Other users within radius km of the caller's stored location, nearest first"""
    lat, lon = current_user.latitude, current_user.longitude
    min_lat, max_lat, min_lon, max_lon = bounding_box(lat, lon, radius)
    res = await db.execute(
        select(User).where(
            User.id != current_user.id,
            User.share_location.is_(True),
            User.latitude.between(min_lat, max_lat),
            longitude_clause(User.longitude, min_lon, max_lon),
        )
    )
    hits = within_radius(res.scalars().all(), lat, lon, radius)
    start = page_offset(page, limit)
    items = [
        {"id": u.id, "username": u.username, "profile_pic": u.profile_pic,
         "bio": u.bio, "distance_km": round(distance, 3)}
        for distance, u in hits[start:start + limit]
    ]
    return page_envelope(items, len(hits), page, limit)


@router.get("/popular", response_model=PaginatedPopularUsers)
async def popular_users(
    page: int = Query(1, ge=1),
    limit: int = Query(4, ge=1, le=100),
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    followers = (
        select(func.count(Follow.id)).where(Follow.followee_id == User.id)
        .correlate(User).scalar_subquery()
    )
    spots = (
        select(func.count(Spot.id)).where(Spot.submitted_by == User.id)
        .correlate(User).scalar_subquery()
    )
    total = (await db.execute(select(func.count(User.id)))).scalar() or 0
    res = await db.execute(
        select(User, followers.label("followers_count"), spots.label("spots_count"))
        .order_by(followers.desc(), User.id)
        .offset(page_offset(page, limit))
        .limit(limit)
    )
    items = [
        {"id": u.id, "username": u.username, "profile_pic": u.profile_pic, "bio": u.bio,
         "followers_count": f_count or 0, "spots_count": s_count or 0}
        for u, f_count, s_count in res.all()
    ]
    return page_envelope(items, total, page, limit)


# Notifications

@router.get("/notifications", response_model=PaginatedNotifications)
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    unread_only: bool = Query(False),
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    base = select(Notification).where(Notification.user_id == current_user.id)
    if unread_only:
        base = base.where(Notification.read.is_(False))
    total = (await db.execute(
        select(func.count()).select_from(base.subquery()))).scalar() or 0
    unread = (await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == current_user.id, Notification.read.is_(False))
    )).scalar() or 0
    res = await db.execute(
        base.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(page_offset(page, limit)).limit(limit)
    )
    items = [NotificationResponse.model_validate(n) for n in res.scalars().all()]
    return {"items": items, "total": total, "unread": unread, "page": page,
            "limit": limit, "total_pages": total_pages(total, limit)}


@router.patch("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(notification_id: int, current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    notification = await db.get(Notification, notification_id)
    if notification is None or notification.user_id != current_user.id:
        raise HTTPException(status_code=404, detail="Notification not found")
    notification.read = True
    await db.commit()
    return NotificationResponse.model_validate(notification)


@router.post("/notifications/read-all", response_model=MessageResponse)
async def mark_all_notifications_read(current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    await db.execute(
        update(Notification)
        .where(Notification.user_id == current_user.id, Notification.read.is_(False))
        .values(read=True)
    )
    await db.commit()
    return {"message": "All notifications marked as read"}


# Admin

@router.get("/admin/analytics", response_model=AdminUserAnalytics)
async def admin_user_analytics(admin_user: User = Depends(get_current_admin_user), db: AsyncSession = Depends(get_db)):
    since = datetime.now(timezone.utc) - timedelta(days=settings.active_user_window_days)
    total_users = (await db.execute(select(func.count(User.id)))).scalar() or 0
    active_users = (await db.execute(
        select(func.count(User.id)).where(User.last_active >= since))).scalar() or 0
    return {"total_users": total_users, "active_users": active_users}


# Per-user resources

async def _follow_page(db: AsyncSession, user_id: int, followers: bool, page: int, limit: int) -> dict:
    await _get_user_or_404(db, user_id)
    if followers:
        join_on, where = Follow.follower_id == User.id, Follow.followee_id == user_id
    else:
        join_on, where = Follow.followee_id == User.id, Follow.follower_id == user_id
    base = select(User).join(Follow, join_on).where(where)
    total = (await db.execute(
        select(func.count()).select_from(base.subquery()))).scalar() or 0
    res = await db.execute(
        base.order_by(Follow.created_at.desc(), Follow.id.desc())
        .offset(page_offset(page, limit)).limit(limit)
    )
    return page_envelope(list(res.scalars().all()), total, page, limit)


@router.get("/{user_id}/followers", response_model=PaginatedUsers)
async def list_followers(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    return await _follow_page(db, user_id, True, page, limit)


@router.get("/{user_id}/following", response_model=PaginatedUsers)
async def list_following(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    return await _follow_page(db, user_id, False, page, limit)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    ensure_self(current_user, user_id, "view your own profile")
    return await build_user_response(db, current_user)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(user_id: int, payload: ProfileUpdate, current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    ensure_self(current_user, user_id, "update your own profile")
    user = await _apply_profile_update(db, current_user, payload)
    return await build_user_response(db, user)


@router.get("/{user_id}/interests", response_model=List[str])
async def get_interests(user_id: int, current_user: User = Depends(JWTService.get_current_user)):
    ensure_self(current_user, user_id, "view your own interests")
    return current_user.interest_names


@router.post("/{user_id}/interests", response_model=UserMessageResponse)
async def update_interests(user_id: int, payload: InterestsUpdate, current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    ensure_self(current_user, user_id, "update your own interests")
    set_interests(current_user, list(payload.interests))
    await db.commit()
    user = await load_user(db, current_user.id)
    return {"message": "Interests updated successfully",
            "user": await build_user_response(db, user)}


@router.get("/{user_id}/favorites", response_model=FavoritesResponse)
async def get_favorites(user_id: int, current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    ensure_self(current_user, user_id, "view your own favorites")
    res = await db.execute(
        select(Spot.id)
        .join(SpotLike, SpotLike.spot_id == Spot.id)
        .where(SpotLike.user_id == current_user.id, Spot.status == "approved")
        .order_by(SpotLike.id)
    )
    return {"favorite_ids": list(res.scalars().all())}


@router.post("/{user_id}/favorites", response_model=MessageResponse)
async def add_favorite(user_id: int, payload: FavoriteRequest, current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    ensure_self(current_user, user_id, "add to your own favorites")
    spot = await db.get(Spot, payload.spot_id)
    if spot is None:
        raise HTTPException(status_code=404, detail="Spot not found")
    res = await db.execute(select(SpotLike.id).where(
        SpotLike.spot_id == spot.id, SpotLike.user_id == current_user.id))
    if res.scalar_one_or_none() is not None:
        raise HTTPException(status_code=400, detail="Spot already in favorites")
    db.add(SpotLike(spot_id=spot.id, user_id=current_user.id))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="Spot already in favorites")
    return {"message": "Spot added to favorites"}


@router.delete("/{user_id}/favorites/{spot_id}", response_model=MessageResponse)
async def remove_favorite(user_id: int, spot_id: int, current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    ensure_self(current_user, user_id, "remove from your own favorites")
    spot = await db.get(Spot, spot_id)
    if spot is None:
        raise HTTPException(status_code=404, detail="Spot not found")
    res = await db.execute(delete(SpotLike).where(
        SpotLike.spot_id == spot_id, SpotLike.user_id == current_user.id))
    if not res.rowcount:
        raise HTTPException(status_code=400, detail="Spot not in favorites")
    await db.commit()
    return {"message": "Spot removed from favorites"}


@router.post("/{user_id}/avatar", response_model=AvatarResponse)
async def upload_avatar(
    user_id: int,
    avatar: UploadFile = File(...),
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ensure_self(current_user, user_id, "update your own avatar")
    content = await avatar.read()
    try:
        url = await StorageService.save_avatar(current_user.id, avatar.filename or "", content)
    except ImageValidationError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    previous = current_user.profile_pic
    current_user.profile_pic = url
    await db.commit()
    if previous and previous != url:
        await StorageService.delete_url(previous)
    return {"profile_pic": url}


@router.get("/{user_id}/posts", response_model=List[SpotResponse])
async def get_user_spots(user_id: int, current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    """The caller's approved spot submissions"""
    ensure_self(current_user, user_id, "view your own posts")
    res = await db.execute(newest_first(
        select(Spot).where(Spot.submitted_by == current_user.id, Spot.status == "approved")))
    return [SpotResponse.model_validate(s) for s in res.scalars().all()]


@router.get("/{user_id}/settings", response_model=UserSettings)
async def get_settings(user_id: int, current_user: User = Depends(JWTService.get_current_user)):
    ensure_self(current_user, user_id, "view your own settings")
    return _settings_of(current_user)


@router.put("/{user_id}/settings", response_model=UserSettingsResponse)
async def update_settings(user_id: int, payload: UserSettingsUpdate, current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    ensure_self(current_user, user_id, "update your own settings")
    if payload.notifications is not None:
        toggles = payload.notifications
        for field, column in (("comments", "notify_comments"), ("likes", "notify_likes"),
                              ("follows", "notify_follows"),
                              ("recommendations", "notify_recommendations")):
            value = getattr(toggles, field)
            if value is not None:
                setattr(current_user, column, value)
    if payload.privacy is not None:
        if payload.privacy.profile_public is not None:
            current_user.profile_public = payload.privacy.profile_public
        if payload.privacy.share_location is not None:
            current_user.share_location = payload.privacy.share_location
    if payload.notifications_enabled is not None:
        current_user.notifications_enabled = payload.notifications_enabled
    await db.commit()
    user = await load_user(db, current_user.id)
    return {"message": "Settings updated successfully", "settings": _settings_of(user)}


@router.get("/{user_id}/analytics", response_model=UserAnalytics)
async def get_user_analytics(user_id: int, current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    if current_user.id != user_id and not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden: Admin access required")
    user = await _get_user_or_404(db, user_id)
    total_spots = (await db.execute(
        select(func.count(Spot.id)).where(Spot.submitted_by == user.id))).scalar() or 0
    total_likes = (await db.execute(
        select(func.count(SpotLike.id)).where(SpotLike.user_id == user.id))).scalar() or 0
    followers, following = await follow_counts(db, user.id)
    return {"total_spots": total_spots, "total_likes": total_likes,
            "total_followers": followers, "total_following": following}
