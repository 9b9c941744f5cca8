import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..dependencies import get_current_admin_user, get_optional_user
from ..exceptions import ImageValidationError, TooManyFilesError
from ..models import Spot, SpotLike, SpotPhoto, SpotReport, SpotReview, SpotTag, User
from ..schemas import (
    LikeResponse,
    MessageResponse,
    NearbySpots,
    PaginatedSpots,
    SpotAdminAnalytics,
    SpotCreate,
    SpotEnvelope,
    SpotPhotosResponse,
    SpotReportCreate,
    SpotResponse,
    SpotReviewCreate,
    SpotReviewResponse,
    SpotStatusUpdate,
    SpotUpdate,
    View360Response,
)
from ..services import spot_service
from ..services.jwt_service import JWTService
from ..services.notification_service import NotificationService
from ..services.rate_limit import like_comment_limiter
from ..services.realtime import manager, spot_room
from ..services.storage import StorageService
from ..utils import following_ids, page_envelope, page_offset, parse_tags

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/spots",
    tags=["spots"],
    responses={
        400: {"description": "Validation error"},
        404: {"description": "Spot not found"},
    },
)


def _spot_page(spots: list, total: int, page: int, limit: int) -> dict:
    return page_envelope([SpotResponse.model_validate(s) for s in spots], total, page, limit)


async def _spot_or_404(db: AsyncSession, spot_id: int) -> Spot:
    spot = await spot_service.load_spot(db, spot_id)
    if spot is None:
        raise HTTPException(status_code=404, detail="Spot not found")
    return spot


def _can_manage(user: Optional[User], spot: Spot) -> bool:
    return user is not None and (user.id == spot.submitted_by or user.is_admin)


async def _store_photos(spot: Spot, files: List[UploadFile]) -> List[str]:
    """Store every upload or none: files saved before a rejected one are removed"""
    urls = []
    try:
        for upload in files:
            content = await upload.read()
            urls.append(await StorageService.save_spot_photo(spot.id, upload.filename or "", content))
    except ImageValidationError:
        await StorageService.delete_urls(urls)
        raise
    return urls


# Listings

@router.get("/", response_model=PaginatedSpots)
async def list_spots(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    spots, total = await spot_service.paginate(
        db, spot_service.newest_first(spot_service.approved_spots()), page, limit)
    return _spot_page(spots, total, page, limit)


@router.get("/feed", response_model=PaginatedSpots)
async def feed(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Spots from followed users and the caller, best interest match first"""
    followed = await following_ids(db, current_user.id)
    rows, total = await spot_service.feed_page(db, current_user, followed, page, limit)
    items = [
        SpotResponse.model_validate(spot).model_copy(update={"interest_score": score})
        for spot, score in rows
    ]
    return page_envelope(items, total, page, limit)


@router.get("/recommend", response_model=PaginatedSpots)
async def recommend(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    spots, total = await spot_service.paginate(
        db, spot_service.recommend_query(current_user), page, limit)
    return _spot_page(spots, total, page, limit)


@router.get("/trending", response_model=PaginatedSpots)
async def trending(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    spots, total = await spot_service.paginate(
        db, spot_service.trending_query(), page, limit)
    return _spot_page(spots, total, page, limit)


@router.get("/nearby", response_model=PaginatedSpots)
async def nearby(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    radius: float = Query(..., ge=0, le=20000, description="Radius in km"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    hits = await spot_service.spots_near(db, lat, lon, radius)
    start = page_offset(page, limit)
    items = [
        SpotResponse.model_validate(spot).model_copy(
            update={"distance_km": round(distance, 3)})
        for distance, spot in hits[start:start + limit]
    ]
    return page_envelope(items, len(hits), page, limit)


@router.get("/search", response_model=PaginatedSpots)
async def search(
    query: str = Query(..., min_length=1, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    spots, total = await spot_service.paginate(
        db, spot_service.search_query(query.strip()), page, limit)
    return _spot_page(spots, total, page, limit)


@router.get("/search/suggestions", response_model=List[str])
async def search_suggestions(q: str = Query(..., min_length=1, max_length=200), db: AsyncSession = Depends(get_db)):
    return await spot_service.suggestions(db, q.strip())


@router.get("/tags/{tag}", response_model=PaginatedSpots)
async def spots_by_tag(
    tag: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    spots, total = await spot_service.paginate(
        db, spot_service.tag_query(tag), page, limit)
    return _spot_page(spots, total, page, limit)


# Admin

@router.get("/admin/analytics", response_model=SpotAdminAnalytics)
async def admin_analytics(admin_user: User = Depends(get_current_admin_user), db: AsyncSession = Depends(get_db)):
    return await spot_service.admin_analytics(db)


@router.get("/admin/pending", response_model=PaginatedSpots)
async def pending_spots(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Spot).where(Spot.status == "pending").order_by(
        Spot.created_at, Spot.id)
    spots, total = await spot_service.paginate(db, stmt, page, limit)
    return _spot_page(spots, total, page, limit)


# Create / read / update / delete

@router.post("/", response_model=SpotEnvelope, status_code=status.HTTP_201_CREATED)
async def create_spot(
    name: str = Form(...),
    content: str = Form(...),
    latitude: float = Form(...),
    longitude: float = Form(...),
    city: str = Form(""),
    tags: Optional[List[str]] = Form(None),
    difficulty: str = Form("Unknown"),
    best_time_to_visit: str = Form(""),
    unique_facts: str = Form(""),
    view360_image_url: str = Form(""),
    view360_description: str = Form(""),
    photos: List[UploadFile] = File(default=[]),
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit a new spot; it stays pending until an admin approves it"""
    fields = {
        "name": name, "content": content, "latitude": latitude, "longitude": longitude,
        "city": city, "difficulty": difficulty, "best_time_to_visit": best_time_to_visit,
        "unique_facts": unique_facts, "view360_image_url": view360_image_url,
        "view360_description": view360_description,
    }
    parsed_tags = parse_tags(tags)
    if parsed_tags:
        fields["tags"] = parsed_tags
    try:
        payload = SpotCreate(**fields)
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    if len(photos) > settings.spot_max_photos:
        raise HTTPException(status_code=400, detail=str(
            TooManyFilesError(settings.spot_max_photos)))

    spot = Spot(
        name=payload.name,
        content=payload.content,
        city=payload.city,
        latitude=payload.latitude,
        longitude=payload.longitude,
        difficulty=payload.difficulty,
        best_time_to_visit=payload.best_time_to_visit,
        unique_facts=payload.unique_facts,
        view360_image_url=payload.view360_image_url,
        view360_description=payload.view360_description,
        submitted_by=current_user.id,
        status="pending",
    )
    spot.tags = [SpotTag(name=t) for t in dict.fromkeys(payload.tags)]
    db.add(spot)
    await db.flush()

    try:
        urls = await _store_photos(spot, photos)
    except ImageValidationError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))
    for url in urls:
        db.add(SpotPhoto(spot_id=spot.id, url=url))
    await db.commit()
    logger.info(f"Spot {spot.id} submitted by user {current_user.id}")

    spot = await spot_service.load_spot(db, spot.id)
    return {"message": "Spot submitted successfully", "spot": SpotResponse.model_validate(spot)}


@router.get("/{spot_id}", response_model=SpotResponse)
async def get_spot(
    spot_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    spot = await _spot_or_404(db, spot_id)
    if spot.status != "approved" and not _can_manage(current_user, spot):
        raise HTTPException(status_code=403, detail="This spot is not available")

    await db.execute(update(Spot).where(Spot.id == spot_id).values(views=Spot.views + 1))
    await db.commit()
    spot = await spot_service.load_spot(db, spot_id)
    return SpotResponse.model_validate(spot)


@router.put("/{spot_id}", response_model=SpotEnvelope)
async def update_spot(
    spot_id: int,
    payload: SpotUpdate,
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    spot = await _spot_or_404(db, spot_id)
    if spot.submitted_by != current_user.id:
        raise HTTPException(status_code=403, detail="Unauthorized: You can only edit your own spots")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    new_tags = changes.pop("tags", None)
    for field, value in changes.items():
        setattr(spot, field, value)
    if new_tags is not None:
        spot.tags = [SpotTag(name=t) for t in dict.fromkeys(new_tags)]
    await db.commit()

    spot = await spot_service.load_spot(db, spot_id)
    await manager.emit(spot_room(spot_id), "spotUpdated", {"spot_id": spot_id})
    return {"message": "Spot updated successfully", "spot": SpotResponse.model_validate(spot)}


@router.delete("/{spot_id}", response_model=MessageResponse)
async def delete_spot(
    spot_id: int,
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    spot = await _spot_or_404(db, spot_id)
    if not _can_manage(current_user, spot):
        raise HTTPException(status_code=403, detail="Unauthorized: You can only delete your own spots")

    photo_urls = spot.photo_urls
    await db.execute(delete(Spot).where(Spot.id == spot_id))
    await db.commit()
    db.expunge_all()
    for url in photo_urls:
        await StorageService.delete_url(url)

    logger.info(f"Spot {spot_id} deleted by user {current_user.id}")
    await manager.emit(spot_room(spot_id), "spotDeleted", {"spot_id": spot_id})
    return {"message": "Spot deleted successfully"}


@router.patch("/{spot_id}/status", response_model=SpotEnvelope)
async def update_spot_status(
    spot_id: int,
    payload: SpotStatusUpdate,
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    spot = await _spot_or_404(db, spot_id)
    spot.status = payload.status
    await db.commit()
    spot = await spot_service.load_spot(db, spot_id)

    if spot.status != "pending":
        await manager.emit_to_user(spot.submitted_by, "spotStatusUpdated", {
            "spot_id": spot.id,
            "status": spot.status,
        })
    logger.info(f"Admin {admin_user.id} set spot {spot_id} to {spot.status}")
    return {"message": "Spot status updated successfully", "spot": SpotResponse.model_validate(spot)}


# Photos

@router.get("/{spot_id}/images", response_model=List[str])
async def get_spot_images(spot_id: int, db: AsyncSession = Depends(get_db)):
    spot = await _spot_or_404(db, spot_id)
    return spot.photo_urls


@router.post("/{spot_id}/images", response_model=SpotPhotosResponse)
async def upload_spot_images(
    spot_id: int,
    images: List[UploadFile] = File(...),
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    spot = await _spot_or_404(db, spot_id)
    if spot.submitted_by != current_user.id:
        raise HTTPException(status_code=403, detail="Unauthorized: You can only add images to your own spots")
    if len(images) > settings.spot_max_image_uploads:
        raise HTTPException(status_code=400, detail=str(
            TooManyFilesError(settings.spot_max_image_uploads)))
    if len(spot.photos) + len(images) > settings.spot_max_photos:
        raise HTTPException(status_code=400, detail=str(
            TooManyFilesError(settings.spot_max_photos)))

    try:
        urls = await _store_photos(spot, images)
    except ImageValidationError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    for url in urls:
        db.add(SpotPhoto(spot_id=spot.id, url=url))
    await db.commit()

    spot = await spot_service.load_spot(db, spot_id)
    return {"message": "Images uploaded successfully", "photos": spot.photo_urls}


# Reviews

@router.get("/{spot_id}/reviews", response_model=List[SpotReviewResponse])
async def get_reviews(spot_id: int, db: AsyncSession = Depends(get_db)):
    spot = await _spot_or_404(db, spot_id)
    return [SpotReviewResponse.model_validate(r) for r in spot.reviews]


@router.post("/{spot_id}/reviews", response_model=SpotReviewResponse,
             dependencies=[Depends(like_comment_limiter)])
async def add_review(
    spot_id: int,
    payload: SpotReviewCreate,
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    spot = await _spot_or_404(db, spot_id)
    review = SpotReview(
        spot_id=spot.id,
        user_id=current_user.id,
        username=current_user.username,
        content=payload.content,
        rating=payload.rating,
    )
    db.add(review)
    await db.flush()
    await spot_service.recompute_average_rating(db, spot)
    await db.commit()

    res = await db.execute(
        select(SpotReview).where(SpotReview.id == review.id).execution_options(
            populate_existing=True))
    review_out = SpotReviewResponse.model_validate(res.scalar_one())
    event_data = {"spot_id": spot.id, "comment": review_out.model_dump(mode="json")}

    owner = await db.get(User, spot.submitted_by)
    await NotificationService.notify(
        db, owner, current_user.id, "comment", spot.id, "newComment", event_data)
    await manager.emit(spot_room(spot.id), "newComment", event_data)
    return review_out


# Likes

@router.post("/{spot_id}/like", response_model=LikeResponse,
             dependencies=[Depends(like_comment_limiter)])
async def like_spot(
    spot_id: int,
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    spot = await _spot_or_404(db, spot_id)
    if spot.status != "approved":
        raise HTTPException(status_code=400, detail="Only approved spots can be liked")
    if current_user.id in spot.liked_by:
        raise HTTPException(status_code=400, detail="Spot already liked")

    db.add(SpotLike(spot_id=spot.id, user_id=current_user.id))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="Spot already liked")

    likes = await _like_count(db, spot.id)
    owner = await db.get(User, spot.submitted_by)
    await NotificationService.notify(
        db, owner, current_user.id, "like", spot.id, "newLike",
        {"spot_id": spot.id, "user_id": current_user.id})
    await manager.emit(spot_room(spot.id), "spotUpdated", {"spot_id": spot.id, "likes": likes})
    return {"message": "Spot liked successfully", "likes": likes}


@router.post("/{spot_id}/unlike", response_model=LikeResponse,
             dependencies=[Depends(like_comment_limiter)])
async def unlike_spot(
    spot_id: int,
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    spot = await _spot_or_404(db, spot_id)
    res = await db.execute(delete(SpotLike).where(
        SpotLike.spot_id == spot.id, SpotLike.user_id == current_user.id))
    if not res.rowcount:
        raise HTTPException(status_code=400, detail="Spot not liked")
    await db.commit()
    likes = await _like_count(db, spot.id)
    await manager.emit(spot_room(spot.id), "spotUpdated", {"spot_id": spot.id, "likes": likes})
    return {"message": "Spot unliked successfully", "likes": likes}


async def _like_count(db: AsyncSession, spot_id: int) -> int:
    res = await db.execute(select(func.count(SpotLike.id)).where(SpotLike.spot_id == spot_id))
    return res.scalar() or 0


# Reports

@router.post("/{spot_id}/report", response_model=MessageResponse)
async def report_spot(
    spot_id: int,
    payload: SpotReportCreate,
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    spot = await _spot_or_404(db, spot_id)
    db.add(SpotReport(spot_id=spot.id, reported_by=current_user.id, reason=payload.reason))
    await db.commit()
    logger.info(f"Spot {spot.id} reported by user {current_user.id}")

    res = await db.execute(select(User.id).where(User.is_admin.is_(True)))
    for admin_id in res.scalars().all():
        await manager.emit_to_user(admin_id, "newReport", {
            "spot_id": spot.id,
            "user_id": current_user.id,
            "reason": payload.reason,
        })
    return {"message": "Spot reported successfully"}


# Geo and media extras

@router.get("/{spot_id}/nearby", response_model=NearbySpots)
async def spots_near_spot(spot_id: int, db: AsyncSession = Depends(get_db)):
    spot = await _spot_or_404(db, spot_id)
    hits = await spot_service.spots_near(
        db, spot.latitude, spot.longitude, settings.spot_nearby_radius_km, exclude_id=spot.id)
    return {"spots": [
        SpotResponse.model_validate(s).model_copy(update={"distance_km": round(d, 3)})
        for d, s in hits[:settings.spot_nearby_limit]
    ]}


@router.get("/{spot_id}/360-view", response_model=View360Response)
async def spot_360_view(spot_id: int, db: AsyncSession = Depends(get_db)):
    spot = await _spot_or_404(db, spot_id)
    return {"image_url": spot.view360_image_url, "description": spot.view360_description}
