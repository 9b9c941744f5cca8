import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..exceptions import ImageValidationError, TooManyFilesError
from ..models import Post, PostComment, PostImage, PostLike, PostTag, User
from ..schemas import (
    PaginatedPostComments,
    PaginatedPosts,
    PostCommentCreate,
    PostCommentResponse,
    PostEnvelope,
    PostResponse,
    TrendingTag,
)
from ..services.jwt_service import JWTService
from ..services.notification_service import NotificationService
from ..services.rate_limit import like_comment_limiter
from ..services.realtime import manager, post_room
from ..services.spot_service import paginate
from ..services.storage import StorageService
from ..utils import follower_ids, page_envelope, parse_tags

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/community", tags=["community"])

MAX_TAG_LENGTH = 50


async def _load_post(db: AsyncSession, post_id: int) -> Optional[Post]:
    res = await db.execute(
        select(Post).where(Post.id == post_id).execution_options(
            populate_existing=True)
    )
    return res.scalar_one_or_none()


async def _post_or_404(db: AsyncSession, post_id: int) -> Post:
    post = await _load_post(db, post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


async def _post_envelope(db: AsyncSession, post_id: int, broadcast: bool = False) -> dict:
    post = await _load_post(db, post_id)
    body = PostResponse.model_validate(post)
    if broadcast:
        await manager.emit(post_room(post_id), "postUpdated",
                           {"post": body.model_dump(mode="json")})
    return {"post": body}


@router.get("/", response_model=PaginatedPosts)
async def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Post).where(Post.status == "approved").order_by(
        Post.created_at.desc(), Post.id.desc())
    posts, total = await paginate(db, stmt, page, limit)
    return page_envelope([PostResponse.model_validate(p) for p in posts], total, page, limit)


@router.get("/tags/trending", response_model=List[TrendingTag])
async def trending_tags(
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Most used tags across approved posts"""
    tag_count = func.count(PostTag.id).label("count")
    res = await db.execute(
        select(PostTag.name, tag_count)
        .join(Post, Post.id == PostTag.post_id)
        .where(Post.status == "approved")
        .group_by(PostTag.name)
        .order_by(tag_count.desc(), PostTag.name)
        .limit(limit)
    )
    return [{"name": name, "count": count} for name, count in res.all()]


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: int, db: AsyncSession = Depends(get_db)):
    return PostResponse.model_validate(await _post_or_404(db, post_id))


@router.post("/", response_model=PostEnvelope, status_code=status.HTTP_201_CREATED)
async def create_post(
    title: str = Form(..., min_length=1, max_length=100),
    content: str = Form(..., min_length=1, max_length=2000),
    location: str = Form(..., min_length=1, max_length=200),
    tags: Optional[List[str]] = Form(None),
    images: List[UploadFile] = File(default=[]),
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if len(images) > settings.post_max_images:
        raise HTTPException(status_code=400, detail=str(
            TooManyFilesError(settings.post_max_images)))

    names: list[str] = []
    for tag in parse_tags(tags):
        tag = tag.lower()
        if len(tag) > MAX_TAG_LENGTH:
            raise HTTPException(
                status_code=400, detail=f"Tags must be at most {MAX_TAG_LENGTH} characters")
        if tag not in names:
            names.append(tag)

    post = Post(
        title=title.strip(),
        content=content.strip(),
        location=location.strip(),
        user_id=current_user.id,
        status="approved",
    )
    post.tags = [PostTag(name=name) for name in names]
    db.add(post)
    await db.flush()

    stored: list[str] = []
    try:
        for upload in images:
            data = await upload.read()
            url = await StorageService.save_post_image(post.id, upload.filename or "", data)
            stored.append(url)
            db.add(PostImage(post_id=post.id, url=url))
    except ImageValidationError as e:
        await db.rollback()
        await StorageService.delete_urls(stored)
        raise HTTPException(status_code=e.status_code, detail=str(e))
    await db.commit()
    logger.info(f"Post {post.id} created by user {current_user.id}")

    for follower_id in await follower_ids(db, current_user.id):
        follower = await db.get(User, follower_id)
        await NotificationService.notify(
            db, follower, current_user.id, "post", post.id, "newPost",
            {"post_id": post.id, "user_id": current_user.id, "title": post.title})

    return await _post_envelope(db, post.id)


@router.post("/{post_id}/like", response_model=PostEnvelope,
             dependencies=[Depends(like_comment_limiter)])
async def like_post(
    post_id: int,
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await _post_or_404(db, post_id)
    if current_user.id in post.liked_by:
        raise HTTPException(status_code=400, detail="Post already liked")

    db.add(PostLike(post_id=post.id, user_id=current_user.id))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="Post already liked")

    author = await db.get(User, post.user_id)
    await NotificationService.notify(
        db, author, current_user.id, "like", post.id, "newLike",
        {"post_id": post.id, "user_id": current_user.id})
    return await _post_envelope(db, post.id, broadcast=True)


@router.delete("/{post_id}/like", response_model=PostEnvelope,
               dependencies=[Depends(like_comment_limiter)])
async def unlike_post(
    post_id: int,
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _post_or_404(db, post_id)
    res = await db.execute(delete(PostLike).where(
        PostLike.post_id == post_id, PostLike.user_id == current_user.id))
    if not res.rowcount:
        raise HTTPException(status_code=400, detail="Post not liked")
    await db.commit()
    return await _post_envelope(db, post_id, broadcast=True)


@router.post("/{post_id}/comments", response_model=PostEnvelope,
             dependencies=[Depends(like_comment_limiter)])
async def add_comment(
    post_id: int,
    payload: PostCommentCreate,
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await _post_or_404(db, post_id)
    text = payload.text.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Comment text is required")

    comment = PostComment(post_id=post.id, user_id=current_user.id,
                          username=current_user.username, text=text)
    db.add(comment)
    await db.commit()

    author = await db.get(User, post.user_id)
    await NotificationService.notify(
        db, author, current_user.id, "comment", post.id, "newComment",
        {"post_id": post.id, "comment_id": comment.id, "user_id": current_user.id})
    return await _post_envelope(db, post.id, broadcast=True)


@router.get("/{post_id}/comments", response_model=PaginatedPostComments)
async def list_comments(
    post_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    await _post_or_404(db, post_id)
    stmt = select(PostComment).where(PostComment.post_id == post_id).order_by(
        PostComment.created_at, PostComment.id)
    comments, total = await paginate(db, stmt, page, limit)
    return page_envelope([PostCommentResponse.model_validate(c) for c in comments],
                         total, page, limit)
