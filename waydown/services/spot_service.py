"""
Spot queries shared by the spots and users routers.

Ranking is expressed as SQL (correlated scalar subqueries and aggregates);
the only Python-side step is the great-circle filter applied to the
bounding-box candidates of a geo query.
"""
import logging
from typing import Optional, Sequence

from sqlalchemy import Select, and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Post, Spot, SpotLike, SpotReview, SpotTag, User
from ..utils import bounding_box, longitude_clause, page_offset, within_radius

logger = logging.getLogger(__name__)

APPROVED = "approved"


async def load_spot(db: AsyncSession, spot_id: int) -> Optional[Spot]:
    """Fetch a spot with fresh relationship collections"""
    res = await db.execute(
        select(Spot).where(Spot.id == spot_id).execution_options(
            populate_existing=True)
    )
    return res.scalar_one_or_none()


async def count_rows(db: AsyncSession, stmt: Select) -> int:
    count_stmt = select(func.count()).select_from(
        stmt.order_by(None).subquery())
    return (await db.execute(count_stmt)).scalar() or 0


async def paginate(db: AsyncSession, stmt: Select, page: int, limit: int) -> tuple[list, int]:
    """Return one page of ORM objects plus the total row count"""
    total = await count_rows(db, stmt)
    res = await db.execute(stmt.offset(page_offset(page, limit)).limit(limit))
    return list(res.scalars().all()), total


def approved_spots() -> Select:
    return select(Spot).where(Spot.status == APPROVED)


def newest_first(stmt: Select) -> Select:
    return stmt.order_by(Spot.created_at.desc(), Spot.id.desc())


def interest_score_expr(interests: Sequence[str]):
    """Number of a spot's tags that appear in the given interests"""
    return (
        select(func.count(SpotTag.id))
        .where(SpotTag.spot_id == Spot.id, SpotTag.name.in_(list(interests)))
        .correlate(Spot)
        .scalar_subquery()
    )


def like_count_expr():
    return (
        select(func.count(SpotLike.id))
        .where(SpotLike.spot_id == Spot.id)
        .correlate(Spot)
        .scalar_subquery()
    )


def review_count_expr():
    return (
        select(func.count(SpotReview.id))
        .where(SpotReview.spot_id == Spot.id)
        .correlate(Spot)
        .scalar_subquery()
    )


async def feed_page(db: AsyncSession, user: User, followed: Sequence[int],
                    page: int, limit: int) -> tuple[list[tuple[Spot, int]], int]:
    """Approved spots from followed users and the user, best interest match first"""
    authors = set(followed) | {user.id}
    score = interest_score_expr(user.interest_names)
    base = approved_spots().where(Spot.submitted_by.in_(authors))
    total = await count_rows(db, base)
    stmt = (
        select(Spot, score.label("interest_score"))
        .where(Spot.status == APPROVED, Spot.submitted_by.in_(authors))
        .order_by(score.desc(), Spot.created_at.desc(), Spot.id.desc())
        .offset(page_offset(page, limit))
        .limit(limit)
    )
    rows = (await db.execute(stmt)).all()
    return [(row[0], int(row[1] or 0)) for row in rows], total


def recommend_query(user: User) -> Select:
    """Approved spots sharing a tag with the user's interests that the user has not liked"""
    tag_match = exists().where(
        SpotTag.spot_id == Spot.id, SpotTag.name.in_(user.interest_names))
    liked = exists().where(SpotLike.spot_id == Spot.id,
                           SpotLike.user_id == user.id)
    return newest_first(approved_spots().where(tag_match, ~liked))


def trending_query() -> Select:
    return approved_spots().order_by(
        like_count_expr().desc(),
        review_count_expr().desc(),
        Spot.created_at.desc(),
        Spot.id.desc(),
    )


def search_query(query: str) -> Select:
    """Case-insensitive substring match over the text fields and tags"""
    tag_match = exists().where(SpotTag.spot_id == Spot.id,
                               SpotTag.name.icontains(query, autoescape=True))
    return newest_first(approved_spots().where(or_(
        Spot.name.icontains(query, autoescape=True),
        Spot.content.icontains(query, autoescape=True),
        Spot.best_time_to_visit.icontains(query, autoescape=True),
        Spot.unique_facts.icontains(query, autoescape=True),
        tag_match,
    )))


def tag_query(tag: str) -> Select:
    tag_match = exists().where(SpotTag.spot_id == Spot.id,
                               func.lower(SpotTag.name) == tag.lower())
    return newest_first(approved_spots().where(tag_match))


async def suggestions(db: AsyncSession, q: str, limit: int = 10) -> list[str]:
    """Distinct spot names then tag names containing q"""
    names = await db.execute(
        select(Spot.name)
        .where(Spot.status == APPROVED, Spot.name.icontains(q, autoescape=True))
        .distinct()
        .order_by(Spot.name)
        .limit(limit)
    )
    tags = await db.execute(
        select(SpotTag.name)
        .join(Spot, Spot.id == SpotTag.spot_id)
        .where(Spot.status == APPROVED, SpotTag.name.icontains(q, autoescape=True))
        .distinct()
        .order_by(SpotTag.name)
        .limit(limit)
    )
    result: list[str] = []
    for value in list(names.scalars().all()) + list(tags.scalars().all()):
        if value not in result:
            result.append(value)
    return result[:limit]


async def spots_near(db: AsyncSession, lat: float, lon: float, radius_km: float,
                     exclude_id: Optional[int] = None) -> list[tuple[float, Spot]]:
    """Approved spots within radius_km, nearest first"""
    min_lat, max_lat, min_lon, max_lon = bounding_box(lat, lon, radius_km)
    stmt = approved_spots().where(
        and_(Spot.latitude.between(min_lat, max_lat),
             longitude_clause(Spot.longitude, min_lon, max_lon))
    )
    res = await db.execute(stmt)
    return within_radius(res.scalars().all(), lat, lon, radius_km, exclude_id=exclude_id)


async def recompute_average_rating(db: AsyncSession, spot: Spot) -> float:
    res = await db.execute(
        select(func.avg(SpotReview.rating)).where(SpotReview.spot_id == spot.id))
    avg = res.scalar()
    spot.average_rating = round(float(avg), 1) if avg is not None else 0.0
    return spot.average_rating


async def admin_analytics(db: AsyncSession) -> dict:
    total_spots = (await db.execute(
        select(func.count(Spot.id)).where(Spot.status == APPROVED))).scalar() or 0
    total_posts = (await db.execute(select(func.count(Post.id)))).scalar() or 0

    tag_count = func.count(SpotTag.id).label("count")
    categories = await db.execute(
        select(SpotTag.name, tag_count)
        .join(Spot, Spot.id == SpotTag.spot_id)
        .where(Spot.status == APPROVED)
        .group_by(SpotTag.name)
        .order_by(tag_count.desc(), SpotTag.name)
        .limit(5)
    )

    like_count = func.count(SpotLike.id).label("likes")
    top = await db.execute(
        select(Spot.id, Spot.name, Spot.views, like_count)
        .outerjoin(SpotLike, SpotLike.spot_id == Spot.id)
        .where(Spot.status == APPROVED)
        .group_by(Spot.id, Spot.name, Spot.views)
        .order_by(like_count.desc(), Spot.views.desc(), Spot.id)
        .limit(5)
    )
    return {
        "total_spots": total_spots,
        "total_posts": total_posts,
        "top_categories": [{"name": name, "count": count} for name, count in categories.all()],
        "top_spots": [
            {"id": sid, "name": name, "likes": likes, "views": views, "saves": likes}
            for sid, name, views, likes in top.all()
        ],
    }
