import json
from math import radians, cos, sin, asin, sqrt, ceil
from typing import Iterable, Optional, Union

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Follow

EARTH_RADIUS_KM = 6371.0
# Length of one degree of latitude
KM_PER_DEGREE = 111.32


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute great-circle distance between two points in kilometers using the Haversine formula."""
    lat1_r, lon1_r, lat2_r, lon2_r = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2_r - lat1_r
    dlon = lon2_r - lon1_r
    a = sin(dlat / 2) ** 2 + cos(lat1_r) * cos(lat2_r) * sin(dlon / 2) ** 2
    c = 2 * asin(sqrt(a))
    return EARTH_RADIUS_KM * c


def bounding_box(lat: float, lon: float, radius_km: float) -> tuple[float, float, float, float]:
    """
    Return (min_lat, max_lat, min_lon, max_lon) enclosing a circle of radius_km.

    The box is a cheap SQL prefilter; callers still apply haversine_distance
    to the candidates. Near the poles the longitude span covers the whole globe.
    When the circle crosses the antimeridian min_lon > max_lon and the window
    wraps; build the SQL with longitude_clause.
    """
    lat_delta = radius_km / KM_PER_DEGREE
    cos_lat = cos(radians(lat))
    if cos_lat < 1e-6:
        lon_delta = 180.0
    else:
        lon_delta = min(180.0, radius_km / (KM_PER_DEGREE * cos_lat))

    if lon_delta >= 180.0:
        min_lon, max_lon = -180.0, 180.0
    else:
        min_lon, max_lon = lon - lon_delta, lon + lon_delta
        if min_lon < -180.0:
            min_lon += 360.0
        if max_lon > 180.0:
            max_lon -= 360.0
    return (
        max(-90.0, lat - lat_delta),
        min(90.0, lat + lat_delta),
        min_lon,
        max_lon,
    )


def longitude_clause(column, min_lon: float, max_lon: float):
    """SQL filter for a longitude window from bounding_box, wrapped or not"""
    if min_lon <= max_lon:
        return column.between(min_lon, max_lon)
    return or_(column.between(min_lon, 180.0), column.between(-180.0, max_lon))


def within_radius(items: Iterable, lat: float, lon: float, radius_km: float,
                  exclude_id: Optional[int] = None) -> list[tuple[float, object]]:
    """Filter objects with latitude/longitude to those inside the radius, nearest first."""
    hits = []
    for item in items:
        if exclude_id is not None and item.id == exclude_id:
            continue
        distance = haversine_distance(lat, lon, item.latitude, item.longitude)
        if distance <= radius_km:
            hits.append((distance, item))
    hits.sort(key=lambda pair: (pair[0], pair[1].id))
    return hits


def total_pages(total: int, limit: int) -> int:
    return ceil(total / limit) if limit else 0


def page_offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def page_envelope(items: list, total: int, page: int, limit: int) -> dict:
    return {"items": items, "total": total, "page": page, "limit": limit,
            "total_pages": total_pages(total, limit)}


def parse_tags(raw: Union[None, str, list[str]]) -> list[str]:
    """
    Normalize tags sent either as a repeated form field, a JSON array string
    or a comma-separated string into a list of stripped, non-empty strings.
    """
    if raw is None:
        return []
    values: list = []
    items = [raw] if isinstance(raw, str) else list(raw)
    for item in items:
        item = (item or "").strip()
        if not item:
            continue
        if item.startswith("["):
            try:
                decoded = json.loads(item)
            except ValueError:
                decoded = None
            if isinstance(decoded, list):
                values.extend(str(v) for v in decoded)
                continue
        values.extend(item.split(","))
    result = []
    for value in values:
        value = value.strip()
        if value and value not in result:
            result.append(value)
    return result


async def follower_ids(db: AsyncSession, user_id: int) -> list[int]:
    res = await db.execute(
        select(Follow.follower_id).where(Follow.followee_id == user_id).order_by(Follow.id))
    return list(res.scalars().all())


async def following_ids(db: AsyncSession, user_id: int) -> list[int]:
    res = await db.execute(
        select(Follow.followee_id).where(Follow.follower_id == user_id).order_by(Follow.id))
    return list(res.scalars().all())


async def is_following(db: AsyncSession, follower_id: int, followee_id: int) -> bool:
    res = await db.execute(
        select(func.count(Follow.id)).where(
            Follow.follower_id == follower_id, Follow.followee_id == followee_id)
    )
    return (res.scalar() or 0) > 0
