#!/usr/bin/env python3
"""
Check Spots Script
Lists spots whose coordinates fall outside the valid latitude/longitude ranges
"""

import asyncio
import os
import sys

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from sqlalchemy import func, or_, select  # noqa: E402

from waydown.database import session_scope  # noqa: E402
from waydown.models import Spot  # noqa: E402


def invalid_coordinates_query():
    return select(Spot).where(or_(
        Spot.latitude.is_(None),
        Spot.longitude.is_(None),
        Spot.latitude < -90,
        Spot.latitude > 90,
        Spot.longitude < -180,
        Spot.longitude > 180,
    )).order_by(Spot.id)


async def check_spots() -> int:
    async with session_scope() as db:
        total = (await db.execute(select(func.count(Spot.id)))).scalar() or 0
        result = await db.execute(invalid_coordinates_query())
        broken = result.scalars().all()

    print(f"📍 Spots checked: {total}")
    print("=" * 40)
    if not broken:
        print("✅ All spot coordinates are valid")
        return 0
    for spot in broken:
        print(f"❌ Spot {spot.id} '{spot.name}': lat={spot.latitude} lon={spot.longitude}")
    return len(broken)


if __name__ == "__main__":
    broken_count = asyncio.run(check_spots())
    sys.exit(1 if broken_count else 0)
