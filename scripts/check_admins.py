#!/usr/bin/env python3
"""List every admin account"""

import asyncio
import os
import sys

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from sqlalchemy import select  # noqa: E402

from waydown.database import session_scope  # noqa: E402
from waydown.models import User  # noqa: E402


async def check_admins() -> int:
    async with session_scope() as db:
        result = await db.execute(
            select(User).where(User.is_admin.is_(True)).order_by(User.id))
        admins = result.scalars().all()

    print(f"👑 Admins: {len(admins)}")
    print("=" * 40)
    for admin in admins:
        print(f"   • {admin.id} {admin.username} <{admin.email}>")
    return len(admins)


if __name__ == "__main__":
    count = asyncio.run(check_admins())
    sys.exit(0 if count else 1)
