#!/usr/bin/env python3
"""
Create Admin Script
Creates an admin account (or promotes an existing one) and prints an access token

Usage: python scripts/create_admin.py <email> <username> [password]
"""

import asyncio
import os
import re
import sys

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from sqlalchemy import select  # noqa: E402

from waydown.database import create_tables, session_scope  # noqa: E402
from waydown.models import User  # noqa: E402
from waydown.schemas import USERNAME_PATTERN  # noqa: E402
from waydown.services.jwt_service import JWTService  # noqa: E402
from waydown.services.passwords import hash_password  # noqa: E402
from waydown.services.user_service import new_user  # noqa: E402


async def create_admin(email: str, username: str, password: str | None):
    """Create or promote the admin and return (user, token)"""
    print("🔧 Creating Admin User")
    print("=" * 40)

    await create_tables()
    async with session_scope() as db:
        result = await db.execute(select(User).where(User.email == email.lower()))
        user = result.scalar_one_or_none()

        if user:
            user.is_admin = True
            print(f"✅ Promoted existing user {user.id} to admin")
        else:
            if not password:
                print("❌ A password is required to create a new admin")
                return None, None
            if not re.fullmatch(USERNAME_PATTERN, username):
                print("❌ Username must be 3-20 letters, digits or underscores")
                return None, None
            user = new_user(email.lower(), username, hash_password(password), is_admin=True)
            db.add(user)
            print("✅ Admin user created")

        await db.commit()
        print(f"   • ID: {user.id}")
        print(f"   • Username: {user.username}")
        print(f"   • Email: {user.email}")

        token = JWTService.create_token(user)
        print(f"   • JWT Token: {token}")
        return user, token


def main():
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)
    password = sys.argv[3] if len(sys.argv) > 3 else None
    user, _ = asyncio.run(create_admin(sys.argv[1], sys.argv[2], password))
    sys.exit(0 if user else 1)


if __name__ == "__main__":
    main()
