import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from ..config import settings
from ..database import get_db
from ..models import User, RefreshToken

logger = logging.getLogger(__name__)

# JWT token scheme
security = HTTPBearer(auto_error=False)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class JWTService:
    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create a signed JWT access token"""
        to_encode = data.copy()

        if expires_delta:
            expire = datetime.now(timezone.utc) + expires_delta
        else:
            expire = datetime.now(timezone.utc) + \
                timedelta(minutes=settings.jwt_expiry_minutes)

        to_encode.update({"exp": expire, "type": ACCESS_TOKEN_TYPE})
        return jwt.encode(
            to_encode,
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm
        )

    @staticmethod
    def create_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
        """Create an access token for an authenticated user"""
        data = {"sub": str(user.id), "email": user.email,
                "admin": bool(user.is_admin)}
        return JWTService.create_access_token(data, expires_delta)

    @staticmethod
    async def issue_refresh_token(db: AsyncSession, user: User) -> str:
        """
        Create a refresh token and remember its jti so it can be revoked.
        The caller commits the session.
        """
        jti = uuid.uuid4().hex
        expires_at = datetime.now(timezone.utc) + \
            timedelta(days=settings.jwt_refresh_expiry_days)
        db.add(RefreshToken(user_id=user.id, jti=jti, expires_at=expires_at))
        return jwt.encode(
            {"sub": str(user.id), "jti": jti, "type": REFRESH_TOKEN_TYPE,
             "exp": expires_at},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )

    @staticmethod
    def verify_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> dict:
        """Verify and decode a JWT token of the expected type"""
        try:
            payload = jwt.decode(
                token,
                settings.jwt_secret_key,
                algorithms=[settings.jwt_algorithm]
            )
        except JWTError:
            raise _unauthorized()
        if payload.get("type") != expected_type:
            raise _unauthorized("Invalid token type")
        return payload

    @staticmethod
    def user_id_from_payload(payload: dict) -> int:
        user_id_str = payload.get("sub")
        if user_id_str is None:
            raise _unauthorized()
        try:
            return int(user_id_str)
        except (ValueError, TypeError):
            raise _unauthorized("Invalid user ID in token")

    @staticmethod
    async def rotate_access_token(db: AsyncSession, refresh_token: str) -> str:
        """Exchange a valid, unrevoked refresh token for a new access token"""
        payload = JWTService.verify_token(refresh_token, REFRESH_TOKEN_TYPE)
        user_id = JWTService.user_id_from_payload(payload)
        res = await db.execute(
            select(RefreshToken).where(
                RefreshToken.jti == payload.get("jti"),
                RefreshToken.user_id == user_id,
            )
        )
        stored = res.scalar_one_or_none()
        if stored is None or stored.revoked:
            raise _unauthorized("Refresh token revoked or unknown")
        user = await db.get(User, user_id)
        if user is None:
            raise _unauthorized("User not found")
        return JWTService.create_token(user)

    @staticmethod
    async def revoke_refresh_tokens(db: AsyncSession, user_id: int) -> None:
        await db.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
        )

    @staticmethod
    async def user_from_token(db: AsyncSession, token: str) -> User:
        payload = JWTService.verify_token(token)
        user_id = JWTService.user_id_from_payload(payload)
        user = await db.get(User, user_id)
        if user is None:
            raise _unauthorized("User not found")
        return user

    @staticmethod
    async def get_current_user(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        db: AsyncSession = Depends(get_db)
    ) -> User:
        """Get the current authenticated user from the bearer token"""
        if credentials is None or not credentials.credentials:
            logger.info("Rejected request without bearer token")
            raise _unauthorized("Unauthorized: No token provided")
        return await JWTService.user_from_token(db, credentials.credentials)

    @staticmethod
    async def get_optional_user(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        db: AsyncSession = Depends(get_db)
    ) -> Optional[User]:
        """Like get_current_user but anonymous requests resolve to None"""
        if credentials is None or not credentials.credentials:
            return None
        try:
            return await JWTService.user_from_token(db, credentials.credentials)
        except HTTPException:
            return None
