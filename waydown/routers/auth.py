import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..dependencies import get_current_admin_user
from ..models import User
from ..schemas import (
    AuthResponse,
    AuthStatusResponse,
    LoginRequest,
    MessageResponse,
    PublicUserResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from ..services.jwt_service import JWTService
from ..services.passwords import hash_password, verify_password
from ..services.user_service import build_user_response, delete_account, load_user, new_user
from ..utils import follower_ids, following_ids

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
    responses={
        400: {"description": "Validation error or duplicate account"},
        401: {"description": "Invalid or missing credentials"},
        429: {"description": "Rate limit exceeded"},
    },
)


async def _auth_response(db: AsyncSession, user: User, message: str) -> AuthResponse:
    refresh_token = await JWTService.issue_refresh_token(db, user)
    await db.commit()
    user = await load_user(db, user.id)
    return AuthResponse(
        message=message,
        user=await build_user_response(db, user),
        access_token=JWTService.create_token(user),
        refresh_token=refresh_token,
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, db: AsyncSession = Depends(get_db)):
    logger.info(f"Signup attempt for {payload.email} as {payload.display_name}")

    res = await db.execute(select(User.id).where(User.email == payload.email))
    if res.scalar_one_or_none() is not None:
        logger.warning(f"Email already in use: {payload.email}")
        raise HTTPException(status_code=400, detail="Email already in use")

    res = await db.execute(select(User.id).where(User.username == payload.display_name))
    if res.scalar_one_or_none() is not None:
        raise HTTPException(status_code=400, detail="Username already taken")

    user = new_user(payload.email, payload.display_name,
                    hash_password(payload.password))
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=400, detail="Email or username already in use")

    logger.info(f"User created with id {user.id}")
    return await _auth_response(db, user, "User created successfully")


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    res = await db.execute(select(User).where(User.email == payload.email))
    user = res.scalar_one_or_none()
    if user is None or not verify_password(payload.password, user.password_hash):
        logger.warning(f"Failed login for {payload.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user.last_active = datetime.now(timezone.utc)
    return await _auth_response(db, user, "Login successful")


@router.post("/refresh", response_model=TokenResponse)
async def refresh(payload: RefreshRequest, db: AsyncSession = Depends(get_db)):
    access_token = await JWTService.rotate_access_token(db, payload.refresh_token)
    return TokenResponse(access_token=access_token,
                         expires_in=settings.jwt_expiry_minutes * 60)


@router.post("/logout", response_model=MessageResponse)
async def logout(current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    await JWTService.revoke_refresh_tokens(db, current_user.id)
    await db.commit()
    return {"message": "Logged out successfully"}


@router.post("/ensure-user", response_model=UserResponse)
async def ensure_user(current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    """Return the caller's full profile, refreshing last_active"""
    current_user.last_active = datetime.now(timezone.utc)
    await db.commit()
    user = await load_user(db, current_user.id)
    return await build_user_response(db, user)


@router.get("/status", response_model=AuthStatusResponse)
async def auth_status(current_user: User = Depends(JWTService.get_current_user)):
    return {
        "authenticated": True,
        "user": {
            "user_id": current_user.id,
            "email": current_user.email,
            "username": current_user.username,
            "is_admin": current_user.is_admin,
        },
    }


@router.delete("/delete", response_model=MessageResponse)
async def delete_own_account(current_user: User = Depends(JWTService.get_current_user), db: AsyncSession = Depends(get_db)):
    await delete_account(db, current_user)
    return {"message": "User account deleted successfully"}


@router.delete("/delete/{user_id}", response_model=MessageResponse)
async def delete_user(user_id: int, admin_user: User = Depends(get_current_admin_user), db: AsyncSession = Depends(get_db)):
    target = await db.get(User, user_id)
    if target is None:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info(f"Admin {admin_user.id} deleting user {user_id}")
    await delete_account(db, target)
    return {"message": "User account deleted successfully"}


@router.get("/{user_id}", response_model=PublicUserResponse)
async def get_public_profile(user_id: int, db: AsyncSession = Depends(get_db)):
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return {
        "id": user.id,
        "username": user.username,
        "bio": user.bio,
        "profile_pic": user.profile_pic,
        "followers": await follower_ids(db, user.id),
        "following": await following_ids(db, user.id),
    }
