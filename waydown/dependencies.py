from fastapi import Depends, HTTPException, status
from .models import User
from .services.jwt_service import JWTService

get_current_user = JWTService.get_current_user
get_optional_user = JWTService.get_optional_user


async def get_current_admin_user(current_user: User = Depends(JWTService.get_current_user)) -> User:
    """
    Dependency to get current admin user.
    Raises HTTPException if user is not an admin.
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: Admin access required"
        )
    return current_user


def ensure_self(current_user: User, user_id: int, what: str) -> None:
    """403 unless the path user is the caller"""
    if current_user.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unauthorized: You can only {what}",
        )
