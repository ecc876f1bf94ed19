from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_current_identity
from app.models.user import User
from app.schemas.user import UserListResponse, UserResponse, UserUpdate
from app.services import auth_service
from app.services.auth.identity import Identity
from app.services.auth_service import AccountError

router = APIRouter()


@router.get("", response_model=UserListResponse)
async def list_users(
    search: Optional[str] = Query(None, max_length=150),
    identity: Identity = Depends(get_current_identity)
):
    users = await auth_service.find_users(search)
    return UserListResponse(
        total=len(users),
        users=[UserResponse.model_validate(user) for user in users]
    )


@router.get("/me", response_model=UserResponse)
async def read_user_me(identity: Identity = Depends(get_current_identity)):
    user = await User.get_or_none(id=identity.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: UUID, identity: Identity = Depends(get_current_identity)):
    user = await User.get_or_none(id=user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    payload: UserUpdate,
    identity: Identity = Depends(get_current_identity)
):
    """Update the caller's own profile"""
    try:
        return await auth_service.update_profile(
            user_id=user_id,
            caller_id=identity.user_id,
            username=payload.username,
            email=payload.email,
            full_name=payload.full_name,
        )
    except AccountError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
