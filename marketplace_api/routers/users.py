"""
Users router: the authenticated user's own profile.

Endpoints:
  GET   /me        — Get current user's profile
  PATCH /updateMe  — Update username, phoneNumber, location
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_api.database import get_db
from marketplace_api.dependencies import get_current_user
from marketplace_api.models.user import User
from marketplace_api.schemas.user import UpdateMeRequest, UserEnvelope, UserResponse
from marketplace_api.services import user_service

router = APIRouter()


@router.get(
    "/me",
    response_model=UserEnvelope,
    summary="Get current user's profile",
)
async def get_me(user: User = Depends(get_current_user)):
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.patch(
    "/updateMe",
    response_model=UserEnvelope,
    summary="Update profile fields",
)
async def update_me(
    updates: UpdateMeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update the authenticated user's profile.

    Only fields the client sent are touched. Email, role and password cannot
    be changed here; sending password fields is a 400.
    """
    # exclude_unset: only the fields the client explicitly sent. It also
    # reaches into nested models, so the location is dumped whole to keep
    # the default country.
    data = updates.model_dump(exclude_unset=True)
    if updates.location is not None:
        data["location"] = updates.location.model_dump()
    user = await user_service.update_profile(db, user, data)
    return UserEnvelope(user=UserResponse.model_validate(user))
