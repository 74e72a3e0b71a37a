"""
Admin router: operator-only endpoints.

All endpoints require the ADMIN role; customers and engineers get a 403.

Endpoints:
  GET /admin/users            — List user records
  GET /admin/users/{user_id}  — Get any user's record
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_api.database import get_db
from marketplace_api.dependencies import require_admin
from marketplace_api.exceptions import UserNotFoundError
from marketplace_api.models.user import User
from marketplace_api.schemas.user import UserResponse
from marketplace_api.services import user_service

router = APIRouter()


@router.get(
    "/users",
    response_model=list[UserResponse],
    summary="[Admin] List users",
)
async def admin_list_users(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.list_users(db, limit=limit, offset=offset)


@router.get(
    "/users/{user_id}",
    response_model=UserResponse,
    summary="[Admin] Get any user",
)
async def admin_get_user(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.get_user_by_id(db, user_id)
    if user is None:
        raise UserNotFoundError("User not found")
    return user
