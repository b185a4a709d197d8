"""
User API Endpoints.

Registration after identity-provider sign-up, role lookup for the client,
and admin-only user management.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Path
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.app.core.dependencies import get_caller
from parcelflow.app.core.exceptions import NotFoundError
from parcelflow.app.core.guards import Capability, enforce, require_admin
from parcelflow.app.core.identity import CallerContext
from parcelflow.app.core.timeutils import utcnow
from parcelflow.app.db.session import get_db
from parcelflow.app.models.enums import UserRole
from parcelflow.app.models.user import User
from parcelflow.app.schemas.user import (
    UserCreate, UserCreateResponse, UserListResponse,
    UserResponse, UserRoleResponse, UserRoleUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=UserCreateResponse)
async def register_user(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a user record for a signed-up account.

    Idempotent: an existing email is returned unchanged with ``created=False``.
    """
    result = await db.execute(select(User).where(User.email == user_data.email))
    existing = result.scalar_one_or_none()
    if existing:
        return UserCreateResponse(
            created=False,
            message="User already exists",
            user=UserResponse.model_validate(existing),
        )

    user = User(
        email=user_data.email,
        display_name=user_data.display_name,
        photo_url=user_data.photo_url,
        role=UserRole.USER,
        created_at=utcnow(),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("User %s registered", user.email)

    return UserCreateResponse(
        created=True,
        message="User created",
        user=UserResponse.model_validate(user),
    )


@router.get("", response_model=UserListResponse)
async def list_users(
    search: Optional[str] = Query(None, description="Match on email or display name"),
    limit: int = Query(50, ge=1, le=200),
    skip: int = Query(0, ge=0),
    admin: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List users, newest first (admin-only)."""
    query = select(User)
    count_query = select(func.count(User.id))
    if search:
        pattern = f"%{search}%"
        condition = or_(User.email.ilike(pattern), User.display_name.ilike(pattern))
        query = query.where(condition)
        count_query = count_query.where(condition)

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(User.created_at.desc(), User.id.desc()).offset(skip).limit(limit)
    )

    return UserListResponse(
        users=[UserResponse.model_validate(user) for user in result.scalars().all()],
        total=total,
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int = Path(..., description="User ID"),
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """A single user. Admins can read anyone; other callers only themselves."""
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    enforce(Capability.OWNER, caller, user.email, "user")
    return UserResponse.model_validate(user)


@router.get("/{email}/role", response_model=UserRoleResponse)
async def get_user_role(
    email: str = Path(..., description="User email"),
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Role of a user; unknown emails are plain users."""
    result = await db.execute(select(User.role).where(User.email == email))
    role = result.scalar_one_or_none()
    return UserRoleResponse(role=role or UserRole.USER)


@router.patch("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    update: UserRoleUpdate,
    user_id: int = Path(..., description="User ID"),
    admin: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Set a user's role (admin-only)."""
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)

    previous = user.role
    user.role = update.role
    await db.commit()
    await db.refresh(user)

    logger.info(
        "Admin %s changed role of %s from %s to %s",
        admin.email, user.email, previous.value, user.role.value
    )
    return UserResponse.model_validate(user)
