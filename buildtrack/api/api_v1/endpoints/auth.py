from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.identity import VerifiedIdentity
from ....core.responses import success_response
from ....db.database import get_db
from ....db.transactions import atomic
from ....models.user import User
from ....schemas.user import InitializeRequest, UserResponse
from ....services import policy, user_service
from ...deps import get_current_user, get_identity

router = APIRouter()


@router.get("/initialize")
async def initialization_status(
    identity: VerifiedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    """Whether the signed-in identity already has a user record"""
    status = await user_service.get_initialization_status(db, identity.uid)
    user = status.pop("user")
    return success_response({
        **status,
        "user": UserResponse.model_validate(user).model_dump(mode="json") if user else None,
    })


@router.post("/initialize")
async def initialize(
    payload: Optional[InitializeRequest] = Body(None),
    identity: VerifiedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    """First-login setup: user, default project, membership and module access"""
    payload = payload or InitializeRequest()
    async with atomic(db, "user initialization"):
        result = await user_service.initialize_user(db, identity, payload.name, payload.project_name)
        user_data = UserResponse.model_validate(result.user).model_dump(mode="json")
    return success_response(
        {
            "user": user_data,
            "project_id": result.project_id,
            "already_initialized": not result.created,
        },
        message="User initialized" if result.created else "User already initialized",
    )


@router.get("/me")
async def me(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    projects = await policy.get_user_projects(db, current_user.id)
    return success_response({
        "user": UserResponse.model_validate(current_user).model_dump(mode="json"),
        "project_ids": projects,
        "rate_limit_per_minute": policy.get_rate_limit_tier(current_user.role),
    })
