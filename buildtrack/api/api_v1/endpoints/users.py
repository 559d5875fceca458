from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import NotFoundError, ValidationError
from ....core.responses import paginate, success_response
from ....db.database import get_db
from ....db.transactions import atomic
from ....models.audit_log import AuditLog
from ....models.user import SystemRole, User, UserStatus
from ....repositories import create_repositories, create_security_context
from ....schemas.user import ModuleAccessEntry, PermissionsUpdate, UserCreate, UserResponse, UserUpdate
from ....services import user_service
from ...deps import require_admin, require_staff, resolve_project_id

router = APIRouter()


async def _get_user_or_404(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _audit(db: AsyncSession, actor: User, action: str, user_id: str, meta: dict) -> None:
    db.add(AuditLog(user_id=actor.id, action=action, entity="User", entity_id=user_id, meta=meta))


@router.get("/")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    role: Optional[SystemRole] = Query(None),
    status: Optional[UserStatus] = Query(None),
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    query = select(User)
    if search:
        query = query.where(or_(User.email.ilike(f"%{search}%"), User.name.ilike(f"%{search}%")))
    if role:
        query = query.where(User.role == role)
    if status:
        query = query.where(User.status == status)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    query = query.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit)
    users = (await db.execute(query)).scalars().all()
    return success_response(
        [UserResponse.model_validate(user).model_dump(mode="json") for user in users],
        pagination=paginate(page, limit, total),
    )


@router.post("/", status_code=201)
async def create_user(
    user_data: UserCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a user together with their project membership and module access"""
    payload = user_data.model_dump()
    async with atomic(db, "user creation"):
        user = await user_service.create_user_with_access(db, current_user.id, payload)
        data = UserResponse.model_validate(user).model_dump(mode="json")
    return success_response(data, message="User created")


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    user = await _get_user_or_404(db, user_id)
    return success_response(UserResponse.model_validate(user).model_dump(mode="json"))


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    user_data: UserUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    changes = user_data.model_dump(exclude_unset=True, exclude_none=True)
    if user_id == current_user.id and changes.get("role", current_user.role) != current_user.role:
        raise ValidationError("Administrators cannot change their own role")
    async with atomic(db):
        user = await _get_user_or_404(db, user_id)
        for key, value in changes.items():
            setattr(user, key, value)
        if "status" in changes:
            user.is_active = changes["status"] == UserStatus.ACTIVE
        _audit(db, current_user, "UPDATE", user_id, {"fields": sorted(changes)})
        data = UserResponse.model_validate(user).model_dump(mode="json")
    return success_response(data, message="User updated")


@router.delete("/{user_id}")
async def deactivate_user(
    user_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Users are never hard-deleted; they are marked INACTIVE"""
    if user_id == current_user.id:
        raise ValidationError("Administrators cannot deactivate themselves")
    async with atomic(db):
        user = await _get_user_or_404(db, user_id)
        user.status = UserStatus.INACTIVE
        user.is_active = False
        _audit(db, current_user, "DEACTIVATE", user_id, {})
    return success_response(None, message="User deactivated")


@router.get("/{user_id}/permissions")
async def get_permissions(
    user_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    project_id = resolve_project_id(request)
    await _get_user_or_404(db, user_id)
    repos = create_repositories(db, await create_security_context(db, current_user.id, project_id))
    rows = await repos.module_access.for_user(user_id)
    return success_response(repos.module_access.present_many(rows))


@router.put("/{user_id}/permissions")
async def update_permissions(
    user_id: str,
    permissions: PermissionsUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Replace the user's module flags in one project"""
    project_id = resolve_project_id(request)
    async with atomic(db, "permission update"):
        await _get_user_or_404(db, user_id)
        repos = create_repositories(db, await create_security_context(db, current_user.id, project_id))
        if await repos.members.find_for_user(user_id) is None:
            raise ValidationError("User is not a member of this project")
        rows = await repos.module_access.replace_access(
            user_id, [entry.model_dump() for entry in permissions.modules]
        )
        data = [ModuleAccessEntry.model_validate(row).model_dump(mode="json") for row in rows]
    return success_response(data, message="Permissions updated")
