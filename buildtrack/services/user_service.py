"""User lifecycle: first login, admin-created users and portal invitations.

First-login initialisation lives here and nowhere else: every caller that
needs a user row, a default project and seeded module access goes through
``initialize_user``.
"""
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.identity import VerifiedIdentity
from ..models.audit_log import AuditLog
from ..models.base import utcnow
from ..models.contact import Contact, PortalStatus
from ..models.project import Project, ProjectMember, ProjectStatus
from ..models.user import SystemRole, User, UserStatus
from ..repositories import SecurityContext, create_repositories
from .policy import PRIVILEGED_ROLES, default_capabilities

logger = logging.getLogger(__name__)


@dataclass
class InitializationResult:
    user: User
    project_id: Optional[str]
    created: bool


def _bootstrap_context(user_id: str, project_id: str, role: SystemRole) -> SecurityContext:
    # memberships are written before the acting user can pass a membership check
    return SecurityContext(
        user_id=user_id,
        project_id=project_id,
        role=role,
        system_role=role,
        capabilities=MappingProxyType(default_capabilities(role)),
        caller_projects=(project_id,),
    )


def _default_role() -> SystemRole:
    try:
        return SystemRole(settings.DEFAULT_USER_ROLE.upper())
    except ValueError:
        logger.warning(f"DEFAULT_USER_ROLE={settings.DEFAULT_USER_ROLE!r} is not a role; using VIEWER")
        return SystemRole.VIEWER


async def grant_project_access(
    db: AsyncSession,
    user: User,
    project_id: str,
    role: SystemRole,
    acting_user_id: str,
    module_access: Optional[List[Dict[str, Any]]] = None,
) -> None:
    """Add ``user`` to the project and give them module access.

    A new membership, or one whose role changes, gets the role's defaults
    on every module; explicit ``module_access`` entries are applied on top.
    """
    repos = create_repositories(db, _bootstrap_context(acting_user_id, project_id, role))
    member = await repos.members.find_for_user(user.id)
    role_changed = member is None or member.role != role or not member.is_active
    await repos.members.add_member(user, role)
    if role_changed:
        await repos.module_access.reset_defaults(user.id, role)
    else:
        await repos.module_access.seed_defaults(user.id, role)
    if module_access:
        await repos.module_access.set_access(user.id, module_access)


async def get_initialization_status(db: AsyncSession, uid: str) -> Dict[str, Any]:
    user = await db.get(User, uid)
    if user is None:
        return {"initialized": False, "user": None, "project_count": 0}
    result = await db.execute(
        select(ProjectMember.project_id).where(ProjectMember.user_id == uid, ProjectMember.is_active.is_(True))
    )
    return {"initialized": True, "user": user, "project_count": len(result.scalars().all())}


async def initialize_user(
    db: AsyncSession,
    identity: VerifiedIdentity,
    name: Optional[str] = None,
    project_name: Optional[str] = None,
) -> InitializationResult:
    """Create the user, a default project, membership and module access.

    Idempotent: an existing user is returned untouched apart from the
    login timestamp. The caller commits the whole unit.
    """
    existing = await db.get(User, identity.uid)
    if existing is not None:
        existing.last_login_at = utcnow()
        await db.flush()
        return InitializationResult(user=existing, project_id=None, created=False)

    if not identity.email:
        raise ValidationError("Identity token has no email address")

    result = await db.execute(select(User).where(User.email == identity.email.lower()))
    if result.scalar_one_or_none() is not None:
        raise ConflictError("Email is already registered to another user", code="EMAIL_IN_USE")

    role = identity.role or _default_role()
    user = User(
        id=identity.uid,
        email=identity.email.lower(),
        name=name,
        role=role,
        status=UserStatus.ACTIVE,
        is_active=True,
        last_login_at=utcnow(),
    )
    db.add(user)

    project = Project(
        name=project_name or settings.DEFAULT_PROJECT_NAME,
        status=ProjectStatus.ACTIVE,
        owner_id=user.id,
    )
    db.add(project)
    await db.flush()

    # the creator runs their own project
    membership_role = role if role in PRIVILEGED_ROLES else SystemRole.ADMIN
    await grant_project_access(db, user, project.id, membership_role, user.id)

    db.add(AuditLog(
        user_id=user.id,
        project_id=project.id,
        action="USER_INITIALIZED",
        entity="User",
        entity_id=user.id,
        meta={"email": user.email, "role": role.value},
    ))
    await db.flush()
    logger.info(f"Initialised user {user.id} with project {project.id}")
    return InitializationResult(user=user, project_id=project.id, created=True)


async def create_user_with_access(
    db: AsyncSession,
    acting_user_id: str,
    data: Dict[str, Any],
) -> User:
    """Admin path: user row, project membership and module access in one unit"""
    if await db.get(User, data["id"]) is not None:
        raise ConflictError("User already exists", code="USER_EXISTS")
    email = data["email"].lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        raise ConflictError("Email is already registered to another user", code="EMAIL_IN_USE")

    project = await db.get(Project, data["project_id"])
    if project is None or project.deleted_at is not None:
        raise NotFoundError("Project not found")

    user = User(
        id=data["id"],
        email=email,
        name=data.get("name"),
        role=data["role"],
        status=UserStatus.ACTIVE,
        is_active=True,
    )
    db.add(user)
    await db.flush()

    await grant_project_access(
        db, user, project.id, data["role"], acting_user_id, module_access=data.get("module_access")
    )
    db.add(AuditLog(
        user_id=acting_user_id,
        project_id=project.id,
        action="CREATE",
        entity="User",
        entity_id=user.id,
        meta={"email": email, "role": user.role.value},
    ))
    await db.flush()
    return user


async def accept_contact_invite(db: AsyncSession, user: User, token: str) -> Contact:
    """Link the signed-in user to the invited contact and open the project portal"""
    result = await db.execute(select(Contact).where(Contact.invite_token == token))
    contact = result.scalar_one_or_none()
    if contact is None or contact.portal_status != PortalStatus.INVITED:
        raise NotFoundError("Invitation not found")

    expiry = contact.invite_expiry
    if expiry is not None and expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=utcnow().tzinfo)
    if expiry is None or expiry <= utcnow():
        raise ValidationError("Invitation has expired", code="INVITE_EXPIRED")

    contact.user_id = user.id
    contact.portal_status = PortalStatus.ACTIVE
    contact.invite_token = None
    contact.invite_expiry = None
    await db.flush()

    role = user.role if user.role in PRIVILEGED_ROLES else SystemRole.CONTRACTOR
    await grant_project_access(db, user, contact.project_id, role, user.id)
    db.add(AuditLog(
        user_id=user.id,
        project_id=contact.project_id,
        action="ACCEPT_INVITE",
        entity="Contact",
        entity_id=contact.id,
        meta={"email": user.email},
    ))
    await db.flush()
    return contact
