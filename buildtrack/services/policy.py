"""Access policy: who may do what to which module of which project.

Every route that touches project data goes through ``assert_module_access``
before it builds a security context.  ADMIN and STAFF system roles bypass the
per-module flags; everybody else needs an active project membership and a
``UserModuleAccess`` row granting the capability the action requires.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import AuthorizationError
from ..core.rate_limit import get_rate_limit_tier
from ..db import database
from ..models.access import Module, UserModuleAccess
from ..models.audit_log import AuditLog
from ..models.project import Project, ProjectMember
from ..models.user import SystemRole, User

logger = logging.getLogger(__name__)

PRIVILEGED_ROLES = (SystemRole.ADMIN, SystemRole.STAFF)

# Budget variance severity, in percent over estimate
HIGH_VARIANCE_THRESHOLD = 20
MEDIUM_VARIANCE_THRESHOLD = 10

# Attributes removed from budget, procurement and purchase order records for
# roles without financial visibility
COST_FIELDS = frozenset({
    "est_unit_cost",
    "est_total",
    "committed_total",
    "paid_to_date",
    "variance",
    "variance_percent",
    "unit_cost",
    "total_cost",
    "total",
    "paid_amount",
})


class Action(str, enum.Enum):
    READ = "READ"
    WRITE = "WRITE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    UPLOAD = "UPLOAD"
    REQUEST = "REQUEST"
    EXPORT = "EXPORT"


@dataclass(frozen=True)
class Capability:
    view: bool = False
    edit: bool = False
    upload: bool = False
    request: bool = False

    @classmethod
    def from_access(cls, access: UserModuleAccess) -> "Capability":
        return cls(
            view=bool(access.can_view),
            edit=bool(access.can_edit),
            upload=bool(access.can_upload),
            request=bool(access.can_request),
        )

    def allows(self, action: Action) -> bool:
        if action in (Action.READ, Action.EXPORT):
            return self.view
        if action in (Action.WRITE, Action.DELETE):
            return self.edit
        if action == Action.UPLOAD:
            return self.upload
        if action == Action.REQUEST:
            return self.request or self.edit
        # approvals are reserved for privileged system roles
        return False


FULL_ACCESS = Capability(view=True, edit=True, upload=True)
NO_ACCESS = Capability()

ROLE_CAPABILITIES: Dict[SystemRole, Dict[Module, Capability]] = {
    SystemRole.ADMIN: {module: FULL_ACCESS for module in Module},
    SystemRole.STAFF: {module: FULL_ACCESS for module in Module},
    SystemRole.CONTRACTOR: {
        Module.TASKS: Capability(view=True, edit=True),
        Module.SCHEDULE: Capability(view=True, request=True),
        Module.BUDGET: Capability(view=True),
        Module.PLANS: Capability(view=True),
        Module.UPLOADS: Capability(view=True, upload=True),
        Module.INVOICES: Capability(view=True, upload=True),
        Module.PROJECTS: Capability(view=True),
    },
    SystemRole.VIEWER: {
        Module.PROJECTS: Capability(view=True),
        Module.TASKS: Capability(view=True),
        Module.SCHEDULE: Capability(view=True),
        Module.BUDGET: Capability(view=True),
        Module.PLANS: Capability(view=True),
    },
}


def default_capabilities(role: SystemRole) -> Dict[Module, Capability]:
    """Capability defaults for a role, one entry per module"""
    table = ROLE_CAPABILITIES.get(role, {})
    return {module: table.get(module, NO_ACCESS) for module in Module}


def has_financial_visibility(role: Optional[SystemRole]) -> bool:
    return role in PRIVILEGED_ROLES


def variance_severity(variance_percent: float) -> Optional[str]:
    if variance_percent > HIGH_VARIANCE_THRESHOLD:
        return "HIGH"
    if variance_percent > MEDIUM_VARIANCE_THRESHOLD:
        return "MEDIUM"
    return None


def apply_data_redaction(record: Dict[str, Any], role: Optional[SystemRole], module: Module) -> Dict[str, Any]:
    """Return a copy of ``record`` with cost fields removed where the role may not see them"""
    if has_financial_visibility(role) or module not in (Module.BUDGET, Module.PROCUREMENT):
        return dict(record)
    return {key: value for key, value in record.items() if key not in COST_FIELDS}


async def _get_user(db: AsyncSession, user_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_membership(db: AsyncSession, user_id: str, project_id: str) -> Optional[ProjectMember]:
    result = await db.execute(
        select(ProjectMember).where(
            ProjectMember.user_id == user_id,
            ProjectMember.project_id == project_id,
            ProjectMember.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def assert_module_access(
    db: AsyncSession,
    user_id: str,
    project_id: Optional[str],
    module: Optional[Module],
    action: Action,
) -> None:
    """Raise AuthorizationError unless the user may perform ``action`` on ``module``.

    ``module=None`` is used for operations with no module (creating a
    project) and only checks the system role.
    """
    user = await _get_user(db, user_id)
    if user is None or not user.can_sign_in:
        raise AuthorizationError("User is not active")

    if user.role in PRIVILEGED_ROLES:
        return

    if module is None:
        raise AuthorizationError(f"{action.value} requires an ADMIN or STAFF role")

    if action == Action.APPROVE:
        raise AuthorizationError(f"No {action.value} permission for {module.value}")

    if not project_id or await get_membership(db, user_id, project_id) is None:
        raise AuthorizationError("Not a member of this project")

    result = await db.execute(
        select(UserModuleAccess).where(
            UserModuleAccess.user_id == user_id,
            UserModuleAccess.project_id == project_id,
            UserModuleAccess.module == module,
        )
    )
    access = result.scalar_one_or_none()
    if access is None or not Capability.from_access(access).allows(action):
        raise AuthorizationError(f"No {action.value} permission for {module.value}")


async def get_user_project_role(db: AsyncSession, user_id: str, project_id: str) -> Optional[SystemRole]:
    """Role within the project; None when there is no active membership"""
    membership = await get_membership(db, user_id, project_id)
    return membership.role if membership else None


async def get_user_projects(db: AsyncSession, user_id: str) -> List[str]:
    """Ids of every project the user may see"""
    user = await _get_user(db, user_id)
    if user is None:
        return []

    query = select(Project.id).where(Project.deleted_at.is_(None))
    if user.role not in PRIVILEGED_ROLES:
        query = query.join(ProjectMember, ProjectMember.project_id == Project.id).where(
            ProjectMember.user_id == user_id,
            ProjectMember.is_active.is_(True),
        )
    result = await db.execute(query.order_by(Project.created_at))
    return list(result.scalars().all())


async def get_user_rate_limit_tier(db: AsyncSession, user_id: str) -> int:
    """Requests per minute for the user's system role"""
    user = await _get_user(db, user_id)
    return get_rate_limit_tier(user.role if user else None)


async def get_module_capabilities(
    db: AsyncSession, user: User, project_id: str
) -> Mapping[Module, Capability]:
    if user.role in PRIVILEGED_ROLES:
        return default_capabilities(user.role)
    result = await db.execute(
        select(UserModuleAccess).where(
            UserModuleAccess.user_id == user.id,
            UserModuleAccess.project_id == project_id,
        )
    )
    capabilities = {module: NO_ACCESS for module in Module}
    for access in result.scalars().all():
        capabilities[access.module] = Capability.from_access(access)
    return capabilities


async def log_policy_decision(
    user_id: str,
    project_id: Optional[str],
    module: Optional[Module],
    action: Action,
    allowed: bool,
    reason: str,
) -> None:
    """Append one AuditLog row for an access decision.

    Uses its own session so the row survives the rollback of a denied
    request. Failures are logged and never propagate.
    """
    entry = AuditLog(
        user_id=user_id,
        project_id=project_id,
        action="POLICY_ALLOW" if allowed else "POLICY_DENY",
        entity="Policy",
        entity_id=project_id,
        meta={
            "module": module.value if module else None,
            "action": action.value,
            "allowed": allowed,
            "reason": reason,
        },
    )
    try:
        async with database.AsyncSessionLocal() as session:
            session.add(entry)
            await session.commit()
    except Exception:
        logger.exception(f"Failed to record policy decision for user {user_id} on project {project_id}")
