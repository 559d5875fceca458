from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import AuthorizationError
from ..models.access import Module
from ..models.user import SystemRole, User
from ..services import policy
from ..services.policy import Action, Capability, NO_ACCESS, PRIVILEGED_ROLES

SYSTEM_USER_ID = "system"


@dataclass(frozen=True)
class SecurityContext:
    """Validated (user, project) pair handed to the scoped repositories"""

    user_id: str
    project_id: str
    role: SystemRole
    system_role: SystemRole
    capabilities: Mapping[Module, Capability] = field(default_factory=lambda: MappingProxyType({}))
    caller_projects: Tuple[str, ...] = ()

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

    @property
    def is_contractor(self) -> bool:
        return self.role == SystemRole.CONTRACTOR

    @property
    def has_financial_visibility(self) -> bool:
        return policy.has_financial_visibility(self.role)

    def can(self, module: Module, action: Action) -> bool:
        if action == Action.APPROVE:
            return self.system_role in PRIVILEGED_ROLES
        return self.capabilities.get(module, NO_ACCESS).allows(action)


async def create_security_context(db: AsyncSession, user_id: str, project_id: str) -> SecurityContext:
    """Build the context for ``user_id`` acting inside ``project_id``.

    Fails closed: unknown projects, deleted projects and projects the user
    is not a member of all raise the same AuthorizationError.
    """
    user = await db.get(User, user_id)
    if user is None or not user.can_sign_in:
        raise AuthorizationError("User is not active")

    caller_projects = await policy.get_user_projects(db, user_id)
    if project_id not in caller_projects:
        raise AuthorizationError("Not authorized for this project")

    if user.role in PRIVILEGED_ROLES:
        role = user.role
    else:
        role = await policy.get_user_project_role(db, user_id, project_id)
        if role is None:
            raise AuthorizationError("Not authorized for this project")

    capabilities = await policy.get_module_capabilities(db, user, project_id)
    return SecurityContext(
        user_id=user_id,
        project_id=project_id,
        role=role,
        system_role=user.role,
        capabilities=MappingProxyType(dict(capabilities)),
        caller_projects=tuple(caller_projects),
    )


def system_context(project_id: str) -> SecurityContext:
    """Context for webhook processing, which acts on behalf of no user"""
    return SecurityContext(
        user_id=SYSTEM_USER_ID,
        project_id=project_id,
        role=SystemRole.STAFF,
        system_role=SystemRole.STAFF,
        capabilities=MappingProxyType(policy.default_capabilities(SystemRole.STAFF)),
        caller_projects=(project_id,),
    )
