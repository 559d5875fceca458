import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import AuthenticationError, AuthorizationError, ValidationError
from ..core.identity import VerifiedIdentity, get_identity_provider
from ..core.rate_limit import check_user_rate_limit
from ..db.database import get_db
from ..models.access import Module
from ..models.user import SystemRole, User
from ..repositories import Repositories, SecurityContext, create_repositories, create_security_context
from ..services import policy
from ..services.policy import Action

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> VerifiedIdentity:
    """Verify the bearer token without requiring a user row"""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing bearer token", code="MISSING_TOKEN")
    provider = await get_identity_provider()
    return provider.verify_token(credentials.credentials)


async def get_current_user(
    identity: VerifiedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current authenticated user"""
    user = await db.get(User, identity.uid)
    if user is None:
        raise AuthenticationError("User has not been initialized", code="USER_NOT_INITIALIZED")
    if not user.can_sign_in:
        raise AuthorizationError("User account is not active", code="USER_INACTIVE")
    check_user_rate_limit(user.id, user.role)
    return user


def require_roles(*roles: SystemRole):
    """Require one of the given system roles"""
    async def check_role(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise AuthorizationError("Not enough permissions")
        return current_user
    return check_role


require_admin = require_roles(SystemRole.ADMIN)
require_staff = require_roles(SystemRole.ADMIN, SystemRole.STAFF)


def resolve_project_id(request: Request) -> str:
    """Project id from the path, the x-project-id header or the query string"""
    project_id = (
        request.path_params.get("project_id")
        or request.headers.get("x-project-id")
        or request.query_params.get("project_id")
    )
    if not project_id:
        raise ValidationError("Project ID is required", code="PROJECT_ID_REQUIRED")
    return project_id


@dataclass
class ProjectScope:
    user: User
    context: SecurityContext
    repos: Repositories
    db: AsyncSession


def project_scope(module: Optional[Module], action: Action):
    """Dependency that checks access, logs the decision and builds scoped repositories"""
    async def build_scope(
        request: Request,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> ProjectScope:
        project_id = resolve_project_id(request)
        try:
            await policy.assert_module_access(db, current_user.id, project_id, module, action)
            context = await create_security_context(db, current_user.id, project_id)
        except AuthorizationError as exc:
            await policy.log_policy_decision(current_user.id, project_id, module, action, False, exc.message)
            raise
        await policy.log_policy_decision(current_user.id, project_id, module, action, True, "granted")
        return ProjectScope(user=current_user, context=context, repos=create_repositories(db, context), db=db)
    return build_scope


async def verify_webhook_secret(x_webhook_secret: Optional[str] = Header(None)) -> None:
    expected = settings.WEBHOOK_SECRET
    if not expected or not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, expected):
        logger.warning("Rejected webhook call with a missing or invalid secret")
        raise AuthenticationError("Invalid webhook secret", code="INVALID_WEBHOOK_SECRET")
