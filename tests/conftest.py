from datetime import timedelta
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt

from buildtrack.core import identity
from buildtrack.core.config import settings
from buildtrack.core.rate_limit import limiter, user_rate_limiter
from buildtrack.db import database
from buildtrack.main import app
from buildtrack.models.base import utcnow
from buildtrack.models.project import Project, ProjectStatus
from buildtrack.models.user import SystemRole, User, UserStatus
from buildtrack.repositories import create_repositories, create_security_context
from buildtrack.services.user_service import grant_project_access


def make_token(uid: str, email: Optional[str] = None, role: Optional[str] = None, expires_in: int = 3600) -> str:
    claims = {"sub": uid, "exp": utcnow() + timedelta(seconds=expires_in)}
    if email:
        claims["email"] = email
    if role:
        claims["role"] = role
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def auth_headers(uid: str, project_id: Optional[str] = None, **claims) -> dict:
    headers = {"Authorization": f"Bearer {make_token(uid, **claims)}"}
    if project_id:
        headers["x-project-id"] = project_id
    return headers


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    monkeypatch.setattr(settings, "SECRET_KEY", "test-secret")
    monkeypatch.setattr(settings, "ALGORITHM", "HS256")
    monkeypatch.setattr(settings, "IDENTITY_SERVICE_ACCOUNT", None)
    monkeypatch.setattr(settings, "IDENTITY_PROJECT_ID", None)
    monkeypatch.setattr(settings, "IDENTITY_CLIENT_EMAIL", None)
    monkeypatch.setattr(settings, "IDENTITY_PRIVATE_KEY", None)
    monkeypatch.setattr(settings, "IDENTITY_ISSUER", None)
    monkeypatch.setattr(settings, "WEBHOOK_SECRET", "hook-secret")
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", False)
    monkeypatch.setattr(settings, "SMTP_HOST", None)
    identity.reset_identity_provider()
    user_rate_limiter.reset()
    limiter.reset()
    yield settings
    identity.reset_identity_provider()


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    database.configure_database(f"sqlite+aiosqlite:///{tmp_path / 'buildtrack.db'}")
    await database.init_db()
    yield database.engine
    await database.engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    async with database.AsyncSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_engine):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class Seeder:
    """Writes users, projects and memberships directly, committing each step"""

    def __init__(self, session):
        self.session = session

    async def user(self, uid: str, role: SystemRole = SystemRole.VIEWER, status: UserStatus = UserStatus.ACTIVE) -> User:
        user = User(
            id=uid,
            email=f"{uid}@example.com",
            name=uid.title(),
            role=role,
            status=status,
            is_active=status == UserStatus.ACTIVE,
        )
        self.session.add(user)
        await self.session.commit()
        return user

    async def project(self, name: str = "Riverside Clinic", owner: Optional[User] = None) -> Project:
        project = Project(name=name, status=ProjectStatus.ACTIVE, owner_id=owner.id if owner else None)
        self.session.add(project)
        await self.session.commit()
        return project

    async def member(self, user: User, project: Project, role: Optional[SystemRole] = None, module_access=None) -> None:
        await grant_project_access(
            self.session, user, project.id, role or user.role, user.id, module_access=module_access
        )
        await self.session.commit()

    async def repos(self, user: User, project: Project):
        context = await create_security_context(self.session, user.id, project.id)
        return create_repositories(self.session, context)


@pytest_asyncio.fixture
async def seed(db_session):
    return Seeder(db_session)


@pytest_asyncio.fixture
async def site(seed):
    """An active project with one user per system role"""
    admin = await seed.user("admin", SystemRole.ADMIN)
    staff = await seed.user("staff", SystemRole.STAFF)
    contractor = await seed.user("contractor", SystemRole.CONTRACTOR)
    viewer = await seed.user("viewer", SystemRole.VIEWER)
    project = await seed.project(owner=admin)
    for user in (admin, staff, contractor, viewer):
        await seed.member(user, project)
    return {
        "project": project,
        "admin": admin,
        "staff": staff,
        "contractor": contractor,
        "viewer": viewer,
    }
