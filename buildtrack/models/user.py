from sqlalchemy import Column, String, Boolean, Enum, DateTime
import enum
from .base import UUIDBaseModel


class SystemRole(str, enum.Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    CONTRACTOR = "CONTRACTOR"
    VIEWER = "VIEWER"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    PENDING = "PENDING"
    SUSPENDED = "SUSPENDED"


class User(UUIDBaseModel):
    """Application user; the primary key is the identity provider uid"""
    __tablename__ = "users"

    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255))
    role = Column(Enum(SystemRole), nullable=False, default=SystemRole.VIEWER)
    status = Column(Enum(UserStatus), nullable=False, default=UserStatus.ACTIVE)
    is_active = Column(Boolean, default=True)
    last_login_at = Column(DateTime(timezone=True))

    @property
    def is_admin(self) -> bool:
        return self.role == SystemRole.ADMIN

    @property
    def is_staff_or_admin(self) -> bool:
        return self.role in (SystemRole.ADMIN, SystemRole.STAFF)

    @property
    def can_sign_in(self) -> bool:
        return bool(self.is_active) and self.status == UserStatus.ACTIVE

    def __repr__(self):
        return f"<User(email='{self.email}', role='{self.role}')>"
