from sqlalchemy import Column, String, Text, Boolean, ForeignKey, Enum, DateTime, Float, UniqueConstraint
import enum
from .base import UUIDBaseModel
from .user import SystemRole


class ProjectStatus(str, enum.Enum):
    PLANNING = "PLANNING"
    ACTIVE = "ACTIVE"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Project(UUIDBaseModel):
    """Project model; the tenant boundary for every domain record"""
    __tablename__ = "projects"

    name = Column(String(255), nullable=False)
    description = Column(Text)
    address = Column(String(500))
    client_name = Column(String(255))
    project_type = Column(String(100))
    timezone = Column(String(64), default="UTC")

    status = Column(Enum(ProjectStatus), default=ProjectStatus.PLANNING)
    is_archived = Column(Boolean, default=False)
    deleted_at = Column(DateTime(timezone=True))

    # Budget totals
    total_budget = Column(Float, default=0.0)
    contingency = Column(Float, default=0.0)

    start_date = Column(DateTime(timezone=True))
    end_date = Column(DateTime(timezone=True))

    owner_id = Column(String, ForeignKey("users.id"))

    def __repr__(self):
        return f"<Project(name='{self.name}', status='{self.status}')>"


class ProjectMember(UUIDBaseModel):
    """Grants a user visibility into a project"""
    __tablename__ = "project_members"
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_member"),)

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(Enum(SystemRole), nullable=False, default=SystemRole.VIEWER)
    is_active = Column(Boolean, default=True)

    def __repr__(self):
        return f"<ProjectMember(project_id='{self.project_id}', user_id='{self.user_id}', role='{self.role}')>"
