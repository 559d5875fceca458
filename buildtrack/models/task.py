from sqlalchemy import Column, String, Text, ForeignKey, Enum, DateTime, JSON
import enum
from .base import UUIDBaseModel


class TaskStatus(str, enum.Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKED = "BLOCKED"
    DONE = "DONE"


class TaskPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class Task(UUIDBaseModel):
    """Site task"""
    __tablename__ = "tasks"

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(Enum(TaskStatus), default=TaskStatus.TODO, nullable=False)
    priority = Column(Enum(TaskPriority), default=TaskPriority.MEDIUM, nullable=False)
    due_date = Column(DateTime(timezone=True))
    trade = Column(String(100))
    location = Column(String(255))

    assigned_to_id = Column(String, ForeignKey("users.id"))
    created_by_id = Column(String, ForeignKey("users.id"))
    related_contact_ids = Column(JSON, default=list)

    def __repr__(self):
        return f"<Task(title='{self.title}', status='{self.status}')>"
