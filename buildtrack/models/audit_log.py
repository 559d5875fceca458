from sqlalchemy import Column, String, JSON, event
from .base import UUIDBaseModel


class AuditLog(UUIDBaseModel):
    """Append-only record of mutations and policy decisions"""
    __tablename__ = "audit_logs"

    user_id = Column(String, index=True, nullable=False)
    project_id = Column(String, index=True)
    action = Column(String(100), nullable=False)
    entity = Column(String(100), nullable=False)
    entity_id = Column(String)
    meta = Column(JSON, default=dict)

    def __repr__(self):
        return f"<AuditLog(action='{self.action}', entity='{self.entity}')>"


@event.listens_for(AuditLog, "before_update")
def _reject_update(mapper, connection, target):
    raise RuntimeError("Audit log entries are append-only")


@event.listens_for(AuditLog, "before_delete")
def _reject_delete(mapper, connection, target):
    raise RuntimeError("Audit log entries are append-only")
