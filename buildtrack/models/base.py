from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func
from sqlalchemy.ext.declarative import declared_attr
from ..db.database import Base
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UUIDBaseModel(Base):
    """Base model with UUID primary key"""
    __abstract__ = True

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    @declared_attr
    def __tablename__(cls):
        return cls.__name__.lower()
