import logging
from typing import Any, Dict, Generic, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from ..core.exceptions import NotFoundError
from ..models.access import Module
from ..models.audit_log import AuditLog
from ..services.policy import apply_data_redaction
from .context import SecurityContext

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class ScopedRepository(Generic[ModelT]):
    """Data access confined to one project.

    Every query is filtered by ``context.project_id`` and every payload has
    its ``project_id`` overwritten with it, so a caller cannot reach another
    project's rows even by passing a foreign id. Mutations append an audit
    row in the caller's transaction.
    """

    model: Type[ModelT]
    entity_name: str = ""
    response_schema: Optional[Type[BaseModel]] = None
    redacted_module: Optional[Module] = None
    protected_fields = frozenset({"id", "project_id", "created_at", "updated_at"})

    def __init__(self, db: AsyncSession, context: SecurityContext):
        self.db = db
        self.context = context

    @property
    def project_id(self) -> str:
        return self.context.project_id

    # Query helpers

    def visibility_filter(self) -> List[Any]:
        """Extra criteria limiting what the caller's role may see"""
        return []

    def _criteria(self, criteria: Iterable[Any]) -> List[Any]:
        return [self.model.project_id == self.project_id, *self.visibility_filter(), *criteria]

    def scoped_query(self, *criteria) -> Select:
        return select(self.model).where(*self._criteria(criteria))

    def default_order(self) -> Sequence[Any]:
        return (self.model.created_at.desc(),)

    async def find_many(
        self,
        *criteria,
        order_by: Optional[Sequence[Any]] = None,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[ModelT]:
        query = self.scoped_query(*criteria).order_by(*(order_by if order_by is not None else self.default_order()))
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count(self, *criteria) -> int:
        query = select(func.count()).select_from(self.model).where(*self._criteria(criteria))
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def paginate(self, *criteria, page: int = 1, limit: int = 20, order_by=None) -> Tuple[List[ModelT], int]:
        total = await self.count(*criteria)
        rows = await self.find_many(*criteria, order_by=order_by, offset=(page - 1) * limit, limit=limit)
        return rows, total

    async def find_unique(self, entity_id: str) -> Optional[ModelT]:
        result = await self.db.execute(self.scoped_query(self.model.id == entity_id))
        return result.scalar_one_or_none()

    async def get(self, entity_id: str) -> ModelT:
        """Like find_unique but raises NotFoundError; absent and out-of-scope rows look the same"""
        instance = await self.find_unique(entity_id)
        if instance is None:
            raise NotFoundError(f"{self.entity_name} not found")
        return instance

    # Mutations

    def _clean(self, data: Dict[str, Any], trusted: bool = False) -> Dict[str, Any]:
        # trusted writes come from services and may set derived fields; ids and tenancy never change
        blocked = ScopedRepository.protected_fields if trusted else self.protected_fields
        return {key: value for key, value in data.items() if key not in blocked}

    async def create(self, data: Dict[str, Any]) -> ModelT:
        payload = self._clean(data)
        payload["project_id"] = self.project_id
        instance = self.model(**payload)
        self.db.add(instance)
        await self.db.flush()
        await self.audit("CREATE", instance.id, {"fields": sorted(payload)})
        return instance

    async def update(self, entity_id: str, data: Dict[str, Any], audit_action: str = "UPDATE") -> ModelT:
        instance = await self.get(entity_id)
        return await self.apply(instance, data, audit_action)

    async def apply(
        self, instance: ModelT, data: Dict[str, Any], audit_action: str = "UPDATE", trusted: bool = False
    ) -> ModelT:
        """Write ``data`` onto an instance already loaded through this repository"""
        changes = self._clean(data, trusted)
        for key, value in changes.items():
            setattr(instance, key, value)
        await self.db.flush()
        await self.audit(audit_action, instance.id, {"fields": sorted(changes)})
        return instance

    def ensure_deletable(self, instance: ModelT) -> None:
        """Raise when a row may not be deleted in its current state"""

    async def delete(self, entity_id: str) -> None:
        instance = await self.get(entity_id)
        self.ensure_deletable(instance)
        await self.db.delete(instance)
        await self.db.flush()
        await self.audit("DELETE", entity_id)

    async def delete_many(self, ids: Sequence[str], not_found_code: Optional[str] = None) -> int:
        """Delete every id or none of them"""
        unique_ids = list(dict.fromkeys(ids))
        rows = await self.find_many(self.model.id.in_(unique_ids), order_by=())
        found = {row.id for row in rows}
        missing = [entity_id for entity_id in unique_ids if entity_id not in found]
        if missing:
            raise NotFoundError(
                f"{self.entity_name} records not found: {', '.join(missing)}",
                code=not_found_code,
                details={"missing_ids": missing},
            )
        for row in rows:
            self.ensure_deletable(row)
        for row in rows:
            await self.db.delete(row)
        await self.db.flush()
        await self.audit("BULK_DELETE", None, {"ids": unique_ids, "count": len(rows)})
        return len(rows)

    async def audit(self, action: str, entity_id: Optional[str], meta: Optional[Dict[str, Any]] = None) -> None:
        self.db.add(
            AuditLog(
                user_id=self.context.user_id,
                project_id=self.project_id,
                action=action,
                entity=self.entity_name,
                entity_id=entity_id,
                meta=meta or {},
            )
        )

    # Presentation

    def present(self, instance: ModelT) -> Dict[str, Any]:
        """Serialize a row for the response envelope, redacting what the role may not see"""
        record = self.response_schema.model_validate(instance).model_dump(mode="json")
        if self.redacted_module is not None:
            record = apply_data_redaction(record, self.context.role, self.redacted_module)
        return record

    def present_many(self, instances: Iterable[ModelT]) -> List[Dict[str, Any]]:
        return [self.present(instance) for instance in instances]
