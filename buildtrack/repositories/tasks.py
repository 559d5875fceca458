from typing import Any, Dict, List, Sequence

from ..models.task import Task
from ..schemas.task import TaskResponse
from .base import ScopedRepository


class TaskRepository(ScopedRepository[Task]):
    model = Task
    entity_name = "Task"
    response_schema = TaskResponse

    def visibility_filter(self) -> List[Any]:
        # contractors only see the work assigned to them
        if self.context.is_contractor:
            return [Task.assigned_to_id == self.context.user_id]
        return []

    async def create(self, data: Dict[str, Any]) -> Task:
        data = dict(data)
        data["created_by_id"] = self.context.user_id
        return await super().create(data)

    async def bulk_delete(self, task_ids: Sequence[str]) -> int:
        return await self.delete_many(task_ids, not_found_code="TASKS_NOT_FOUND")
