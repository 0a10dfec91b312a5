# backend/app/db/repositories/base.py
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from pydantic import BaseModel

from app.db.backend_client import BackendClient

ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseRepository(Generic[ModelType]):
    """Base repository with common CRUD operations over one backend table"""

    table: str = ""
    id_column: str = "id"

    def __init__(self, model: Type[ModelType], client: BackendClient):
        self.model = model
        self.client = client

    def _to_model(self, row: Optional[Dict[str, Any]]) -> Optional[ModelType]:
        if row is None:
            return None
        return self.model.model_validate(row)

    async def get(self, id: Any) -> Optional[ModelType]:
        """Get by ID"""
        row = await self.client.select_one(self.table, {self.id_column: id})
        return self._to_model(row)

    async def get_multi(
        self,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[dict] = None,
        order: Optional[str] = None,
        descending: bool = False,
    ) -> List[ModelType]:
        """Get multiple records"""
        rows = await self.client.select(
            self.table,
            filters,
            order=order,
            descending=descending,
            limit=limit,
            offset=skip,
        )
        return [self.model.model_validate(row) for row in rows]

    async def create(self, obj_in: dict) -> ModelType:
        """Create new record"""
        row = await self.client.insert(self.table, obj_in)
        return self.model.model_validate(row)

    async def update(self, id: Any, obj_in: dict) -> Optional[ModelType]:
        """Update record"""
        rows = await self.client.update(self.table, {self.id_column: id}, obj_in)
        return self._to_model(rows[0] if rows else None)
