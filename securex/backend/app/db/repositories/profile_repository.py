# backend/app/db/repositories/profile_repository.py
from typing import Any, Dict, Optional

from app.core.exceptions import NotFoundError
from app.db.backend_client import BackendClient
from app.db.repositories.base import BaseRepository
from app.schemas.user import Profile


class ProfileRepository(BaseRepository[Profile]):
    """Repository for the per-user `profiles` rows"""

    table = "profiles"
    id_column = "user_id"

    def __init__(self, client: BackendClient):
        super().__init__(Profile, client)

    async def get_by_user(self, user_id: str) -> Profile:
        profile = await self.get(user_id)
        if profile is None:
            raise NotFoundError(f"Profile for {user_id} not found")
        return profile

    async def update_by_user(self, user_id: str, values: Dict[str, Any]) -> Optional[Profile]:
        return await self.update(user_id, values)

    async def update_by_customer(self, customer_id: str, values: Dict[str, Any]) -> int:
        """Update every profile bound to a payment customer; returns rows touched"""
        rows = await self.client.update(self.table, {"stripe_customer_id": customer_id}, values)
        return len(rows)

    async def increment_scan_count(self, user_id: str) -> Profile:
        """Atomic server-side increment, then read the row back"""
        await self.client.rpc("increment_scans_this_month", {"user_id_param": user_id})
        return await self.get_by_user(user_id)
