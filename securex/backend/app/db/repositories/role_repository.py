# backend/app/db/repositories/role_repository.py
from app.core.constants import UserRole
from app.db.backend_client import BackendClient


class RoleRepository:
    """Role lookups are answered by the backend's `has_role` function"""

    def __init__(self, client: BackendClient):
        self.client = client

    async def has_role(self, user_id: str, role: UserRole) -> bool:
        result = await self.client.rpc("has_role", {"_user_id": user_id, "_role": role.value})
        return bool(result)
