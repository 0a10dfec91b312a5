# backend/app/db/database.py
from typing import Optional

from app.db.backend_client import BackendClient

_client: Optional[BackendClient] = None


def get_backend_client() -> BackendClient:
    """Backend client dependency (one shared connection pool per process)"""
    global _client
    if _client is None:
        _client = BackendClient()
    return _client


async def close_backend_client():
    """Close backend connections"""
    global _client
    if _client is not None:
        await _client.close()
        _client = None
