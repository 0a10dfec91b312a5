# backend/app/db/backend_client.py
"""
Thin client for the hosted backend (GoTrue auth + PostgREST storage)
All persistence, identity and role lookups go through here
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
import httpx

from app.core.config import settings
from app.core.exceptions import UpstreamServiceError
from app.core.logging import logger

FilterValue = Union[str, int, bool, None, Sequence[Any]]


class BackendError(UpstreamServiceError):
    """Hosted backend request failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, service="backend", http_status=status_code)


def _encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "value"):  # Enum members
        value = value.value
    return str(value)


def build_filters(filters: Optional[Mapping[str, FilterValue]]) -> Dict[str, str]:
    """Map {column: value} to PostgREST operators (eq / in / is)"""
    params: Dict[str, str] = {}
    for column, value in (filters or {}).items():
        if value is None:
            params[column] = "is.null"
        elif isinstance(value, (list, tuple, set, frozenset)):
            joined = ",".join(_encode_value(v) for v in value)
            params[column] = f"in.({joined})"
        else:
            params[column] = f"eq.{_encode_value(value)}"
    return params


class BackendClient:
    """Service-role client for the hosted backend"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        anon_key: Optional[str] = None,
        service_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.SUPABASE_URL).rstrip("/")
        self.anon_key = anon_key if anon_key is not None else settings.SUPABASE_ANON_KEY
        self.service_key = service_key if service_key is not None else settings.SUPABASE_SERVICE_ROLE_KEY
        self.timeout = timeout or settings.SUPABASE_TIMEOUT_SECONDS
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _service_headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Backend request {method} {path} failed: {str(e)}")
            raise BackendError(f"Backend unreachable: {method} {path}") from e

        if response.status_code >= 400:
            logger.error(
                f"Backend error {response.status_code} on {method} {path}: {response.text[:500]}"
            )
            raise BackendError(
                f"Backend returned {response.status_code} for {method} {path}",
                status_code=response.status_code,
            )
        return response

    # Auth

    async def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        """Resolve an access token to its user, or None when the token is rejected"""
        try:
            response = await self.client.get(
                "/auth/v1/user",
                headers={
                    "apikey": self.anon_key,
                    "Authorization": f"Bearer {access_token}",
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Auth lookup failed: {str(e)}")
            raise BackendError("Auth service unreachable") from e

        if response.status_code in (401, 403):
            return None
        if response.status_code >= 400:
            logger.error(f"Auth lookup error {response.status_code}: {response.text[:500]}")
            raise BackendError("Auth lookup failed", status_code=response.status_code)
        return response.json()

    # Storage

    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, FilterValue]] = None,
        columns: str = "*",
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params = build_filters(filters)
        params["select"] = columns
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(limit)
        if offset:
            params["offset"] = str(offset)

        response = await self._request(
            "GET", f"/rest/v1/{table}", params=params, headers=self._service_headers()
        )
        return response.json()

    async def select_one(
        self,
        table: str,
        filters: Mapping[str, FilterValue],
        columns: str = "*",
    ) -> Optional[Dict[str, Any]]:
        rows = await self.select(table, filters, columns=columns, limit=1)
        return rows[0] if rows else None

    async def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=dict(row),
            headers=self._service_headers(prefer="return=representation"),
        )
        rows = response.json()
        return rows[0] if isinstance(rows, list) else rows

    async def update(
        self,
        table: str,
        filters: Mapping[str, FilterValue],
        values: Mapping[str, Any],
    ) -> List[Dict[str, Any]]:
        """PATCH every row matching filters; returns the rows actually updated"""
        if not filters:
            raise ValueError("Refusing to update without filters")
        response = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=build_filters(filters),
            json=dict(values),
            headers=self._service_headers(prefer="return=representation"),
        )
        return response.json()

    async def rpc(self, function: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        response = await self._request(
            "POST",
            f"/rest/v1/rpc/{function}",
            json=dict(params or {}),
            headers=self._service_headers(),
        )
        if not response.content:
            return None
        return response.json()
