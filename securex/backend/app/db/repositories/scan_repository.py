# backend/app/db/repositories/scan_repository.py
from typing import Any, Dict, List, Optional

from app.core.constants import SCAN_TRANSITIONS, ScanSeverity, ScanStatus
from app.core.exceptions import InvalidTransitionError, NotFoundError, OwnershipError
from app.core.logging import logger
from app.db.backend_client import BackendClient
from app.db.repositories.base import BaseRepository
from app.schemas.scan import Scan
from app.services.realtime import ChangeType, ScanChangeEvent, ScanFeed, scan_feed


class ScanRepository(BaseRepository[Scan]):
    """Repository for Scan operations; every write is published on the scan feed"""

    table = "scans"

    def __init__(self, client: BackendClient, feed: Optional[ScanFeed] = None):
        super().__init__(Scan, client)
        self.feed = feed if feed is not None else scan_feed

    def _publish(self, event_type: ChangeType, row: Dict[str, Any]):
        self.feed.publish(ScanChangeEvent(event_type=event_type, record=row))

    async def create(self, obj_in: dict) -> Scan:
        row = await self.client.insert(self.table, obj_in)
        self._publish(ChangeType.INSERT, row)
        return Scan.model_validate(row)

    async def list_for_user(
        self,
        user_id: str,
        status: Optional[ScanStatus] = None,
        severity: Optional[ScanSeverity] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Scan]:
        """Get scans for a user, newest first"""
        filters: Dict[str, Any] = {"user_id": user_id}
        if status is not None:
            filters["status"] = status
        if severity is not None:
            filters["severity"] = severity
        return await self.get_multi(
            skip=skip,
            limit=limit,
            filters=filters,
            order="created_at",
            descending=True,
        )

    async def get_owned(self, scan_id: str, user_id: str) -> Scan:
        """Get scan with owner verification"""
        scan = await self.get(scan_id)
        if scan is None:
            raise NotFoundError(f"Scan {scan_id} not found")
        if scan.user_id != user_id:
            logger.warning(
                "Scan ownership check failed",
                extra={"user_id": user_id, "scan_id": scan_id},
            )
            raise OwnershipError(f"Scan {scan_id} is not owned by {user_id}")
        return scan

    async def transition(
        self,
        scan_id: str,
        new_status: ScanStatus,
        values: Optional[Dict[str, Any]] = None,
    ) -> Scan:
        """
        Move a scan to new_status together with any result columns.

        The update is filtered on the statuses allowed to reach new_status, so
        a row that is already terminal (or was moved concurrently) matches
        nothing and the change is refused instead of overwriting it.
        """
        sources = [
            status for status, targets in SCAN_TRANSITIONS.items()
            if new_status in targets
        ]
        if not sources:
            raise InvalidTransitionError(f"No transition leads to {new_status.value}")

        payload = dict(values or {})
        payload["status"] = new_status.value
        rows = await self.client.update(
            self.table,
            {"id": scan_id, "status": sources},
            payload,
        )
        if not rows:
            raise InvalidTransitionError(
                f"Scan {scan_id} cannot move to {new_status.value}"
            )

        row = rows[0]
        self._publish(ChangeType.UPDATE, row)
        logger.info(
            f"Scan moved to {new_status.value}",
            extra={"scan_id": scan_id, "user_id": row.get("user_id")},
        )
        return Scan.model_validate(row)
