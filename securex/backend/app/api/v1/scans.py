# backend/app/api/v1/scans.py
import asyncio
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Response, WebSocket, WebSocketDisconnect, status

from app.api.dependencies import (
    get_lifecycle_manager,
    get_profile,
    get_request_context,
    get_scan_feed,
    resolve_user,
)
from app.core.constants import ScanSeverity, ScanStatus
from app.core.context import RequestContext
from app.core.exceptions import InputValidationError, UpgradeRequiredError
from app.core.logging import logger
from app.db.backend_client import BackendClient
from app.db.database import get_backend_client
from app.schemas.scan import ConfirmedScan, ScanConfirmation, ScanFeedMessage, ScanStats, ScanSubmission, ScanView
from app.schemas.user import Profile
from app.services.realtime import ScanFeed
from app.services.report_service import ScanReportPDF
from app.services.scan_lifecycle import ScanLifecycleManager

router = APIRouter()

WS_POLICY_VIOLATION = 1008


@router.post("/request", response_model=ScanConfirmation)
async def request_scan(
    submission: ScanSubmission,
    ctx: RequestContext = Depends(get_request_context),
    profile: Profile = Depends(get_profile),
    manager: ScanLifecycleManager = Depends(get_lifecycle_manager),
):
    """Validate a scan request and return the confirmation summary"""
    return manager.request_scan(ctx, profile, submission)


@router.post("", response_model=ConfirmedScan, status_code=status.HTTP_201_CREATED)
async def confirm_scan(
    submission: ScanSubmission,
    background_tasks: BackgroundTasks,
    ctx: RequestContext = Depends(get_request_context),
    profile: Profile = Depends(get_profile),
    manager: ScanLifecycleManager = Depends(get_lifecycle_manager),
):
    """Create a confirmed scan and start its analysis"""
    return await manager.confirm_scan(ctx, profile, submission, schedule=background_tasks.add_task)


@router.get("", response_model=List[ScanView])
async def list_scans(
    status: Optional[ScanStatus] = None,
    severity: Optional[ScanSeverity] = None,
    limit: int = 100,
    ctx: RequestContext = Depends(get_request_context),
    manager: ScanLifecycleManager = Depends(get_lifecycle_manager),
):
    """List the caller's scans, newest first"""
    return await manager.list_scans(ctx, status=status, severity=severity, limit=limit)


@router.get("/stats", response_model=ScanStats)
async def scan_stats(
    ctx: RequestContext = Depends(get_request_context),
    manager: ScanLifecycleManager = Depends(get_lifecycle_manager),
):
    return await manager.stats(ctx)


@router.websocket("/feed")
async def scan_feed_socket(
    websocket: WebSocket,
    token: Optional[str] = None,
    region: Optional[str] = None,
    client: BackendClient = Depends(get_backend_client),
    feed: ScanFeed = Depends(get_scan_feed),
    manager: ScanLifecycleManager = Depends(get_lifecycle_manager),
):
    """Push the caller's scan list whenever one of their scans changes"""
    user = await resolve_user(client, token)
    if user is None:
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    ctx = RequestContext.build(user, token, region)
    await websocket.accept()
    logger.info("Scan feed connected", extra={"user_id": user.id})

    async with feed.subscription(user.id) as queue:
        snapshot = await manager.list_scans(ctx)
        await websocket.send_json(ScanFeedMessage(event="SNAPSHOT", scans=snapshot).model_dump(mode="json"))

        receiver = asyncio.create_task(_wait_for_disconnect(websocket))
        try:
            while True:
                getter = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait({getter, receiver}, return_when=asyncio.FIRST_COMPLETED)
                if receiver in done:
                    getter.cancel()
                    break
                message = await manager.handle_change(ctx, getter.result())
                await websocket.send_json(message.model_dump(mode="json"))
        except WebSocketDisconnect:
            pass
        finally:
            receiver.cancel()
            logger.info("Scan feed disconnected", extra={"user_id": user.id})


async def _wait_for_disconnect(websocket: WebSocket):
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@router.get("/{scan_id}", response_model=ScanView)
async def get_scan(
    scan_id: str,
    ctx: RequestContext = Depends(get_request_context),
    manager: ScanLifecycleManager = Depends(get_lifecycle_manager),
):
    """Get scan details"""
    return await manager.get_scan(ctx, scan_id)


@router.get("/{scan_id}/report.pdf")
async def export_report(
    scan_id: str,
    ctx: RequestContext = Depends(get_request_context),
    profile: Profile = Depends(get_profile),
    manager: ScanLifecycleManager = Depends(get_lifecycle_manager),
):
    """Export a completed scan report as PDF (PRO)"""
    if not profile.limits["pdf_export"]:
        raise UpgradeRequiredError(message_key="scan.pdf_pro_only")

    scan = await manager.scans.get_owned(scan_id, ctx.user_id)
    if scan.status != ScanStatus.COMPLETED:
        raise InputValidationError(message_key="scan.not_completed")

    pdf = ScanReportPDF(ctx.translator).render(scan)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="securex-report-{scan_id}.pdf"'},
    )
