# backend/app/services/scan_lifecycle.py
"""
Scan lifecycle: request checks, creation, analysis dispatch, and the
presentation/notification decisions derived from scan rows.
"""

import asyncio
from typing import Any, Callable, List, Mapping, Optional, Set

from app.core.constants import (
    FREE_SCANS_PER_MONTH,
    SCAN_CHECK_CATEGORIES,
    ScanSeverity,
    ScanStatus,
    ScanType,
    ToastTier,
)
from app.core.context import RequestContext
from app.core.exceptions import InputValidationError, QuotaExceededError, UpgradeRequiredError
from app.core.i18n import DEFAULT_LANGUAGE, Translator
from app.core.input_validation import validate_github_repo, validate_scan_url, validate_upload
from app.core.logging import logger
from app.db.repositories.profile_repository import ProfileRepository
from app.db.repositories.scan_repository import ScanRepository
from app.schemas.scan import (
    ConfirmedScan,
    Scan,
    ScanConfirmation,
    ScanFeedMessage,
    ScanNotification,
    ScanPresentation,
    ScanStats,
    ScanSubmission,
    ScanView,
)
from app.schemas.user import Profile
from app.services.analysis_service import AnalysisService
from app.services.realtime import ScanChangeEvent

# strong references to analysis tasks started without BackgroundTasks
_background_tasks: Set[asyncio.Task] = set()

# icon, label key, tone
_COMPLETED_PRESENTATION = {
    ScanSeverity.SAFE: ("check-circle", "status.safe", "success"),
    ScanSeverity.WARNING: ("alert-triangle", "status.warning", "warning"),
    ScanSeverity.DANGER: ("alert-octagon", "status.danger", "destructive"),
}
_ANALYZING = ("clock", "status.analyzing", "muted")
_FAILED = ("x-circle", "status.failed", "destructive")
_FALLBACK = ("shield", "status.processing", "muted")


def _enum_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "value", value)


def status_presentation(status: Any, severity: Any, language: str = DEFAULT_LANGUAGE) -> ScanPresentation:
    """Icon and label for a (status, severity) pair"""
    status = _enum_value(status)
    severity = _enum_value(severity)

    if status in (ScanStatus.PENDING.value, ScanStatus.PROCESSING.value):
        icon, key, tone = _ANALYZING
    elif status == ScanStatus.FAILED.value:
        icon, key, tone = _FAILED
    elif status == ScanStatus.COMPLETED.value and severity in {s.value for s in ScanSeverity}:
        icon, key, tone = _COMPLETED_PRESENTATION[ScanSeverity(severity)]
    else:
        icon, key, tone = _FALLBACK

    return ScanPresentation(icon=icon, label=Translator(language)(key), tone=tone)


def notification_for(scan: Mapping[str, Any], language: str = DEFAULT_LANGUAGE) -> Optional[ScanNotification]:
    """
    Toast (and optional OS notification) for a scan row that just completed.

    Depends only on status, severity and vulnerabilities_count; returns None
    for any other status.
    """
    if _enum_value(scan.get("status")) != ScanStatus.COMPLETED.value:
        return None

    t = Translator(language)
    severity = _enum_value(scan.get("severity"))
    count = scan.get("vulnerabilities_count") or 0

    if severity == ScanSeverity.DANGER.value and count > 0:
        message = t.plural("notify.critical", count)
        return ScanNotification(
            tier=ToastTier.CRITICAL,
            message=message,
            description=t("notify.critical.description"),
            os_notification=True,
            os_title=t("notify.critical.title"),
            os_body=t("notify.critical.os_body", message=message),
        )

    if severity == ScanSeverity.WARNING.value and count > 0:
        return ScanNotification(
            tier=ToastTier.WARNING,
            message=t.plural("notify.warning", count),
            description=t("notify.warning.description"),
        )

    return ScanNotification(
        tier=ToastTier.SUCCESS,
        message=t("notify.success"),
        description=t("notify.success.description"),
    )


def free_scans_remaining(profile: Profile) -> Optional[int]:
    """Free scans left after the one being requested; None for PRO accounts"""
    if profile.is_pro:
        return None
    return max(FREE_SCANS_PER_MONTH - profile.scan_count - 1, 0)


def to_view(scan: Scan, language: str = DEFAULT_LANGUAGE) -> ScanView:
    return ScanView(
        **scan.model_dump(),
        presentation=status_presentation(scan.status, scan.severity, language),
    )


class ScanLifecycleManager:
    """Creates scans for a caller and dispatches their analysis"""

    def __init__(
        self,
        scans: ScanRepository,
        profiles: ProfileRepository,
        analysis: AnalysisService,
    ):
        self.scans = scans
        self.profiles = profiles
        self.analysis = analysis

    def request_scan(self, ctx: RequestContext, profile: Profile, submission: ScanSubmission) -> ScanConfirmation:
        """Validate a submission against the caller's plan; no side effects"""
        provided = submission.provided()
        if len(provided) != 1:
            raise InputValidationError(message_key="scan.input_required")

        if submission.url:
            target = validate_scan_url(submission.url)
            scan_type = ScanType.URL
        elif submission.file:
            target = validate_upload(submission.file.name, submission.file.size, profile.is_pro)
            scan_type = ScanType.FILE
        else:
            target = validate_github_repo(submission.github_url)
            if not profile.limits["github_scans"]:
                raise UpgradeRequiredError(message_key="scan.github_pro_only")
            scan_type = ScanType.GITHUB

        max_scans = profile.limits["max_scans_per_month"]
        if max_scans != -1 and profile.scan_count >= max_scans:
            logger.info("Free scan quota reached", extra={"user_id": ctx.user_id})
            raise QuotaExceededError(params={"limit": max_scans})

        return ScanConfirmation(
            target=target,
            scan_type=scan_type,
            checks=list(SCAN_CHECK_CATEGORIES),
            free_scans_remaining=free_scans_remaining(profile),
        )

    async def confirm_scan(
        self,
        ctx: RequestContext,
        profile: Profile,
        submission: ScanSubmission,
        schedule: Optional[Callable[..., Any]] = None,
    ) -> ConfirmedScan:
        """
        Create the scan, count it, and hand it to analysis.

        Every request_scan check runs again here. The ownership check and the
        move to processing are awaited; the model call itself is passed to
        `schedule` (BackgroundTasks.add_task in the API) or run as a task.
        """
        if not submission.confirmed:
            raise InputValidationError(message_key="scan.confirmation_required")

        confirmation = self.request_scan(ctx, profile, submission)

        scan = await self.scans.create({
            "user_id": ctx.user_id,
            "target": confirmation.target,
            "scan_type": confirmation.scan_type.value,
            "status": ScanStatus.PENDING.value,
        })
        logger.info(
            f"Scan created for {scan.scan_type.value} target",
            extra={"user_id": ctx.user_id, "scan_id": scan.id},
        )

        updated_profile = await self.profiles.increment_scan_count(ctx.user_id)

        processing = await self.analysis.start(ctx.user_id, scan.id)
        if schedule is not None:
            schedule(self.analysis.complete_in_background, processing)
        else:
            task = asyncio.create_task(self.analysis.complete_in_background(processing))
            _background_tasks.add(task)
            task.add_done_callback(_background_tasks.discard)

        return ConfirmedScan(
            scan=processing,
            scans_this_month=updated_profile.scan_count,
            message=ctx.translator("scan.started"),
        )

    async def list_scans(
        self,
        ctx: RequestContext,
        status: Optional[ScanStatus] = None,
        severity: Optional[ScanSeverity] = None,
        limit: int = 100,
    ) -> List[ScanView]:
        scans = await self.scans.list_for_user(ctx.user_id, status=status, severity=severity, limit=limit)
        return [to_view(scan, ctx.language) for scan in scans]

    async def get_scan(self, ctx: RequestContext, scan_id: str) -> ScanView:
        scan = await self.scans.get_owned(scan_id, ctx.user_id)
        return to_view(scan, ctx.language)

    async def stats(self, ctx: RequestContext) -> ScanStats:
        scans = await self.scans.list_for_user(ctx.user_id, limit=1000)
        return ScanStats(
            total_scans=len(scans),
            total_vulnerabilities=sum(scan.vulnerabilities_count or 0 for scan in scans),
            safe_scans=sum(1 for scan in scans if scan.severity == ScanSeverity.SAFE),
        )

    async def handle_change(self, ctx: RequestContext, event: ScanChangeEvent) -> ScanFeedMessage:
        """Re-read the caller's full list; attach a notification when the row just completed"""
        scans = await self.list_scans(ctx)
        return ScanFeedMessage(
            event=event.event_type.value,
            scans=scans,
            notification=notification_for(event.record, ctx.language),
        )
