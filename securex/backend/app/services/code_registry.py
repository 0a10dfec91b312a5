# backend/app/services/code_registry.py
"""
External promo/plan code registry

Discount codes (type 2) are checked before checkout; plan codes (type 1) are
redeemed for a period of PRO access.
"""

import calendar
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from app.core.config import settings
from app.core.constants import CodeValidationError, RegistryCodeType, SubscriptionStatus
from app.core.exceptions import InvalidCodeError, UpstreamServiceError
from app.core.i18n import Translator
from app.core.logging import logger
from app.db.repositories.profile_repository import ProfileRepository
from app.schemas.codes import (
    CodeValidationResult,
    DurationUnit,
    PlanDuration,
    RedeemResponse,
    RegistryCode,
)

_KIND_NAMES = {
    RegistryCodeType.PLAN: "plan",
    RegistryCodeType.DISCOUNT: "discount",
}


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def error_message_key(error: CodeValidationError, expected_kind: RegistryCodeType) -> str:
    if error == CodeValidationError.CODE_REQUIRED:
        return "code.required"
    if error == CodeValidationError.CODE_NOT_FOUND:
        return "code.not_found"
    if error == CodeValidationError.CODE_WRONG_KIND:
        return f"code.wrong_kind.{_KIND_NAMES[expected_kind]}"
    if error == CodeValidationError.CODE_ALREADY_USED:
        return "code.already_used"
    return "code.internal"


def _add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def expiry_for(duration: PlanDuration, now: Optional[datetime] = None) -> datetime:
    """End of a granted period; month and year steps clamp to the last day of the month"""
    start = now or datetime.now(timezone.utc)
    if duration.unit == DurationUnit.DAYS:
        return start + timedelta(days=duration.value)
    if duration.unit == DurationUnit.MONTHS:
        return _add_months(start, duration.value)
    return _add_months(start, duration.value * 12)


class CodeRegistryClient:
    """HTTP client for the code registry"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.CODE_REGISTRY_URL).rstrip("/")
        self.token = token if token is not None else settings.CODE_REGISTRY_TOKEN
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=15.0) as client:
                return await client.request(
                    method, f"{self.base_url}{path}", headers=self._headers(), **kwargs
                )
        except httpx.HTTPError as e:
            logger.error(f"Code registry request {method} {path} failed: {str(e)}")
            raise UpstreamServiceError(f"Code registry unreachable: {str(e)}", service="code_registry") from e

    @staticmethod
    def _parse_code(response: httpx.Response) -> RegistryCode:
        try:
            payload = response.json()
            if isinstance(payload, dict) and isinstance(payload.get("code"), dict):
                payload = payload["code"]
            return RegistryCode.model_validate(payload)
        except (ValueError, ValidationError) as e:
            logger.error(f"Unexpected code registry payload: {str(e)}")
            raise UpstreamServiceError("Malformed code registry response", service="code_registry") from e

    async def lookup(self, code: str) -> Optional[RegistryCode]:
        """Code record, or None when the registry does not know it"""
        response = await self._send("GET", "/codes", params={"code": code})
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            logger.error(f"Code registry error {response.status_code}: {response.text[:500]}")
            raise UpstreamServiceError(
                f"Code registry returned {response.status_code}",
                service="code_registry",
                http_status=response.status_code,
            )
        return self._parse_code(response)

    async def redeem(self, code: str, redeemer_id: str) -> RegistryCode:
        response = await self._send("POST", "/codes/redeem", json={"code": code, "id": redeemer_id})
        if response.status_code >= 400:
            logger.error(
                f"Code redemption failed with {response.status_code}: {response.text[:500]}",
                extra={"user_id": redeemer_id},
            )
            raise UpstreamServiceError(
                f"Code registry refused redemption ({response.status_code})",
                service="code_registry",
                http_status=response.status_code,
            )
        return self._parse_code(response)


async def validate_code(
    registry: CodeRegistryClient,
    code: Optional[str],
    expected_kind: RegistryCodeType,
) -> CodeValidationResult:
    """Check a code against the registry for the given kind; never raises"""
    normalized = normalize_code(code)
    if not normalized:
        return CodeValidationResult(valid=False, error=CodeValidationError.CODE_REQUIRED)

    try:
        record = await registry.lookup(normalized)
    except UpstreamServiceError:
        return CodeValidationResult(valid=False, error=CodeValidationError.INTERNAL_ERROR)

    if record is None:
        return CodeValidationResult(valid=False, error=CodeValidationError.CODE_NOT_FOUND)
    if record.type != expected_kind:
        return CodeValidationResult(valid=False, error=CodeValidationError.CODE_WRONG_KIND)
    if record.used:
        return CodeValidationResult(valid=False, error=CodeValidationError.CODE_ALREADY_USED)

    if expected_kind == RegistryCodeType.DISCOUNT and record.discount is None:
        logger.error(f"Discount code {record.code} has no discount descriptor")
        return CodeValidationResult(valid=False, error=CodeValidationError.INTERNAL_ERROR)
    if expected_kind == RegistryCodeType.PLAN and record.duration is None:
        logger.error(f"Plan code {record.code} has no duration")
        return CodeValidationResult(valid=False, error=CodeValidationError.INTERNAL_ERROR)

    return CodeValidationResult(
        valid=True,
        code=record.code,
        discount=record.discount,
        duration=record.duration,
    )


async def redeem_plan_code(
    registry: CodeRegistryClient,
    profiles: ProfileRepository,
    user_id: str,
    code: Optional[str],
    translator: Translator,
    now: Optional[datetime] = None,
) -> RedeemResponse:
    """Validate a plan code, redeem it for the caller and grant the PRO period"""
    result = await validate_code(registry, code, RegistryCodeType.PLAN)
    if not result.valid:
        if result.error == CodeValidationError.INTERNAL_ERROR:
            raise UpstreamServiceError("Code registry lookup failed", service="code_registry")
        raise InvalidCodeError(
            result.error,
            message_key=error_message_key(result.error, RegistryCodeType.PLAN),
        )

    redeemed = await registry.redeem(result.code, user_id)
    duration = redeemed.duration or result.duration

    expires_at = expiry_for(duration, now)
    await profiles.update_by_user(user_id, {
        "subscription_status": SubscriptionStatus.ACTIVE.value,
        "subscription_expires_at": expires_at.isoformat(),
    })
    logger.info(
        f"Plan code {result.code} redeemed for {duration.value} {duration.unit.value}",
        extra={"user_id": user_id},
    )

    unit = translator(f"unit.{duration.unit.value.lower()}")
    return RedeemResponse(
        valid=True,
        code=result.code,
        duration=duration,
        expires_at=expires_at,
        message=translator("redeem.success", value=duration.value, unit=unit),
    )
