# tests/test_code_registry.py
"""
Promo and plan code tests
Tests: registry lookups, validation outcomes, redemption and PRO periods
"""

from datetime import datetime, timezone

import pytest

from app.core.constants import CodeValidationError, RegistryCodeType
from app.core.exceptions import InvalidCodeError, UpstreamServiceError
from app.core.i18n import Translator
from app.db.repositories.profile_repository import ProfileRepository
from app.schemas.codes import DurationUnit, PlanDuration
from app.services.code_registry import (
    CodeRegistryClient,
    error_message_key,
    expiry_for,
    normalize_code,
    redeem_plan_code,
    validate_code,
)
from conftest import USER_ID, HTTPStub


class TestExpiry:
    """Granted PRO periods"""

    NOW = datetime(2025, 1, 31, 12, 0, tzinfo=timezone.utc)

    def test_days(self):
        assert expiry_for(PlanDuration(unit=DurationUnit.DAYS, value=30), self.NOW) == datetime(
            2025, 3, 2, 12, 0, tzinfo=timezone.utc
        )

    def test_months_clamp_to_month_end(self):
        assert expiry_for(PlanDuration(unit="MONTHS", value=1), self.NOW).date().isoformat() == "2025-02-28"

    def test_months_roll_over_year(self):
        now = datetime(2025, 11, 15, tzinfo=timezone.utc)
        assert expiry_for(PlanDuration(unit="MONTHS", value=3), now).date().isoformat() == "2026-02-15"

    def test_years_from_leap_day(self):
        now = datetime(2024, 2, 29, tzinfo=timezone.utc)
        assert expiry_for(PlanDuration(unit="YEARS", value=1), now).date().isoformat() == "2025-02-28"


class TestMessages:

    def test_normalize(self):
        assert normalize_code("  save20 ") == "SAVE20"
        assert normalize_code(None) == ""

    @pytest.mark.parametrize("error,kind,key", [
        (CodeValidationError.CODE_REQUIRED, RegistryCodeType.DISCOUNT, "code.required"),
        (CodeValidationError.CODE_NOT_FOUND, RegistryCodeType.PLAN, "code.not_found"),
        (CodeValidationError.CODE_WRONG_KIND, RegistryCodeType.PLAN, "code.wrong_kind.plan"),
        (CodeValidationError.CODE_WRONG_KIND, RegistryCodeType.DISCOUNT, "code.wrong_kind.discount"),
        (CodeValidationError.CODE_ALREADY_USED, RegistryCodeType.PLAN, "code.already_used"),
        (CodeValidationError.INTERNAL_ERROR, RegistryCodeType.PLAN, "code.internal"),
    ])
    def test_error_message_keys(self, error, kind, key):
        assert error_message_key(error, kind) == key


class TestValidateCode:
    """Registry outcomes for each code kind"""

    @pytest.mark.asyncio
    async def test_valid_discount(self, registry, registry_stub):
        result = await validate_code(registry, " save20 ", RegistryCodeType.DISCOUNT)
        assert result.valid
        assert result.code == "SAVE20"
        assert result.discount.value == 20
        request = registry_stub.requests[0]
        assert request.url.params["code"] == "SAVE20"
        assert request.headers["Authorization"] == "Bearer registry-token"

    @pytest.mark.asyncio
    async def test_empty_code_skips_registry(self, registry, registry_stub):
        result = await validate_code(registry, "   ", RegistryCodeType.DISCOUNT)
        assert result.error == CodeValidationError.CODE_REQUIRED
        assert registry_stub.requests == []

    @pytest.mark.asyncio
    async def test_unknown_code(self, registry):
        result = await validate_code(registry, "NOPE", RegistryCodeType.DISCOUNT)
        assert result.error == CodeValidationError.CODE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_wrong_kind(self, registry):
        result = await validate_code(registry, "PRO30", RegistryCodeType.DISCOUNT)
        assert result.error == CodeValidationError.CODE_WRONG_KIND

    @pytest.mark.asyncio
    async def test_already_used(self, registry):
        result = await validate_code(registry, "USEDPLAN", RegistryCodeType.PLAN)
        assert result.error == CodeValidationError.CODE_ALREADY_USED
        assert result.to_response() == {"valid": False, "error": 3}

    @pytest.mark.asyncio
    async def test_registry_outage_is_internal(self):
        stub = HTTPStub({("GET", "/v1/codes"): (503, {"error": "down"})})
        registry = CodeRegistryClient(base_url="http://registry.test/v1", transport=stub.transport)

        result = await validate_code(registry, "SAVE20", RegistryCodeType.DISCOUNT)

        assert result.error == CodeValidationError.INTERNAL_ERROR

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_rejected_registry_token_is_internal(self, status_code):
        stub = HTTPStub({("GET", "/v1/codes"): (status_code, {"error": "unauthorized"})})
        registry = CodeRegistryClient(base_url="http://registry.test/v1", token="expired", transport=stub.transport)

        result = await validate_code(registry, "SAVE20", RegistryCodeType.DISCOUNT)

        assert result.error == CodeValidationError.INTERNAL_ERROR

    @pytest.mark.asyncio
    async def test_malformed_record_is_internal(self):
        stub = HTTPStub({("GET", "/v1/codes"): (200, {"unexpected": True})})
        registry = CodeRegistryClient(base_url="http://registry.test/v1", transport=stub.transport)

        result = await validate_code(registry, "SAVE20", RegistryCodeType.DISCOUNT)

        assert result.error == CodeValidationError.INTERNAL_ERROR

    @pytest.mark.asyncio
    async def test_discount_without_descriptor_is_internal(self):
        stub = HTTPStub({("GET", "/v1/codes"): (200, {"code": "BARE", "type": 2, "used": False})})
        registry = CodeRegistryClient(base_url="http://registry.test/v1", transport=stub.transport)

        result = await validate_code(registry, "BARE", RegistryCodeType.DISCOUNT)

        assert result.error == CodeValidationError.INTERNAL_ERROR


class TestRedeemPlanCode:
    """Plan codes grant a PRO period"""

    NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_redeem_grants_pro(self, backend, registry, registry_codes):
        response = await redeem_plan_code(
            registry, ProfileRepository(backend), USER_ID, "pro30", Translator("en"), now=self.NOW
        )

        assert response.valid
        assert response.message == "You earned 30 days of PRO access!"
        assert response.expires_at == datetime(2025, 1, 31, tzinfo=timezone.utc)
        profile = backend.profile(USER_ID)
        assert profile["subscription_status"] == "active"
        assert profile["subscription_expires_at"] == "2025-01-31T00:00:00+00:00"
        assert registry_codes["PRO30"]["redeemed_by"] == USER_ID

    @pytest.mark.asyncio
    async def test_used_code_is_rejected(self, backend, registry):
        with pytest.raises(InvalidCodeError) as exc:
            await redeem_plan_code(registry, ProfileRepository(backend), USER_ID, "USEDPLAN", Translator("en"))
        assert exc.value.reason == 3
        assert exc.value.message_key == "code.already_used"
        assert backend.profile(USER_ID)["subscription_status"] == "inactive"

    @pytest.mark.asyncio
    async def test_discount_code_cannot_be_redeemed(self, backend, registry):
        with pytest.raises(InvalidCodeError) as exc:
            await redeem_plan_code(registry, ProfileRepository(backend), USER_ID, "SAVE20", Translator("en"))
        assert exc.value.message_key == "code.wrong_kind.plan"
        assert exc.value.status_code == 400

    @pytest.mark.asyncio
    async def test_registry_outage_raises_upstream(self, backend):
        stub = HTTPStub({("GET", "/v1/codes"): (500, {})})
        registry = CodeRegistryClient(base_url="http://registry.test/v1", transport=stub.transport)

        with pytest.raises(UpstreamServiceError):
            await redeem_plan_code(registry, ProfileRepository(backend), USER_ID, "PRO30", Translator("en"))
