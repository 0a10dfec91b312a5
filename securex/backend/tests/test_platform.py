# tests/test_platform.py
"""
Platform tests
Tests: hosted backend client, scan feed, regions, translations, request context
"""

import json

import httpx
import pytest

from app.core.constants import ScanStatus
from app.core.context import RequestContext
from app.core.i18n import Translator, translate, translate_plural
from app.core.regions import Region, calculate_price, format_price, list_regions, resolve_region
from app.db.backend_client import BackendClient, BackendError, build_filters
from app.services.realtime import ChangeType, ScanChangeEvent, ScanFeed


class TestBackendClient:
    """PostgREST / GoTrue request shapes"""

    def _client(self, handler) -> BackendClient:
        return BackendClient(
            base_url="https://project.supabase.test",
            anon_key="anon",
            service_key="service",
            transport=httpx.MockTransport(handler),
        )

    def test_build_filters(self):
        params = build_filters({
            "user_id": "u1",
            "status": [ScanStatus.PENDING, ScanStatus.PROCESSING],
            "severity": None,
            "active": True,
        })
        assert params == {
            "user_id": "eq.u1",
            "status": "in.(pending,processing)",
            "severity": "is.null",
            "active": "eq.true",
        }

    @pytest.mark.asyncio
    async def test_select_query(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[{"id": "s1"}])

        client = self._client(handler)
        rows = await client.select("scans", {"user_id": "u1"}, order="created_at", descending=True, limit=10)
        await client.close()

        assert rows == [{"id": "s1"}]
        request = seen[0]
        assert request.url.path == "/rest/v1/scans"
        assert request.url.params["user_id"] == "eq.u1"
        assert request.url.params["order"] == "created_at.desc"
        assert request.url.params["limit"] == "10"
        assert request.headers["apikey"] == "service"

    @pytest.mark.asyncio
    async def test_update_returns_rows(self):
        def handler(request):
            assert request.method == "PATCH"
            assert request.headers["Prefer"] == "return=representation"
            return httpx.Response(200, json=[{"id": "s1", **json.loads(request.content)}])

        client = self._client(handler)
        rows = await client.update("scans", {"id": "s1"}, {"status": "failed"})
        await client.close()

        assert rows == [{"id": "s1", "status": "failed"}]

    @pytest.mark.asyncio
    async def test_update_without_filters_refused(self):
        client = self._client(lambda request: httpx.Response(200, json=[]))
        with pytest.raises(ValueError):
            await client.update("scans", {}, {"status": "failed"})

    @pytest.mark.asyncio
    async def test_rpc(self):
        def handler(request):
            assert request.url.path == "/rest/v1/rpc/has_role"
            assert json.loads(request.content) == {"_user_id": "u1", "_role": "admin"}
            return httpx.Response(200, json=True)

        client = self._client(handler)
        assert await client.rpc("has_role", {"_user_id": "u1", "_role": "admin"}) is True
        await client.close()

    @pytest.mark.asyncio
    async def test_rejected_token_resolves_to_none(self):
        client = self._client(lambda request: httpx.Response(401, json={"msg": "invalid JWT"}))
        assert await client.get_user("expired") is None
        await client.close()

    @pytest.mark.asyncio
    async def test_user_lookup_uses_anon_key(self):
        def handler(request):
            assert request.headers["apikey"] == "anon"
            assert request.headers["Authorization"] == "Bearer user-jwt"
            return httpx.Response(200, json={"id": "u1", "email": "a@example.com"})

        client = self._client(handler)
        assert (await client.get_user("user-jwt"))["id"] == "u1"
        await client.close()

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        client = self._client(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(BackendError) as exc:
            await client.select("scans")
        assert exc.value.http_status == 500
        assert exc.value.status_code == 502
        await client.close()


class TestScanFeed:
    """Per-owner change fan-out"""

    def _event(self, user_id: str, status: str = "pending") -> ScanChangeEvent:
        return ScanChangeEvent(ChangeType.INSERT, {"id": "s1", "user_id": user_id, "status": status})

    @pytest.mark.asyncio
    async def test_events_reach_owner_only(self):
        feed = ScanFeed()
        own = feed.subscribe("u1")
        other = feed.subscribe("u2")

        feed.publish(self._event("u1"))

        assert own.qsize() == 1
        assert other.empty()

    @pytest.mark.asyncio
    async def test_full_queue_drops_oldest(self):
        feed = ScanFeed(max_queue_size=2)
        queue = feed.subscribe("u1")

        for status in ("pending", "processing", "completed"):
            feed.publish(self._event("u1", status))

        assert [queue.get_nowait().record["status"] for _ in range(2)] == ["processing", "completed"]

    @pytest.mark.asyncio
    async def test_subscription_context_unsubscribes(self):
        feed = ScanFeed()
        async with feed.subscription("u1"):
            assert feed.subscriber_count("u1") == 1
        assert feed.subscriber_count("u1") == 0
        feed.publish(self._event("u1"))


class TestRegions:

    def test_unknown_region_falls_back_to_brazil(self):
        assert resolve_region("XX").code == Region.BR
        assert resolve_region(None).code == Region.BR

    def test_lookup_is_case_insensitive(self):
        assert resolve_region(" us ").language == "en"

    def test_six_regions(self):
        assert [r.code.value for r in list_regions()] == ["BR", "US", "DE", "FR", "ES", "IT"]

    def test_prices(self):
        assert calculate_price(1.0, resolve_region("US")) == 9.99
        assert calculate_price(1.0, resolve_region("BR"), annual=True) == 268.92

    def test_format_price(self):
        assert format_price(1234.5, resolve_region("US")) == "$ 1,234.50"


class TestTranslations:

    def test_language_lookup(self):
        assert translate("status.safe", "de") == "Sicher"

    def test_missing_key_falls_back_to_default_language(self):
        assert translate("scan.github_pro_only", "fr") == translate("scan.github_pro_only", "pt")

    def test_unknown_language_falls_back(self):
        assert translate("status.safe", "es") == "Seguro"

    def test_unknown_key_returns_key(self):
        assert translate("no.such.key", "en") == "no.such.key"

    def test_params(self):
        assert translate("scan.file_too_large", "en", max_mb=50) == "File too large. Maximum size: 50MB"

    def test_plural(self):
        assert translate_plural("notify.warning", 1, "en") == "Scan completed: 1 issue found"
        assert Translator("en").plural("notify.warning", 4) == "Scan completed: 4 issues found"


class TestRequestContext:

    def test_build_binds_language(self):
        ctx = RequestContext.build(None, None, "FR")
        assert ctx.language == "fr"
        assert ctx.user_id is None
        assert ctx.translator("status.safe") == "Sûr"

    def test_with_region_returns_new_context(self):
        ctx = RequestContext.build(None, None, "BR")
        switched = ctx.with_region("US")
        assert switched.language == "en"
        assert ctx.language == "pt"
