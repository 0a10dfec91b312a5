"""
Pytest configuration and fixtures
Shared test setup for all test modules
"""

import copy
import hashlib
import hmac
import json
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import (
    get_code_registry,
    get_ops_notifier,
    get_scan_feed,
    get_security_analyzer,
    get_stripe_service,
)
from app.core.exceptions import UpstreamServiceError
from app.db.backend_client import _encode_value
from app.db.database import get_backend_client
from app.main import app
from app.services.code_registry import CodeRegistryClient
from app.services.notification_service import OpsNotifier
from app.services.realtime import ScanFeed
from app.services.stripe_service import StripeService

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
ADMIN_ID = "admin-1"

USER_TOKEN = "user-token"
OTHER_TOKEN = "other-token"
ADMIN_TOKEN = "admin-token"

WEBHOOK_SECRET = "whsec_test"
OPS_WEBHOOK_URL = "https://discord.test/api/webhooks/1"

HIGH_FINDING_REPLY = """```json
{
  "vulnerabilities": [
    {
      "type": "XSS",
      "severity": "high",
      "title": "Reflected XSS in search",
      "description": "The q parameter is echoed without encoding.",
      "location": "/search?q=",
      "recommendation": "Encode output.",
      "code_example": "escape(q)"
    }
  ],
  "summary": {"total": 1, "critical": 0, "high": 1, "medium": 0, "low": 0},
  "overall_severity": "danger"
}
```"""


class FakeBackend:
    """In-memory stand-in for the hosted backend client"""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {"scans": [], "profiles": []}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.roles: set = set()
        self.rpc_calls: List[Tuple[str, Dict[str, Any]]] = []
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)

    # Seeding

    def add_user(self, token: str, user_id: str, email: Optional[str] = None, **profile):
        self.users[token] = {"id": user_id, "email": email or f"{user_id}@example.com"}
        row = {
            "user_id": user_id,
            "subscription_status": "inactive",
            "scans_this_month": 0,
            "stripe_customer_id": None,
            "subscription_expires_at": None,
        }
        row.update(profile)
        self.tables["profiles"].append(row)

    def add_scan(self, user_id: str, **values) -> Dict[str, Any]:
        row = {
            "user_id": user_id,
            "target": "https://example.com",
            "scan_type": "url",
            "status": "pending",
        }
        row.update(values)
        return self._insert_row("scans", row)

    def profile(self, user_id: str) -> Dict[str, Any]:
        return next(r for r in self.tables["profiles"] if r["user_id"] == user_id)

    def scan(self, scan_id: str) -> Dict[str, Any]:
        return next(r for r in self.tables["scans"] if r["id"] == scan_id)

    # Client surface

    @staticmethod
    def _matches(row: Dict[str, Any], filters) -> bool:
        for column, value in (filters or {}).items():
            current = row.get(column)
            if value is None:
                if current is not None:
                    return False
            elif isinstance(value, (list, tuple, set, frozenset)):
                if current is None or _encode_value(current) not in {_encode_value(v) for v in value}:
                    return False
            elif current is None or _encode_value(current) != _encode_value(value):
                return False
        return True

    def _insert_row(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        self._clock += timedelta(seconds=1)
        stored = dict(row)
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("created_at", self._clock.isoformat())
        if table == "scans":
            stored.setdefault("severity", None)
            stored.setdefault("vulnerabilities_count", 0)
            stored.setdefault("result", None)
        self.tables.setdefault(table, []).append(stored)
        return copy.deepcopy(stored)

    async def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self.users.get(access_token))

    async def select(self, table, filters=None, columns="*", order=None, descending=False, limit=None, offset=None):
        rows = [r for r in self.tables.get(table, []) if self._matches(r, filters)]
        if order:
            rows.sort(key=lambda r: str(r.get(order) or ""), reverse=descending)
        start = offset or 0
        end = start + limit if limit is not None else None
        return copy.deepcopy(rows[start:end])

    async def select_one(self, table, filters, columns="*"):
        rows = await self.select(table, filters, limit=1)
        return rows[0] if rows else None

    async def insert(self, table, row):
        return self._insert_row(table, row)

    async def update(self, table, filters, values):
        if not filters:
            raise ValueError("Refusing to update without filters")
        updated = []
        for row in self.tables.get(table, []):
            if self._matches(row, filters):
                row.update(copy.deepcopy(dict(values)))
                updated.append(copy.deepcopy(row))
        return updated

    async def rpc(self, function, params=None):
        params = dict(params or {})
        self.rpc_calls.append((function, params))
        if function == "increment_scans_this_month":
            profile = self.profile(params["user_id_param"])
            profile["scans_this_month"] = (profile.get("scans_this_month") or 0) + 1
            return None
        if function == "has_role":
            return (params["_user_id"], params["_role"]) in self.roles
        raise AssertionError(f"Unexpected rpc {function}")

    async def close(self):
        pass


class FakeAnalyzer:
    """Analysis model double; returns a canned reply or raises"""

    def __init__(self, reply: str = HIGH_FINDING_REPLY, error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: List[Tuple[str, Any]] = []

    async def analyze(self, target, scan_type) -> str:
        self.calls.append((target, scan_type))
        if self.error is not None:
            raise self.error
        return self.reply


class HTTPStub:
    """Routes (method, path) to canned JSON replies and records every request"""

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Any]] = None):
        self.routes: Dict[Tuple[str, str], Any] = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.routes.get((request.method, request.url.path))
        if reply is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(reply):
            reply = reply(request)
        status_code, body = reply
        return httpx.Response(status_code, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


def registry_routes(codes: Dict[str, Dict[str, Any]]) -> Dict[Tuple[str, str], Callable]:
    """Code registry double backed by a dict of code records"""

    def lookup(request: httpx.Request):
        record = codes.get(request.url.params.get("code", ""))
        if record is None:
            return 404, {"error": "not found"}
        return 200, record

    def redeem(request: httpx.Request):
        body = json.loads(request.content)
        record = codes.get(body["code"])
        if record is None or record.get("used"):
            return 409, {"error": "unavailable"}
        record["used"] = True
        record["redeemed_by"] = body["id"]
        return 200, {"code": record}

    return {
        ("GET", "/v1/codes"): lookup,
        ("POST", "/v1/codes/redeem"): redeem,
    }


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    signature = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def backend() -> FakeBackend:
    """Backend seeded with a free user, a second user and an admin"""
    fake = FakeBackend()
    fake.add_user(USER_TOKEN, USER_ID, email="alice@example.com")
    fake.add_user(OTHER_TOKEN, OTHER_USER_ID, email="bob@example.com")
    fake.add_user(ADMIN_TOKEN, ADMIN_ID, email="admin@example.com")
    fake.roles.add((ADMIN_ID, "admin"))
    return fake


@pytest.fixture
def feed() -> ScanFeed:
    return ScanFeed()


@pytest.fixture
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def registry_codes() -> Dict[str, Dict[str, Any]]:
    return {
        "SAVE20": {"code": "SAVE20", "type": 2, "used": False, "discount": {"kind": "percentage", "value": 20}},
        "PRO30": {"code": "PRO30", "type": 1, "used": False, "duration": {"unit": "DAYS", "value": 30}},
        "USEDPLAN": {"code": "USEDPLAN", "type": 1, "used": True, "duration": {"unit": "MONTHS", "value": 1}},
    }


@pytest.fixture
def registry_stub(registry_codes) -> HTTPStub:
    return HTTPStub(registry_routes(registry_codes))


@pytest.fixture
def registry(registry_stub) -> CodeRegistryClient:
    return CodeRegistryClient(base_url="http://registry.test/v1", token="registry-token", transport=registry_stub.transport)


@pytest.fixture
def stripe_stub() -> HTTPStub:
    """Stripe API double with one promotion code, one coupon and one invoice"""
    return HTTPStub({
        ("GET", "/v1/customers"): (200, {"data": []}),
        ("POST", "/v1/customers"): (200, {"id": "cus_new"}),
        ("GET", "/v1/promotion_codes"): (200, {"data": [
            {"id": "promo_1", "code": "SAVE10", "coupon": {"id": "save10", "percent_off": 10}},
        ]}),
        ("GET", "/v1/coupons/welcome5"): (200, {"id": "welcome5", "valid": True, "amount_off": 500}),
        ("POST", "/v1/checkout/sessions"): (200, {"id": "cs_1", "url": "https://checkout.stripe.com/c/pay/cs_1"}),
        ("GET", "/v1/invoices"): (200, {"data": [
            {
                "id": "in_1",
                "number": "0001",
                "amount_paid": 2490,
                "currency": "brl",
                "status": "paid",
                "created": 1735689600,
                "invoice_pdf": "https://pay.stripe.com/in_1.pdf",
                "hosted_invoice_url": "https://pay.stripe.com/in_1",
            },
        ]}),
    })


@pytest.fixture
def stripe(stripe_stub) -> StripeService:
    return StripeService(
        secret_key="sk_test_123",
        webhook_secret=WEBHOOK_SECRET,
        base_url="https://api.stripe.test/v1",
        transport=stripe_stub.transport,
    )


@pytest.fixture
def ops_stub() -> HTTPStub:
    return HTTPStub({("POST", "/api/webhooks/1"): (200, {})})


@pytest.fixture
def notifier(ops_stub) -> OpsNotifier:
    return OpsNotifier(webhook_url=OPS_WEBHOOK_URL, transport=ops_stub.transport)


@pytest.fixture(scope="function")
def client(backend, feed, analyzer, registry, stripe, notifier) -> TestClient:
    """Create test client with every external service replaced"""
    app.dependency_overrides[get_backend_client] = lambda: backend
    app.dependency_overrides[get_scan_feed] = lambda: feed
    app.dependency_overrides[get_security_analyzer] = lambda: analyzer
    app.dependency_overrides[get_code_registry] = lambda: registry
    app.dependency_overrides[get_stripe_service] = lambda: stripe
    app.dependency_overrides[get_ops_notifier] = lambda: notifier

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {USER_TOKEN}"}


@pytest.fixture
def other_headers() -> dict:
    return {"Authorization": f"Bearer {OTHER_TOKEN}"}


@pytest.fixture
def admin_headers() -> dict:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def make_pro(backend):
    """Turn the default user into an active PRO subscriber"""
    def _make_pro(user_id: str = USER_ID):
        backend.profile(user_id)["subscription_status"] = "active"
    return _make_pro


@pytest.fixture
def upstream_error() -> UpstreamServiceError:
    return UpstreamServiceError("model unavailable", service="ai")
