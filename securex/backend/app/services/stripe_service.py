# backend/app/services/stripe_service.py
import hashlib
import hmac
import json
import time
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import httpx

from app.core.config import settings
from app.core.exceptions import UpstreamServiceError, WebhookSignatureError
from app.core.logging import logger


def encode_form(data: Mapping[str, Any], prefix: str = "") -> Dict[str, str]:
    """Flatten nested params into Stripe's bracketed form encoding"""
    encoded: Dict[str, str] = {}
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, Mapping):
            encoded.update(encode_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, Mapping):
                    encoded.update(encode_form(item, item_name))
                else:
                    encoded[item_name] = str(item)
        elif isinstance(value, bool):
            encoded[name] = "true" if value else "false"
        else:
            encoded[name] = str(value)
    return encoded


class StripeService:
    """Service for the Stripe REST API"""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key if secret_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET
        self.base_url = (base_url or settings.STRIPE_API_BASE).rstrip("/")
        self.tolerance = settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        if not self.secret_key:
            raise UpstreamServiceError("Stripe secret key not configured", service="stripe")

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=30.0) as client:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    params=encode_form(params) if params else None,
                    data=encode_form(data) if data else None,
                    headers={"Authorization": f"Bearer {self.secret_key}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Stripe request {method} {path} failed: {str(e)}")
            raise UpstreamServiceError(f"Stripe unreachable: {str(e)}", service="stripe") from e

        if response.status_code >= 400:
            logger.error(f"Stripe error {response.status_code} on {method} {path}: {response.text[:500]}")
            raise UpstreamServiceError(
                f"Stripe returned {response.status_code} for {method} {path}",
                service="stripe",
                http_status=response.status_code,
            )
        return response.json()

    # Customers

    async def find_or_create_customer(self, email: str, user_id: str) -> str:
        existing = await self._request("GET", "/customers", params={"email": email, "limit": 1})
        customers = existing.get("data") or []
        if customers:
            return customers[0]["id"]

        customer = await self._request(
            "POST",
            "/customers",
            data={"email": email, "metadata": {"supabase_user_id": user_id}},
        )
        logger.info(f"Created Stripe customer: {customer['id']}", extra={"user_id": user_id})
        return customer["id"]

    # Discounts

    async def list_promotion_codes(self, code: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"active": True, "limit": limit}
        if code:
            params["code"] = code
        result = await self._request("GET", "/promotion_codes", params=params)
        return result.get("data") or []

    async def find_promotion_code(self, code: str) -> Optional[Dict[str, Any]]:
        """Active promotion code matching case-insensitively"""
        wanted = code.strip().upper()
        for promo in await self.list_promotion_codes(code=wanted, limit=1):
            if str(promo.get("code", "")).upper() == wanted:
                return promo
        return None

    async def retrieve_coupon(self, coupon_id: str) -> Optional[Dict[str, Any]]:
        """Coupon by id, or None when Stripe does not know it"""
        try:
            return await self._request("GET", f"/coupons/{quote(coupon_id, safe='')}")
        except UpstreamServiceError as e:
            if e.http_status == 404:
                return None
            raise

    # Checkout

    async def create_checkout_session(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        session = await self._request("POST", "/checkout/sessions", data=params)
        logger.info(f"Created Stripe checkout session: {session.get('id')}")
        return session

    # Invoices

    async def list_invoices(self, customer_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        result = await self._request("GET", "/invoices", params={"customer": customer_id, "limit": limit})
        return result.get("data") or []

    # Webhooks

    def verify_webhook_signature(self, payload: bytes, signature_header: str, now: Optional[float] = None) -> bool:
        """
        Verify a `Stripe-Signature` header (t=<ts>,v1=<hex>[,v1=...])

        The expected signature is HMAC-SHA256 of "<t>.<body>" with the
        endpoint secret; any v1 entry may match. Timestamps outside the
        tolerance window are rejected.
        """
        if not self.webhook_secret:
            logger.error("Stripe webhook secret not configured")
            return False

        timestamp: Optional[str] = None
        signatures: List[str] = []
        for item in (signature_header or "").split(","):
            key, _, value = item.strip().partition("=")
            if key == "t":
                timestamp = value
            elif key == "v1" and value:
                signatures.append(value)

        if not timestamp or not signatures:
            return False

        try:
            timestamp_value = int(timestamp)
        except ValueError:
            return False

        current = time.time() if now is None else now
        if self.tolerance and abs(current - timestamp_value) > self.tolerance:
            logger.warning("Stripe webhook timestamp outside tolerance")
            return False

        signed_payload = f"{timestamp}.".encode() + payload
        expected_signature = hmac.new(
            self.webhook_secret.encode(),
            signed_payload,
            hashlib.sha256,
        ).hexdigest()

        return any(hmac.compare_digest(expected_signature, sig) for sig in signatures)

    def construct_event(self, payload: bytes, signature_header: Optional[str]) -> Dict[str, Any]:
        if not signature_header:
            raise WebhookSignatureError("Missing stripe-signature header")
        if not self.verify_webhook_signature(payload, signature_header):
            raise WebhookSignatureError("Webhook signature verification failed")
        try:
            event = json.loads(payload)
        except ValueError as e:
            raise WebhookSignatureError("Webhook payload is not valid JSON") from e
        if not isinstance(event, dict):
            raise WebhookSignatureError("Webhook payload is not an event object")
        return event
