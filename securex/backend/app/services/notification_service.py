# backend/app/services/notification_service.py
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

import httpx

from app.core.config import settings
from app.core.logging import logger

EMBED_COLOR_GREEN = 0x00FF00


def plan_label(plan_type: Optional[str], amount_total: Optional[int] = None) -> str:
    """Plan name for the ops message; falls back to the amount when metadata is missing"""
    if plan_type:
        return "PRO Anual" if plan_type == "annual" else "PRO Mensal"
    if amount_total:
        return "PRO Anual" if amount_total > 5000 else "PRO Mensal"
    return "PRO"


def build_subscription_embed(
    customer_name: str,
    customer_email: str,
    plan: str,
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    local = now.astimezone(ZoneInfo(tz_name or settings.OPS_TIMEZONE))
    return {
        "embeds": [
            {
                "title": "🎉 Nova Assinatura PRO!",
                "color": EMBED_COLOR_GREEN,
                "fields": [
                    {"name": "👤 Usuário", "value": customer_name, "inline": True},
                    {"name": "📧 Email", "value": customer_email, "inline": True},
                    {"name": "💳 Plano", "value": plan, "inline": True},
                    {"name": "📅 Data", "value": local.strftime("%d/%m/%Y"), "inline": True},
                    {"name": "⏰ Hora", "value": local.strftime("%H:%M:%S"), "inline": True},
                ],
                "footer": {"text": "✅ Benefícios já estão liberados!"},
                "timestamp": now.isoformat(),
            }
        ]
    }


class OpsNotifier:
    """Service for posting operational messages to the team chat webhook"""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url if webhook_url is not None else settings.DISCORD_WEBHOOK_URL
        self._transport = transport

    async def send(self, payload: Dict[str, Any]) -> bool:
        """Post a message; failures are logged and reported as False"""
        if not self.webhook_url:
            logger.warning("Ops chat webhook not configured, skipping notification")
            return False

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
                response = await client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Failed to post ops notification: {str(e)}")
            return False

        if response.status_code >= 400:
            logger.error(f"Ops webhook failed with {response.status_code}: {response.text[:500]}")
            return False
        return True

    async def send_subscription_alert(
        self,
        customer_name: str,
        customer_email: str,
        plan: str,
        now: Optional[datetime] = None,
    ) -> bool:
        sent = await self.send(build_subscription_embed(customer_name, customer_email, plan, now))
        if sent:
            logger.info(f"Subscription alert sent for plan {plan}")
        return sent
