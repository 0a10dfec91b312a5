# backend/app/services/billing_service.py
from typing import Any, Dict, List, Optional

from app.core.constants import SubscriptionStatus
from app.core.exceptions import UpstreamServiceError
from app.core.logging import logger
from app.db.repositories.profile_repository import ProfileRepository
from app.schemas.billing import Invoice
from app.services.code_registry import CodeRegistryClient
from app.services.notification_service import OpsNotifier, plan_label
from app.services.stripe_service import StripeService


def map_invoice(raw: Dict[str, Any]) -> Invoice:
    return Invoice(
        id=raw["id"],
        number=raw.get("number"),
        amount=(raw.get("amount_paid") or 0) / 100,
        currency=str(raw.get("currency") or "").upper(),
        status=raw.get("status"),
        created=raw.get("created"),
        invoice_pdf=raw.get("invoice_pdf"),
        hosted_invoice_url=raw.get("hosted_invoice_url"),
        period_start=raw.get("period_start"),
        period_end=raw.get("period_end"),
    )


async def list_invoices(stripe: StripeService, customer_id: Optional[str]) -> List[Invoice]:
    """Most recent invoices of the customer; none without a payment customer"""
    if not customer_id:
        return []
    return [map_invoice(raw) for raw in await stripe.list_invoices(customer_id, limit=20)]


class BillingEventHandler:
    """Applies verified payment-provider events"""

    def __init__(
        self,
        profiles: ProfileRepository,
        notifier: OpsNotifier,
        registry: CodeRegistryClient,
    ):
        self.profiles = profiles
        self.notifier = notifier
        self.registry = registry

    async def handle(self, event: Dict[str, Any]):
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}
        logger.info(f"Received Stripe event: {event_type}")

        if event_type == "checkout.session.completed":
            await self.checkout_completed(obj)
        elif event_type == "customer.subscription.deleted":
            await self.subscription_deleted(obj)

    async def checkout_completed(self, session: Dict[str, Any]):
        user_id = session.get("client_reference_id")
        customer_id = session.get("customer")
        details = session.get("customer_details") or {}
        metadata = session.get("metadata") or {}

        if user_id:
            values: Dict[str, Any] = {"subscription_status": SubscriptionStatus.ACTIVE.value}
            if customer_id:
                values["stripe_customer_id"] = customer_id
            await self.profiles.update_by_user(user_id, values)
            logger.info("Subscription activated", extra={"user_id": user_id})
        else:
            logger.warning(f"Checkout session {session.get('id')} has no client reference")

        customer_email = session.get("customer_email") or details.get("email") or "Email não disponível"
        customer_name = details.get("name") or customer_email.split("@")[0]
        plan = plan_label(metadata.get("plan_type"), session.get("amount_total"))
        await self.notifier.send_subscription_alert(customer_name, customer_email, plan)

        code = metadata.get("code")
        if code:
            try:
                await self.registry.redeem(code, customer_email)
            except UpstreamServiceError as e:
                logger.error(f"Code redemption after checkout failed: {str(e)}", extra={"user_id": user_id})

    async def subscription_deleted(self, subscription: Dict[str, Any]):
        customer_id = subscription.get("customer")
        if not customer_id:
            return
        updated = await self.profiles.update_by_customer(
            customer_id, {"subscription_status": SubscriptionStatus.INACTIVE.value}
        )
        logger.info(f"Subscription cancelled for customer {customer_id} ({updated} profiles)")
