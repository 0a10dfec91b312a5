# backend/app/services/checkout_service.py
"""
Checkout and discount resolution

A code typed by the user is resolved against the payment provider as a
promotion code first, then as a coupon id. A resolved discount is attached
to the session; otherwise the hosted checkout lets the customer type one.
The two are never sent together.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from app.core.config import settings
from app.core.constants import CodeValidationError, DiscountKind
from app.core.exceptions import InputValidationError, UpstreamServiceError
from app.core.input_validation import validate_return_url
from app.core.logging import logger
from app.core.regions import RegionConfig, calculate_price, format_price
from app.db.repositories.profile_repository import ProfileRepository
from app.schemas.billing import DiscountDescriptor, PriceQuote
from app.schemas.codes import CodeValidationResult
from app.schemas.user import AuthUser
from app.services.stripe_service import StripeService


def compute_discount(price: float, discount: Optional[DiscountDescriptor]) -> float:
    """Amount taken off `price`, never negative and never more than the price"""
    if discount is None or price <= 0:
        return 0.0
    if discount.kind == DiscountKind.PERCENTAGE:
        amount = price * discount.value / 100
    else:
        amount = min(discount.value, price)
    return round(max(0.0, min(amount, price)), 2)


def descriptor_from_coupon(coupon: Dict[str, Any]) -> DiscountDescriptor:
    """percent_off wins; amount_off is in minor units"""
    if coupon.get("percent_off"):
        return DiscountDescriptor(kind=DiscountKind.PERCENTAGE, value=coupon["percent_off"])
    if coupon.get("amount_off"):
        return DiscountDescriptor(kind=DiscountKind.FIXED, value=coupon["amount_off"] / 100)
    return DiscountDescriptor(kind=DiscountKind.PERCENTAGE, value=0)


@dataclass
class StripeDiscount:
    reference: str  # "promotion_code" or "coupon"
    id: str
    code: str
    descriptor: DiscountDescriptor

    def as_session_discount(self) -> Dict[str, str]:
        return {self.reference: self.id}


async def resolve_stripe_discount(
    stripe: StripeService,
    code: Optional[str],
    strict: bool = False,
) -> Optional[StripeDiscount]:
    """
    Promotion code (upper-cased) first, then a valid coupon (lower-cased); None if neither.

    Lookup failures are logged and treated as "no discount" unless `strict`,
    in which case the UpstreamServiceError propagates.
    """
    code = (code or "").strip()
    if not code:
        return None

    try:
        promo = await stripe.find_promotion_code(code.upper())
    except UpstreamServiceError as e:
        if strict:
            raise
        logger.warning(f"Promotion code lookup failed: {str(e)}")
        promo = None
    if promo:
        return StripeDiscount(
            reference="promotion_code",
            id=promo["id"],
            code=promo.get("code", code.upper()),
            descriptor=descriptor_from_coupon(promo.get("coupon") or {}),
        )

    try:
        coupon = await stripe.retrieve_coupon(code.lower())
    except UpstreamServiceError as e:
        if strict:
            raise
        logger.warning(f"Coupon lookup failed: {str(e)}")
        coupon = None
    if coupon and coupon.get("valid"):
        return StripeDiscount(
            reference="coupon",
            id=coupon["id"],
            code=coupon["id"],
            descriptor=descriptor_from_coupon(coupon),
        )
    return None


async def validate_stripe_promo(stripe: StripeService, code: Optional[str]) -> CodeValidationResult:
    if not (code or "").strip():
        return CodeValidationResult(valid=False, error=CodeValidationError.CODE_REQUIRED)
    if not stripe.secret_key:
        logger.error("Stripe secret key not configured")
        return CodeValidationResult(valid=False, error=CodeValidationError.INTERNAL_ERROR)

    try:
        discount = await resolve_stripe_discount(stripe, code, strict=True)
    except UpstreamServiceError as e:
        logger.error(f"Promotion code validation failed: {str(e)}")
        return CodeValidationResult(valid=False, error=CodeValidationError.INTERNAL_ERROR)
    if discount is None:
        return CodeValidationResult(valid=False, error=CodeValidationError.CODE_NOT_FOUND)

    return CodeValidationResult(
        valid=True,
        code=discount.code,
        discount=discount.descriptor,
        promo_id=discount.id if discount.reference == "promotion_code" else None,
        is_coupon=True if discount.reference == "coupon" else None,
    )


def plan_type_for(price_id: str) -> str:
    if price_id == settings.STRIPE_PRICE_ANNUAL:
        return "annual"
    if price_id == settings.STRIPE_PRICE_MONTHLY:
        return "monthly"
    raise InputValidationError(message_key="checkout.invalid_price")


def quote_price(
    region: RegionConfig,
    annual: bool,
    discount: Optional[DiscountDescriptor] = None,
    base_price: float = 1.0,
) -> PriceQuote:
    price = calculate_price(base_price, region, annual)
    amount_off = compute_discount(price, discount)
    total = round(price - amount_off, 2)
    return PriceQuote(
        region=region.code.value,
        currency=region.currency,
        annual=annual,
        price=price,
        discount=amount_off,
        total=total,
        formatted_total=format_price(total, region),
        price_id=settings.STRIPE_PRICE_ANNUAL if annual else settings.STRIPE_PRICE_MONTHLY,
    )


class CheckoutService:
    """Builds hosted checkout sessions for the PRO subscription"""

    def __init__(self, stripe: StripeService, profiles: ProfileRepository):
        self.stripe = stripe
        self.profiles = profiles

    async def create_checkout_session(
        self,
        user: AuthUser,
        price_id: str,
        code: Optional[str],
        return_url: str,
        request_origin: Optional[str] = None,
    ) -> str:
        """Return the hosted checkout URL"""
        base_url = validate_return_url(
            return_url,
            request_origin,
            settings.CHECKOUT_ALLOWED_ORIGINS,
            settings.CHECKOUT_TRUSTED_DOMAIN_SUFFIX,
        )
        plan_type = plan_type_for(price_id)
        if not user.email:
            raise InputValidationError("Account has no e-mail address")

        customer_id = await self.stripe.find_or_create_customer(user.email, user.id)
        await self.profiles.update_by_user(user.id, {"stripe_customer_id": customer_id})

        params: Dict[str, Any] = {
            "customer": customer_id,
            "client_reference_id": user.id,
            "payment_method_types": ["card"],
            "line_items": [{"price": price_id, "quantity": 1}],
            "mode": "subscription",
            "success_url": f"{base_url}/dashboard?success=true",
            "cancel_url": f"{base_url}/pricing?canceled=true",
            "metadata": {"plan_type": plan_type},
        }

        discount = await resolve_stripe_discount(self.stripe, code)
        if discount is not None:
            params["discounts"] = [discount.as_session_discount()]
            params["metadata"]["code"] = discount.code
            logger.info(f"Applied {discount.reference} {discount.id}", extra={"user_id": user.id})
        else:
            params["allow_promotion_codes"] = True
            if code and code.strip():
                params["metadata"]["code"] = code.strip().upper()

        session = await self.stripe.create_checkout_session(params)
        url = session.get("url")
        if not url:
            raise UpstreamServiceError("Checkout session has no URL", service="stripe")
        return url
