# backend/app/api/v1/billing.py
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials

from app.api.dependencies import (
    get_billing_event_handler,
    get_checkout_service,
    get_profile,
    get_public_context,
    get_stripe_service,
    resolve_user,
    security,
)
from app.core.constants import CodeValidationError, RegistryCodeType
from app.core.context import RequestContext
from app.core.exceptions import AuthenticationError, SecureXError, WebhookSignatureError
from app.core.logging import logger
from app.db.backend_client import BackendClient
from app.db.database import get_backend_client
from app.schemas.billing import CheckoutRequest, CheckoutResponse, InvoiceList
from app.schemas.codes import CodeRequest
from app.schemas.user import Profile
from app.services.billing_service import BillingEventHandler, list_invoices as fetch_invoices
from app.services.checkout_service import CheckoutService, validate_stripe_promo as resolve_promo
from app.services.code_registry import error_message_key
from app.services.stripe_service import StripeService

router = APIRouter()


@router.post("/create-checkout", response_model=CheckoutResponse)
async def create_checkout(
    payload: CheckoutRequest,
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    client: BackendClient = Depends(get_backend_client),
    checkout: CheckoutService = Depends(get_checkout_service),
    ctx: RequestContext = Depends(get_public_context),
):
    """Create a hosted checkout session for the PRO subscription"""
    try:
        user = await resolve_user(client, credentials.credentials if credentials else None)
        if user is None:
            raise AuthenticationError("Unauthorized")
        url = await checkout.create_checkout_session(
            user,
            payload.price_id,
            payload.code,
            payload.return_url,
            request.headers.get("origin"),
        )
    except SecureXError as e:
        logger.error(f"Checkout creation failed: {str(e)}")
        return JSONResponse(
            status_code=e.status_code,
            content={"error": ctx.translator(e.message_key, **e.params)},
        )
    return CheckoutResponse(url=url)


@router.api_route("/list-invoices", methods=["GET", "POST"], response_model=InvoiceList)
async def list_invoices(
    profile: Profile = Depends(get_profile),
    stripe: StripeService = Depends(get_stripe_service),
):
    """Most recent invoices of the caller's payment customer"""
    invoices = await fetch_invoices(stripe, profile.stripe_customer_id)
    return InvoiceList(invoices=invoices)


@router.post("/validate-stripe-promo")
async def validate_stripe_promo(
    payload: CodeRequest,
    stripe: StripeService = Depends(get_stripe_service),
    ctx: RequestContext = Depends(get_public_context),
):
    """Resolve a code against the payment provider's promotion codes and coupons"""
    result = await resolve_promo(stripe, payload.code)
    if result.valid:
        result.message = "ok"
        return result.to_response()

    result.message = ctx.translator(error_message_key(result.error, RegistryCodeType.DISCOUNT))
    status_code = (
        status.HTTP_502_BAD_GATEWAY
        if result.error == CodeValidationError.INTERNAL_ERROR
        else status.HTTP_200_OK
    )
    return JSONResponse(status_code=status_code, content=result.to_response())


@router.post("/stripe-webhook")
async def stripe_webhook(
    request: Request,
    stripe: StripeService = Depends(get_stripe_service),
    handler: BillingEventHandler = Depends(get_billing_event_handler),
):
    """Handle Stripe webhooks; nothing is processed unless the signature verifies"""
    body = await request.body()

    try:
        event = stripe.construct_event(body, request.headers.get("stripe-signature"))
    except WebhookSignatureError as e:
        logger.warning(f"Rejected Stripe webhook: {str(e)}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid signature"})

    await handler.handle(event)
    return {"received": True}
