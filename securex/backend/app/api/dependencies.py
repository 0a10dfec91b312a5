# backend/app/api/dependencies.py
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional

from app.core.constants import UserRole
from app.core.context import RequestContext
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.logging import logger
from app.db.backend_client import BackendClient
from app.db.database import get_backend_client
from app.db.repositories.profile_repository import ProfileRepository
from app.db.repositories.role_repository import RoleRepository
from app.db.repositories.scan_repository import ScanRepository
from app.schemas.user import AuthUser, Profile
from app.services.analysis_service import AnalysisService, SecurityAnalyzer
from app.services.billing_service import BillingEventHandler
from app.services.checkout_service import CheckoutService
from app.services.code_registry import CodeRegistryClient
from app.services.notification_service import OpsNotifier
from app.services.realtime import ScanFeed, scan_feed
from app.services.scan_lifecycle import ScanLifecycleManager
from app.services.stripe_service import StripeService

security = HTTPBearer(auto_error=False)

REGION_HEADER = "X-Region"

_analyzer: Optional[SecurityAnalyzer] = None


def region_code_from_request(request: Request) -> Optional[str]:
    return request.headers.get(REGION_HEADER) or request.query_params.get("region")


# External services

def get_scan_feed() -> ScanFeed:
    return scan_feed


def get_security_analyzer() -> SecurityAnalyzer:
    global _analyzer
    if _analyzer is None:
        _analyzer = SecurityAnalyzer()
    return _analyzer


def get_stripe_service() -> StripeService:
    return StripeService()


def get_code_registry() -> CodeRegistryClient:
    return CodeRegistryClient()


def get_ops_notifier() -> OpsNotifier:
    return OpsNotifier()


# Repositories

def get_scan_repository(
    client: BackendClient = Depends(get_backend_client),
    feed: ScanFeed = Depends(get_scan_feed),
) -> ScanRepository:
    return ScanRepository(client, feed)


def get_profile_repository(client: BackendClient = Depends(get_backend_client)) -> ProfileRepository:
    return ProfileRepository(client)


def get_role_repository(client: BackendClient = Depends(get_backend_client)) -> RoleRepository:
    return RoleRepository(client)


# Services

def get_analysis_service(
    scans: ScanRepository = Depends(get_scan_repository),
    analyzer: SecurityAnalyzer = Depends(get_security_analyzer),
) -> AnalysisService:
    return AnalysisService(scans, analyzer)


def get_lifecycle_manager(
    scans: ScanRepository = Depends(get_scan_repository),
    profiles: ProfileRepository = Depends(get_profile_repository),
    analysis: AnalysisService = Depends(get_analysis_service),
) -> ScanLifecycleManager:
    return ScanLifecycleManager(scans, profiles, analysis)


def get_billing_event_handler(
    profiles: ProfileRepository = Depends(get_profile_repository),
    notifier: OpsNotifier = Depends(get_ops_notifier),
    registry: CodeRegistryClient = Depends(get_code_registry),
) -> BillingEventHandler:
    return BillingEventHandler(profiles, notifier, registry)


def get_checkout_service(
    stripe: StripeService = Depends(get_stripe_service),
    profiles: ProfileRepository = Depends(get_profile_repository),
) -> CheckoutService:
    return CheckoutService(stripe, profiles)


# Identity

async def resolve_user(client: BackendClient, access_token: Optional[str]) -> Optional[AuthUser]:
    """Look up the account behind an access token; None when it is missing or rejected"""
    if not access_token:
        return None
    payload = await client.get_user(access_token)
    if not payload or not payload.get("id"):
        return None
    return AuthUser.model_validate(payload)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    client: BackendClient = Depends(get_backend_client),
) -> AuthUser:
    """Get current authenticated user"""
    if not credentials:
        raise AuthenticationError("Authentication required")

    user = await resolve_user(client, credentials.credentials)
    if user is None:
        logger.info("Rejected access token")
        raise AuthenticationError("Invalid token")
    return user


async def get_request_context(
    request: Request,
    user: AuthUser = Depends(get_current_user),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> RequestContext:
    """Authenticated request context"""
    return RequestContext.build(user, credentials.credentials, region_code_from_request(request))


def get_public_context(request: Request) -> RequestContext:
    """Context for unauthenticated endpoints (language only)"""
    return RequestContext.build(None, None, region_code_from_request(request))


async def get_profile(
    ctx: RequestContext = Depends(get_request_context),
    profiles: ProfileRepository = Depends(get_profile_repository),
) -> Profile:
    return await profiles.get_by_user(ctx.user_id)


async def require_admin(
    ctx: RequestContext = Depends(get_request_context),
    roles: RoleRepository = Depends(get_role_repository),
) -> RequestContext:
    """Dependency to check the admin role"""
    if not await roles.has_role(ctx.user_id, UserRole.ADMIN):
        logger.warning("Admin role required", extra={"user_id": ctx.user_id})
        raise AuthorizationError(message_key="admin.required")
    return ctx
