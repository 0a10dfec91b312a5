# backend/app/api/v1/admin.py
from fastapi import APIRouter, Depends

from app.api.dependencies import get_profile_repository, require_admin
from app.core.constants import SubscriptionStatus
from app.core.context import RequestContext
from app.core.logging import logger
from app.db.repositories.profile_repository import ProfileRepository
from app.schemas.user import ToggleProResponse

router = APIRouter()


@router.post("/toggle-admin-pro", response_model=ToggleProResponse)
async def toggle_admin_pro(
    ctx: RequestContext = Depends(require_admin),
    profiles: ProfileRepository = Depends(get_profile_repository),
):
    """Flip the admin's own subscription status (testing aid)"""
    profile = await profiles.get_by_user(ctx.user_id)

    if profile.subscription_status == SubscriptionStatus.ACTIVE.value:
        new_status = SubscriptionStatus.INACTIVE
    else:
        new_status = SubscriptionStatus.ACTIVE

    await profiles.update_by_user(ctx.user_id, {
        "subscription_status": new_status.value,
        "subscription_expires_at": None,
    })
    logger.info(f"Admin toggled PRO to {new_status.value}", extra={"user_id": ctx.user_id})

    message_key = "admin.pro_on" if new_status == SubscriptionStatus.ACTIVE else "admin.pro_off"
    return ToggleProResponse(success=True, new_status=new_status, message=ctx.translator(message_key))
