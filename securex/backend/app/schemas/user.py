# backend/app/schemas/user.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional
from datetime import datetime, timezone

from app.core.constants import PLAN_LIMITS, SubscriptionStatus


class AuthUser(BaseModel):
    """Identity resolved from the caller's access token"""
    model_config = ConfigDict(extra="ignore")

    id: str
    email: Optional[str] = None


class Profile(BaseModel):
    """Row of the `profiles` table"""
    model_config = ConfigDict(extra="ignore")

    user_id: str
    subscription_status: Optional[str] = SubscriptionStatus.INACTIVE.value
    scans_this_month: Optional[int] = 0
    stripe_customer_id: Optional[str] = None
    subscription_expires_at: Optional[datetime] = None

    @property
    def is_pro(self) -> bool:
        if self.subscription_status != SubscriptionStatus.ACTIVE.value:
            return False
        if self.subscription_expires_at is None:
            return True
        expires_at = self.subscription_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at > datetime.now(timezone.utc)

    @property
    def limits(self) -> Dict[str, Any]:
        return PLAN_LIMITS["pro" if self.is_pro else "free"]

    @property
    def scan_count(self) -> int:
        return self.scans_this_month or 0


class ToggleProResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    new_status: SubscriptionStatus = Field(..., serialization_alias="newStatus")
    message: str
