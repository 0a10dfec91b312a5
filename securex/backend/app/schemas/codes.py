# backend/app/schemas/codes.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional
from datetime import datetime
from enum import Enum

from app.core.constants import CodeValidationError
from app.schemas.billing import DiscountDescriptor


class DurationUnit(str, Enum):
    DAYS = "DAYS"
    MONTHS = "MONTHS"
    YEARS = "YEARS"


class PlanDuration(BaseModel):
    unit: DurationUnit
    value: int


class RegistryCode(BaseModel):
    """Code record as returned by the external registry"""
    model_config = ConfigDict(extra="ignore")

    code: str
    type: int
    used: bool = False
    discount: Optional[DiscountDescriptor] = None
    duration: Optional[PlanDuration] = None


class CodeRequest(BaseModel):
    code: Optional[str] = None


class CodeValidationResult(BaseModel):
    valid: bool
    code: Optional[str] = None
    discount: Optional[DiscountDescriptor] = None
    duration: Optional[PlanDuration] = None
    promo_id: Optional[str] = Field(None, serialization_alias="promoId")
    is_coupon: Optional[bool] = Field(None, serialization_alias="isCoupon")
    error: Optional[CodeValidationError] = None
    message: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True, by_alias=True)


class RedeemResponse(BaseModel):
    valid: bool
    code: str
    duration: PlanDuration
    expires_at: datetime
    message: str
