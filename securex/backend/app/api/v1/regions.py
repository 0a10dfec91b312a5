# backend/app/api/v1/regions.py
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends

from app.api.dependencies import get_code_registry
from app.core.constants import RegistryCodeType
from app.core.regions import list_regions, resolve_region
from app.schemas.billing import PriceQuote
from app.services.checkout_service import quote_price
from app.services.code_registry import CodeRegistryClient, validate_code

router = APIRouter()


@router.get("/regions")
async def get_regions() -> List[Dict[str, Any]]:
    return [
        {
            "code": region.code.value,
            "name": region.name,
            "language": region.language,
            "currency": region.currency,
            "currency_symbol": region.currency_symbol,
            "price_multiplier": region.price_multiplier,
        }
        for region in list_regions()
    ]


@router.get("/billing/pricing", response_model=PriceQuote)
async def get_pricing(
    region: Optional[str] = None,
    annual: bool = False,
    code: Optional[str] = None,
    registry: CodeRegistryClient = Depends(get_code_registry),
):
    """PRO price for a region and period, with a valid discount code applied"""
    discount = None
    if code:
        result = await validate_code(registry, code, RegistryCodeType.DISCOUNT)
        if result.valid:
            discount = result.discount
    return quote_price(resolve_region(region), annual, discount)
