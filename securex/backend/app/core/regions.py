# backend/app/core/regions.py
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class Region(str, Enum):
    BR = "BR"
    US = "US"
    DE = "DE"
    FR = "FR"
    ES = "ES"
    IT = "IT"


@dataclass(frozen=True)
class RegionConfig:
    code: Region
    name: str
    language: str
    currency: str
    price_multiplier: float
    currency_symbol: str


REGIONS: Dict[Region, RegionConfig] = {
    Region.BR: RegionConfig(Region.BR, "Brasil", "pt", "BRL", 24.90, "R$"),
    Region.US: RegionConfig(Region.US, "USA", "en", "USD", 9.99, "$"),
    Region.DE: RegionConfig(Region.DE, "Deutschland", "de", "EUR", 9.99, "€"),
    Region.FR: RegionConfig(Region.FR, "France", "fr", "EUR", 9.99, "€"),
    Region.ES: RegionConfig(Region.ES, "España", "es", "EUR", 9.99, "€"),
    Region.IT: RegionConfig(Region.IT, "Italia", "it", "EUR", 9.99, "€"),
}

DEFAULT_REGION = Region.BR

ANNUAL_DISCOUNT = 0.10


def resolve_region(code: Optional[str]) -> RegionConfig:
    """Look up a region by code, falling back to the default region"""
    if code:
        try:
            return REGIONS[Region(code.strip().upper())]
        except ValueError:
            pass
    return REGIONS[DEFAULT_REGION]


def list_regions() -> List[RegionConfig]:
    return list(REGIONS.values())


def calculate_price(base_price: float, region: RegionConfig, annual: bool = False) -> float:
    """Monthly price is base * multiplier; annual is twelve months less the annual discount"""
    price = base_price * region.price_multiplier
    if annual:
        price = price * 12 * (1 - ANNUAL_DISCOUNT)
    return round(price, 2)


def format_price(amount: float, region: RegionConfig) -> str:
    return f"{region.currency_symbol} {amount:,.2f}"
