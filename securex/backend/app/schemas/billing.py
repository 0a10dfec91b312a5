# backend/app/schemas/billing.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional

from app.core.constants import DiscountKind

_KIND_ALIASES = {
    "percent": DiscountKind.PERCENTAGE,
    "percentage": DiscountKind.PERCENTAGE,
    "fixed": DiscountKind.FIXED,
    "amount": DiscountKind.FIXED,
}


class DiscountDescriptor(BaseModel):
    kind: DiscountKind
    value: float = Field(..., ge=0)

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v):
        if isinstance(v, str):
            kind = _KIND_ALIASES.get(v.strip().lower())
            if kind is None:
                raise ValueError(f"Unknown discount kind: {v}")
            return kind
        return v


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    price_id: str = Field(..., alias="priceId", min_length=1)
    code: Optional[str] = None
    return_url: str = Field(..., alias="returnUrl", min_length=1)


class CheckoutResponse(BaseModel):
    url: str


class Invoice(BaseModel):
    id: str
    number: Optional[str] = None
    amount: float
    currency: str
    status: Optional[str] = None
    created: Optional[int] = None
    invoice_pdf: Optional[str] = None
    hosted_invoice_url: Optional[str] = None
    period_start: Optional[int] = None
    period_end: Optional[int] = None


class InvoiceList(BaseModel):
    invoices: List[Invoice]


class PriceQuote(BaseModel):
    region: str
    currency: str
    annual: bool
    price: float
    discount: float = 0.0
    total: float
    formatted_total: str
    price_id: str
