"""Pydantic schemas for subscription API endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    """Request schema for creating a checkout session."""

    platform: Literal["web", "ios", "android"] = Field(
        default="web", description="Client platform, selects the redirect URLs"
    )


class CheckoutResponse(BaseModel):
    url: str


class MessageResponse(BaseModel):
    message: str


class RejectionResponse(BaseModel):
    """Body of a refused subscription action."""

    message: str
    subscription_status: Optional[str] = None
    manage_url: Optional[str] = None


class SubscriptionStatusResponse(BaseModel):
    subscription: Dict[str, Any]


class InvoiceResponse(BaseModel):
    id: Optional[str]
    amount_paid: float = Field(..., description="Amount in major currency units")
    currency: Optional[str] = None
    status: Optional[str] = None
    created: Optional[datetime] = None
    invoice_pdf: Optional[str] = None


class InvoiceListResponse(BaseModel):
    invoices: List[InvoiceResponse]
    has_more: bool = False
