"""Typed views of the billing provider objects the service consumes.

Provider payloads are decoded into these models once, at the client or webhook boundary.
Unknown fields are ignored; timestamps that are not plain numbers decode to ``None`` so the
reconciliation layer can apply its own validity rules.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator


def _lenient_timestamp(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _expandable_id(value: Any) -> Optional[str]:
    # Expanded references arrive as full objects instead of bare IDs.
    if isinstance(value, dict):
        return value.get("id")
    return value


Timestamp = Annotated[Optional[float], BeforeValidator(_lenient_timestamp)]
ExpandableId = Annotated[Optional[str], BeforeValidator(_expandable_id)]


class ProviderModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ProviderPrice(ProviderModel):
    id: Optional[str] = None


class ProviderSubscriptionItem(ProviderModel):
    id: Optional[str] = None
    price: Optional[ProviderPrice] = None
    current_period_start: Timestamp = None
    current_period_end: Timestamp = None


class ProviderItemList(ProviderModel):
    data: List[ProviderSubscriptionItem] = Field(default_factory=list)


class ProviderSubscription(ProviderModel):
    """Subscription object as reported by the provider."""

    id: str
    customer: ExpandableId = None
    status: str
    cancel_at_period_end: bool = False
    current_period_start: Timestamp = None
    current_period_end: Timestamp = None
    canceled_at: Timestamp = None
    items: ProviderItemList = Field(default_factory=ProviderItemList)
    metadata: Dict[str, str] = Field(default_factory=dict)

    @field_validator("cancel_at_period_end", mode="before")
    @classmethod
    def _none_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @property
    def first_item(self) -> Optional[ProviderSubscriptionItem]:
        return self.items.data[0] if self.items.data else None

    @property
    def first_price_id(self) -> Optional[str]:
        item = self.first_item
        if item is None or item.price is None:
            return None
        return item.price.id

    @property
    def period_start(self) -> Optional[float]:
        """Period start, falling back to the first item for item-level billing periods."""
        if self.current_period_start is not None:
            return self.current_period_start
        item = self.first_item
        return item.current_period_start if item else None

    @property
    def period_end(self) -> Optional[float]:
        if self.current_period_end is not None:
            return self.current_period_end
        item = self.first_item
        return item.current_period_end if item else None


class ProviderInvoice(ProviderModel):
    id: Optional[str] = None
    customer: ExpandableId = None
    subscription: ExpandableId = None
    amount_paid: Optional[int] = 0
    currency: Optional[str] = None
    status: Optional[str] = None
    created: Timestamp = None
    invoice_pdf: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _subscription_from_parent(cls, data: Any) -> Any:
        # Newer API versions report the subscription under parent.subscription_details.
        if isinstance(data, dict) and not data.get("subscription"):
            parent = data.get("parent") or {}
            details = parent.get("subscription_details") or {}
            if details.get("subscription"):
                data = {**data, "subscription": details["subscription"]}
        return data


class InvoicePage(ProviderModel):
    data: List[ProviderInvoice] = Field(default_factory=list)
    has_more: bool = False


class ProviderCustomer(ProviderModel):
    id: str
    email: Optional[str] = None


class CheckoutSession(ProviderModel):
    id: str
    url: Optional[str] = None
    customer: ExpandableId = None
    subscription: ExpandableId = None
    metadata: Dict[str, str] = Field(default_factory=dict)


EventPayload = Union[CheckoutSession, ProviderSubscription, ProviderInvoice]


class ProviderEvent(ProviderModel):
    """Verified webhook event: a type tag plus the decoded object, when the type carries one."""

    id: str
    type: str
    created: Timestamp = None
    payload: Optional[EventPayload] = None

    @property
    def customer_id(self) -> Optional[str]:
        return getattr(self.payload, "customer", None)
