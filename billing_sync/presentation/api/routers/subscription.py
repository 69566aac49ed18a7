"""API router for the caller's own subscription."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from ....core.dependencies import get_subscription_service
from ....domain.models import User
from ....domain.ports.billing import BillingProviderError
from ....services.subscription_service import SubscriptionRejected, SubscriptionService
from ..dependencies import get_current_user
from ..schemas.subscription_schemas import (
    CheckoutRequest,
    CheckoutResponse,
    InvoiceListResponse,
    MessageResponse,
    RejectionResponse,
    SubscriptionStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/user/subscription", tags=["subscription"])

_REJECTION = {status.HTTP_400_BAD_REQUEST: {"model": RejectionResponse}}


def _rejected(exc: SubscriptionRejected) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=exc.to_dict())


def _provider_failure(action: str, exc: BillingProviderError) -> JSONResponse:
    logger.error("Billing provider failure while trying to %s: %s", action, exc)
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"message": f"Failed to {action}. Please try again later."},
    )


@router.get("/status", response_model=SubscriptionStatusResponse)
def get_subscription_status(
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Get the caller's subscription snapshot."""
    return {"subscription": subscription_service.get_status(user)}


@router.post("/checkout", response_model=CheckoutResponse, responses=_REJECTION)
def create_checkout_session(
    payload: Optional[CheckoutRequest] = None,
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Create a checkout session for the premium plan."""
    platform = payload.platform if payload else "web"
    try:
        url = subscription_service.create_checkout_session(user, platform=platform)
    except SubscriptionRejected as exc:
        return _rejected(exc)
    except BillingProviderError as exc:
        return _provider_failure("create checkout session", exc)
    return CheckoutResponse(url=url)


@router.post("/cancel", response_model=MessageResponse, responses=_REJECTION)
def cancel_subscription(
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Cancel the premium subscription at the end of the billing period."""
    try:
        message = subscription_service.cancel_subscription(user)
    except SubscriptionRejected as exc:
        return _rejected(exc)
    except BillingProviderError as exc:
        return _provider_failure("cancel subscription", exc)
    return MessageResponse(message=message)


@router.post("/resume", response_model=MessageResponse, responses=_REJECTION)
def resume_subscription(
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Resume a subscription that is set to cancel at period end."""
    try:
        message = subscription_service.resume_subscription(user)
    except SubscriptionRejected as exc:
        return _rejected(exc)
    except BillingProviderError as exc:
        return _provider_failure("resume subscription", exc)
    return MessageResponse(message=message)


@router.get("/invoices", response_model=InvoiceListResponse, responses=_REJECTION)
def list_invoices(
    limit: Optional[int] = Query(None, ge=1, le=100),
    starting_after: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """List the caller's invoices, newest first."""
    try:
        return subscription_service.list_invoices(user, limit=limit, starting_after=starting_after)
    except SubscriptionRejected as exc:
        return _rejected(exc)
    except BillingProviderError as exc:
        return _provider_failure("list invoices", exc)
