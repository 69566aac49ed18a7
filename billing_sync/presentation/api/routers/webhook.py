"""Stripe webhook endpoint."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ....core.dependencies import get_event_verifier, get_webhook_service
from ....domain.ports.billing import InvalidSignatureError
from ....services.event_verifier import EventVerifier
from ....services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["Stripe Webhook"])


@router.post("/stripe", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    verifier: EventVerifier = Depends(get_event_verifier),
    webhook_service: WebhookService = Depends(get_webhook_service),
) -> Any:
    """Verify and dispatch a Stripe event.

    A 500 response leaves the event unacknowledged so Stripe redelivers it later.
    """
    # Signatures are computed over the raw body; it must not be parsed before verification.
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        event = verifier.verify(payload, signature)
    except InvalidSignatureError as exc:
        logger.warning("Webhook verification failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": f"Webhook Error: {exc}"},
        )

    try:
        await run_in_threadpool(webhook_service.dispatch, event)
    except Exception:
        logger.exception("Error processing webhook %s (%s)", event.id, event.type)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to process webhook"},
        )

    result: Dict[str, Any] = {"received": True}
    return result
