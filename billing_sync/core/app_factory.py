from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings
from .container import ApplicationContainer
from .logging import configure_logging
from ..application.services.auth_service import AuthService
from ..domain.ports.billing import BillingProvider
from ..infrastructure.persistence.sqlite import SQLitePersistence
from ..presentation.api.routers import subscription as subscription_router
from ..presentation.api.routers import webhook as webhook_router
from ..services.event_verifier import EventVerifier
from ..services.stripe_service import StripeBillingClient
from ..services.subscription_service import SubscriptionService
from ..services.webhook_service import WebhookService

logger = logging.getLogger(__name__)


def create_application(
    settings: Optional[Settings] = None,
    billing_provider: Optional[BillingProvider] = None,
) -> FastAPI:
    settings = settings or Settings()

    app = FastAPI(
        title="Subscription Billing Sync",
        lifespan=_create_lifespan(settings, billing_provider),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(subscription_router.router)
    app.include_router(webhook_router.router)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"ok": True}

    return app


def _create_lifespan(settings: Settings, billing_provider: Optional[BillingProvider]):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level, settings.stripe_log_level)
        persistence = SQLitePersistence(settings.database_path)
        provider = billing_provider or StripeBillingClient(
            settings.stripe_secret_key,
            webhook_tolerance=settings.webhook_tolerance_seconds,
        )
        auth_service = AuthService(
            persistence,
            secret_key=settings.auth_token_secret,
            algorithm=settings.auth_token_algorithm,
        )
        event_verifier = EventVerifier(provider, settings.stripe_webhook_secret)
        webhook_service = WebhookService(
            persistence,
            provider,
            premium_price_id=settings.stripe_premium_price_id,
        )
        subscription_service = SubscriptionService(
            persistence,
            provider,
            premium_price_id=settings.stripe_premium_price_id,
            frontend_url=settings.frontend_base_url,
            app_url=settings.app_base_url,
            invoice_page_size=settings.invoice_page_size,
        )

        app.state.container = ApplicationContainer(  # type: ignore[attr-defined]
            settings=settings,
            persistence=persistence,
            billing_provider=provider,
            auth_service=auth_service,
            event_verifier=event_verifier,
            webhook_service=webhook_service,
            subscription_service=subscription_service,
        )
        logger.info("Billing sync started with database %s", settings.database_path)

        try:
            yield
        finally:
            persistence.close()

    return lifespan
