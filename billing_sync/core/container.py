from dataclasses import dataclass

from ..application.services.auth_service import AuthService
from ..domain.ports.billing import BillingProvider
from ..domain.ports.persistence import PersistenceGateway
from ..services.event_verifier import EventVerifier
from ..services.subscription_service import SubscriptionService
from ..services.webhook_service import WebhookService
from .config import Settings


@dataclass(slots=True)
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle."""

    settings: Settings
    persistence: PersistenceGateway
    billing_provider: BillingProvider
    auth_service: AuthService
    event_verifier: EventVerifier
    webhook_service: WebhookService
    subscription_service: SubscriptionService
