from fastapi import Depends, Request

from .container import ApplicationContainer


def get_container(request: Request) -> ApplicationContainer:
    container = getattr(request.app.state, "container", None)
    if not container:
        raise RuntimeError("Application container not initialised.")
    return container


def get_auth_service(container: ApplicationContainer = Depends(get_container)):
    return container.auth_service


def get_event_verifier(container: ApplicationContainer = Depends(get_container)):
    return container.event_verifier


def get_webhook_service(container: ApplicationContainer = Depends(get_container)):
    return container.webhook_service


def get_subscription_service(container: ApplicationContainer = Depends(get_container)):
    return container.subscription_service
