import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO", stripe_level: str = "WARNING") -> None:
    """Configure root logging for the service."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # The Stripe SDK logs every request at INFO.
    logging.getLogger("stripe").setLevel(stripe_level)
