import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


class Settings:
    """Centralised application configuration sourced from environment variables."""

    def __init__(self) -> None:
        load_dotenv()
        # Stripe
        self.stripe_secret_key = self._get("STRIPE_SECRET_KEY")
        self.stripe_webhook_secret = self._get("STRIPE_WEBHOOK_SECRET")
        self.stripe_premium_price_id = self._get("STRIPE_PREMIUM_PRICE_ID")
        self.webhook_tolerance_seconds = self._get_int("WEBHOOK_TOLERANCE_SECONDS", default=300)

        # Bearer tokens are issued by the account service; only verification happens here.
        self.auth_token_secret = os.getenv("AUTH_TOKEN_SECRET", "change-me")
        self.auth_token_algorithm = os.getenv("AUTH_TOKEN_ALGORITHM", "HS256")

        self.database_path = Path(os.getenv("DATABASE_PATH", "data/billing.db")).resolve()
        self.frontend_base_url = os.getenv("FRONTEND_URL", "http://localhost:3000")
        self.app_base_url = os.getenv("APP_URL") or self.frontend_base_url
        self.invoice_page_size = self._get_int("INVOICE_PAGE_SIZE", default=10)
        self.cors_allow_origins = self._get_list("CORS_ALLOW_ORIGINS", default=["*"])

        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.stripe_log_level = os.getenv("STRIPE_LOG_LEVEL", "WARNING").upper()

    @staticmethod
    def _get(key: str) -> str:
        value = os.getenv(key)
        if not value:
            raise RuntimeError(f"Missing required environment variable: {key}")
        return value

    @staticmethod
    def _get_int(key: str, default: Optional[int] = None) -> int:
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise RuntimeError(f"Missing required environment variable: {key}")
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise RuntimeError(f"Environment variable {key} must be an integer") from exc

    @staticmethod
    def _get_list(key: str, default: List[str]) -> List[str]:
        items = [item.strip() for item in os.getenv(key, "").split(",") if item.strip()]
        return items or list(default)
