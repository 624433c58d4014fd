from pydantic import BaseModel
from typing import Literal, Optional
from decimal import Decimal
import os

PayPalMode = Literal['sandbox', 'live']

DEFAULT_API_BASE = {
    'sandbox': 'https://api-m.sandbox.paypal.com',
    'live': 'https://api-m.paypal.com',
}


def _env(key: str, mode: PayPalMode) -> Optional[str]:
    """PAYPAL_CLIENT_ID_SANDBOX のようなモード別の値を優先して読む"""
    value = os.getenv(f"{key}_{mode.upper()}")
    if value:
        return value
    return os.getenv(key) or None


class PayPalSettings(BaseModel):
    mode: PayPalMode = 'sandbox'
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    api_base: str = DEFAULT_API_BASE['sandbox']
    webhook_id: Optional[str] = None
    timeout_seconds: float = 15.0
    max_retries: int = 3
    brand_name: str = 'Pockimate'
    front_url: str = 'http://localhost:5173'

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @classmethod
    def from_env(cls) -> "PayPalSettings":
        mode: PayPalMode = 'live' if (os.getenv("PAYPAL_MODE") or '').lower() == 'live' else 'sandbox'
        return cls(
            mode=mode,
            client_id=_env("PAYPAL_CLIENT_ID", mode),
            client_secret=_env("PAYPAL_CLIENT_SECRET", mode),
            api_base=(_env("PAYPAL_API_BASE", mode) or DEFAULT_API_BASE[mode]).rstrip('/'),
            webhook_id=_env("PAYPAL_WEBHOOK_ID", mode),
            timeout_seconds=float(os.getenv("PAYPAL_TIMEOUT_SECONDS", "15")),
            max_retries=int(os.getenv("PAYPAL_MAX_RETRIES", "3")),
            brand_name=os.getenv("PAYPAL_BRAND_NAME", "Pockimate"),
            front_url=os.getenv("FRONT_URL", "http://localhost:5173").rstrip('/'),
        )


class ShopSettings(BaseModel):
    currency_code: str = 'EUR'
    standard_shipping: Decimal = Decimal("0.00")
    express_shipping: Decimal = Decimal("15.00")
    free_shipping_threshold: Optional[Decimal] = None

    @classmethod
    def from_env(cls) -> "ShopSettings":
        threshold = os.getenv("FREE_SHIPPING_THRESHOLD")
        return cls(
            currency_code=os.getenv("SHOP_CURRENCY", "EUR").upper(),
            standard_shipping=Decimal(os.getenv("STANDARD_SHIPPING_COST", "0.00")),
            express_shipping=Decimal(os.getenv("EXPRESS_SHIPPING_COST", "15.00")),
            free_shipping_threshold=Decimal(threshold) if threshold else None,
        )
