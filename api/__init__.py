import fastapi
import logging
import os
from typing import Optional
from fastapi.middleware.cors import CORSMiddleware
from models.settings import PayPalSettings, ShopSettings
from managers.paypal_manager import PayPalClient
from . import connection, checkout, order, payment, rates, webhooks

# ログ設定
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[PayPalSettings] = None, shop: Optional[ShopSettings] = None) -> fastapi.FastAPI:
    settings = settings or PayPalSettings.from_env()

    app = fastapi.FastAPI(title="Pockimate Payment API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin for origin in {"http://localhost:5173", "http://localhost:4173", settings.front_url,
                                             os.getenv("FRONT_URL")} if origin],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS", "PUT"],
        allow_headers=["*"],
    )
    app.state.paypal_settings = settings
    app.state.shop = shop or ShopSettings.from_env()
    app.state.paypal_client = None

    app.include_router(connection.router)
    app.include_router(order.router)
    app.include_router(rates.router)

    # 決済設定がない場合は決済系のルートを公開しない
    if settings.is_configured():
        app.state.paypal_client = PayPalClient(settings)
        app.include_router(payment.router)
        app.include_router(checkout.router)
        app.include_router(webhooks.router)
    else:
        logger.error("PayPal is not configured (PAYPAL_CLIENT_ID / PAYPAL_CLIENT_SECRET, mode=%s); payment routes are disabled",
                     settings.mode)

    return app


app = create_app()
