# api/payment.py
from fastapi import APIRouter, HTTPException, Request, Depends
from models.payment import ClientTokenResponse
from managers.paypal_manager import PayPalClient
from utils.errors import PaymentError, ConfigurationError
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


def get_paypal_client(request: Request) -> PayPalClient:
    client = getattr(request.app.state, "paypal_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="PayPal not configured")
    return client


@router.post("/paypal-client-token", response_model=ClientTokenResponse, tags=["payment"])
def create_client_token(client: PayPalClient = Depends(get_paypal_client)):
    """埋め込み決済UI（Card Fields）用のクライアントトークンを発行する"""
    try:
        return ClientTokenResponse(clientToken=client.generate_client_token())

    except ConfigurationError as e:
        logger.error("[PayPal Token] Missing credentials: %s", e)
        raise HTTPException(status_code=500, detail="PayPal not configured")
    except PaymentError as e:
        logger.error("[PayPal Token] Error: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
