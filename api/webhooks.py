from fastapi import APIRouter, HTTPException, Request, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from managers.paypal_manager import PayPalClient
from models.webhook import WebhookResponse
from services.webhook import process_webhook
from utils.errors import PersistenceError
from api.payment import get_paypal_client
import json
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/paypal-webhook", response_model=WebhookResponse, tags=["webhooks"])
async def paypal_webhook(
    request: Request,
    client: PayPalClient = Depends(get_paypal_client),
):
    # 署名は受信したバイト列そのものに対して検証する
    payload = await request.body()

    verified = await run_in_threadpool(client.verify_webhook_signature, request.headers, payload)
    if not verified:
        logger.error("[PayPal Webhook] Invalid signature")
        return JSONResponse(status_code=401, content={"error": "Invalid webhook signature"})

    try:
        event = json.loads(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid payload: {e}")
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Invalid payload: expected a JSON object")

    try:
        return await run_in_threadpool(process_webhook, event)

    except PersistenceError as e:
        # ストア障害は一時的なので5xxを返してPayPalに再送させる
        logger.error("[PayPal Webhook] Store error while processing %s: %s", event.get("id"), e)
        raise HTTPException(status_code=500, detail="Internal server error")
    except Exception as e:
        # PayPalは2xx以外で再送するため、記録済みの処理エラーは200で返す
        logger.exception("[PayPal Webhook] Error processing webhook %s: %s", event.get("id"), e)
        return WebhookResponse(event_id=str(event.get("id", "")), event_type=str(event.get("event_type", "")))
