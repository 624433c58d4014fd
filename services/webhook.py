from models.webhook import (
    WebhookEvent,
    WebhookEventRecord,
    WebhookResponse,
    CaptureCompleted,
    CaptureDenied,
    CaptureRefunded,
    CapturePending,
    CaptureReversed,
    CaptureEvent,
    OrderApproved,
    OrderCompleted,
    UnrecognizedEvent,
    parse_webhook_event,
)
from repository import order as order_repo
from repository import webhook_event as webhook_repo
from typing import Any, Dict, Tuple, Type
import logging

logger = logging.getLogger(__name__)

# イベント型 -> (支払いステータス, 要確認フラグ)
PAYMENT_STATUS_BY_EVENT: Dict[Type[CaptureEvent], Tuple[str, bool]] = {
    CaptureCompleted: ('paid', False),
    CaptureDenied: ('payment_failed', False),
    CaptureRefunded: ('refunded', False),
    CaptureReversed: ('reversed', True),
}

# 状態を変えずにログだけ残すイベント
INFORMATIONAL_EVENTS = (CapturePending, OrderApproved, OrderCompleted)


def apply_event(event: WebhookEvent) -> str:
    """イベント種別ごとに注文の支払いステータスを更新し、結果を返す"""
    logger.info("[PayPal Webhook] Processing event: %s (%s)", event.event_type, event.id)

    if isinstance(event, UnrecognizedEvent):
        logger.info("[PayPal Webhook] Unhandled event type: %s", event.event_type)
        return "ignored"

    if isinstance(event, INFORMATIONAL_EVENTS):
        logger.info("[PayPal Webhook] %s for order %s", event.event_type, event.paypal_order_id)
        return "logged"

    payment_status, needs_review = PAYMENT_STATUS_BY_EVENT[type(event)]
    paypal_order_id = event.paypal_order_id
    if not paypal_order_id:
        logger.warning("[PayPal Webhook] %s has no order reference", event.id)
        return "no_order_reference"

    order = order_repo.find_order_by_paypal_id(paypal_order_id)
    if order is None:
        # ローカル注文がない場合は記録だけして注文は作らない
        logger.warning("[PayPal Webhook] No local order for PayPal order %s", paypal_order_id)
        return "no_local_order"

    if needs_review:
        logger.warning("[PayPal Webhook] Payment reversed, order %s flagged for manual review", order.id)

    changed = order_repo.apply_payment_event(
        str(order.id),
        event.id,
        payment_status,
        needs_review=needs_review,
        capture_id=event.capture_id if isinstance(event, CaptureCompleted) else None,
    )
    return f"payment_status:{payment_status}" if changed else "already_applied"


def process_webhook(payload: Dict[str, Any]) -> WebhookResponse:
    """
    署名検証済みのWebhookイベントを処理する

    イベントIDを冪等性キーとして記録し、反映済みのイベントは再適用しない。
    """
    event = parse_webhook_event(payload)
    response = WebhookResponse(event_id=event.id, event_type=event.event_type)

    if not webhook_repo.record_event(WebhookEventRecord.from_event(event)):
        existing = webhook_repo.get_event(event.id)
        if existing.applied:
            logger.info("[PayPal Webhook] Duplicate event %s ignored", event.id)
            return response
        logger.info("[PayPal Webhook] Re-processing unapplied event %s", event.id)

    outcome = apply_event(event)
    webhook_repo.mark_applied(event.id, outcome)
    return response
