from models.order import LocalOrder, FulfillmentStatus, PaymentStatus, ORDER_CONTENT_TYPE
from models.query import QueryFilter
from repository import content as content_repo
from utils.errors import CheckoutStateError
from typing import Any, Dict, List, Optional
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


def query_orders(
        query_filter: QueryFilter,
        limit: int = 50,
    ) -> List[LocalOrder]:
    records = content_repo.query_contents(ORDER_CONTENT_TYPE, query_filter, limit)
    return [LocalOrder.from_content(r.content) for r in records]


def get_order(order_id: str) -> LocalOrder:
    """注文情報を取得する"""
    record = content_repo.get_content(ORDER_CONTENT_TYPE, str(order_id))
    return LocalOrder.from_content(record.content)


def find_order_by_paypal_id(paypal_order_id: str) -> Optional[LocalOrder]:
    """PayPal注文IDに紐づく注文を探す。なければNone"""
    qf = QueryFilter()
    qf.add_eq("paypal_order_id", paypal_order_id)
    orders = query_orders(qf, limit=1)
    return orders[0] if orders else None


def find_order_by_tracking(tracking_number: str) -> Optional[LocalOrder]:
    qf = QueryFilter()
    qf.add_eq("tracking_number", tracking_number)
    orders = query_orders(qf, limit=1)
    return orders[0] if orders else None


def create_order(order: LocalOrder) -> bool:
    """新しい注文を作成する。同じIDの注文が既にあればFalse"""
    order.update_timestamp('create')
    return content_repo.create_content(ORDER_CONTENT_TYPE, order.to_content())


def update_order_status(order_id: str, status: FulfillmentStatus, tracking_number: Optional[str] = None) -> LocalOrder:
    """
    配送ステータスを更新する（管理画面用）

    Delivered / Cancelled になった注文は変更できない。
    """
    def mutate(content: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        order = LocalOrder.from_content(content)
        if order.status == status and (tracking_number is None or order.tracking_number == tracking_number):
            return None
        if not order.can_transition(status):
            raise CheckoutStateError(f"注文ステータスを {order.status} から {status} に変更できません")
        order.status = status
        if tracking_number is not None:
            order.tracking_number = tracking_number
        order.update_timestamp('update')
        return order.to_content()

    record = content_repo.update_content_atomic(ORDER_CONTENT_TYPE, str(order_id), mutate)
    return LocalOrder.from_content(record.content)


def apply_payment_event(
        order_id: str,
        event_id: str,
        payment_status: PaymentStatus,
        needs_review: bool = False,
        capture_id: Optional[str] = None,
    ) -> bool:
    """
    Webhookイベントを注文の支払いステータスに反映する

    同じイベントIDが既に反映済みなら何もしない。変更した場合True。
    """
    applied = {"changed": False}

    def mutate(content: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        order = LocalOrder.from_content(content)
        if event_id in order.applied_event_ids:
            return None
        order.applied_event_ids.append(event_id)
        order.payment_status = payment_status
        order.needs_review = order.needs_review or needs_review
        if capture_id and not order.capture_id:
            order.capture_id = capture_id
        order.updated_at = datetime.now()
        applied["changed"] = True
        return order.to_content()

    content_repo.update_content_atomic(ORDER_CONTENT_TYPE, str(order_id), mutate)
    if applied["changed"]:
        logger.info("Order %s payment_status -> %s (event %s)", order_id, payment_status, event_id)
    return applied["changed"]


def delete_order(order_id: str) -> bool:
    return content_repo.delete_content(ORDER_CONTENT_TYPE, str(order_id))
