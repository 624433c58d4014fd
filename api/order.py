from fastapi import APIRouter, HTTPException, Query, Path, Body, Depends
from models.order import LocalOrder, OrderStatusUpdate, OrderTracking, RefundRequest, FulfillmentStatus
from models.query import QueryFilter
from managers.auth_manager import JWTPayload, requires_scope
from managers.paypal_manager import PayPalClient
from repository import order as order_repo
from utils.errors import PaymentError, PersistenceError, CheckoutStateError
from api.payment import get_paypal_client
from typing import Any, Dict, List, Optional
import logging
import uuid

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/orders", response_model=List[LocalOrder], tags=["orders"])
def list_orders(
    limit: int = Query(50, description="Maximum number of orders to return"),
    email: Optional[str] = Query(None, description="Filter by customer email"),
    status: Optional[FulfillmentStatus] = Query(None, description="Filter by fulfillment status"),
    needs_review: Optional[bool] = Query(None, description="Only orders flagged for manual review"),
    token_data: JWTPayload = Depends(requires_scope("orders.read")),
):
    """注文情報一覧を取得する"""
    qf = QueryFilter()
    qf.add_filter("customer_email eq @customer_email", {"customer_email": email})
    qf.add_filter("status eq @status", {"status": status})
    qf.add_filter("needs_review eq @needs_review", {"needs_review": needs_review})
    try:
        return order_repo.query_orders(qf, limit)
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/orders/tracking/{tracking_number}", response_model=OrderTracking, tags=["orders"])
def track_order(tracking_number: str = Path(..., description="Carrier tracking number")):
    """追跡番号から配送状況を取得する（認証不要）"""
    try:
        order = order_repo.find_order_by_tracking(tracking_number)
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))
    if order is None:
        raise HTTPException(status_code=404, detail=f"追跡番号 {tracking_number} の注文が見つかりません")
    return OrderTracking.from_order(order)


@router.get("/orders/{order_id}", response_model=LocalOrder, tags=["orders"])
def get_order(
    order_id: uuid.UUID = Path(..., description="The ID of the order to retrieve"),
    token_data: JWTPayload = Depends(requires_scope("orders.read")),
):
    """注文情報を取得する"""
    try:
        return order_repo.get_order(str(order_id))
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.put("/orders/{order_id}/status", response_model=LocalOrder, tags=["orders"])
def update_order_status(
    order_id: uuid.UUID = Path(..., description="The ID of the order to update"),
    update: OrderStatusUpdate = Body(...),
    token_data: JWTPayload = Depends(requires_scope("orders.admin")),
):
    """配送ステータスを更新する"""
    try:
        order = order_repo.update_order_status(str(order_id), update.status, update.tracking_number)
        logger.info("Order %s status -> %s by %s", order_id, update.status, token_data.get("sub"))
        return order
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CheckoutStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/orders/{order_id}/refund", tags=["orders"])
def refund_order(
    order_id: uuid.UUID = Path(..., description="The ID of the order to refund"),
    refund: RefundRequest = Body(RefundRequest()),
    token_data: JWTPayload = Depends(requires_scope("orders.admin")),
    client: PayPalClient = Depends(get_paypal_client),
) -> Dict[str, Any]:
    """
    キャプチャを返金する

    支払いステータスはPAYMENT.CAPTURE.REFUNDEDのWebhookで更新される。
    """
    try:
        order = order_repo.get_order(str(order_id))
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))

    if not order.capture_id or order.payment_status != 'paid':
        raise HTTPException(status_code=409, detail=f"注文 {order_id} は返金できる状態ではありません")

    try:
        result = client.refund_capture(order.capture_id, refund.amount, order.currency_code)
    except PaymentError as e:
        logger.error("Refund failed for order %s: %s", order_id, e)
        raise HTTPException(status_code=502, detail=str(e))

    logger.info("Refund requested for order %s by %s: %s", order_id, token_data.get("sub"), result.get("id"))
    return {"order_id": str(order.id), "refund_id": result.get("id"), "status": result.get("status")}
