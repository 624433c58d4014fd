from models.checkout import Cart, CheckoutSession, CART_CONTENT_TYPE, CHECKOUT_CONTENT_TYPE
from models.query import QueryFilter
from repository import content as content_repo
from typing import Optional
from datetime import datetime


def get_cart(cart_id: str) -> Cart:
    record = content_repo.get_content(CART_CONTENT_TYPE, str(cart_id))
    return Cart.from_content(record.content)


def save_cart(cart: Cart) -> bool:
    return content_repo.upsert_content(CART_CONTENT_TYPE, cart.to_content())


def get_session(session_id: str) -> CheckoutSession:
    record = content_repo.get_content(CHECKOUT_CONTENT_TYPE, str(session_id))
    return CheckoutSession.from_content(record.content)


def find_session_by_paypal_id(paypal_order_id: str) -> Optional[CheckoutSession]:
    """リダイレクト戻り（token=PayPal注文ID）からセッションを引く"""
    qf = QueryFilter()
    qf.add_eq("paypal_order_id", paypal_order_id)
    records = content_repo.query_contents(CHECKOUT_CONTENT_TYPE, qf, limit=1)
    return CheckoutSession.from_content(records[0].content) if records else None


def save_session(session: CheckoutSession) -> bool:
    session.updated_at = datetime.now()
    return content_repo.upsert_content(CHECKOUT_CONTENT_TYPE, session.to_content())
