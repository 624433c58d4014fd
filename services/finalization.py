from models.order import LocalOrder, ShippingAddress
from models.checkout import Cart, CheckoutSession
from models.payment import CaptureResult
from repository import order as order_repo
from repository import checkout as checkout_repo
from utils.errors import PersistenceError
from typing import Callable, Optional
import logging
import time

logger = logging.getLogger(__name__)


class OrderFinalizer:
    """キャプチャ成功後にローカル注文を作成し、カートを空にする"""

    def __init__(
            self,
            create_order: Callable[[LocalOrder], bool] = order_repo.create_order,
            find_order: Callable[[str], Optional[LocalOrder]] = order_repo.find_order_by_paypal_id,
            save_cart: Callable[[Cart], bool] = checkout_repo.save_cart,
            max_attempts: int = 3,
            backoff_seconds: float = 0.5,
        ):
        self.create_order = create_order
        self.find_order = find_order
        self.save_cart = save_cart
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

    def build_order(self, session: CheckoutSession, cart: Cart, capture: CaptureResult) -> LocalOrder:
        shipping: ShippingAddress = session.shipping
        return LocalOrder(
            id=LocalOrder.id_for_paypal_order(capture.order_id),
            paypal_order_id=capture.order_id,
            capture_id=capture.capture_id,
            items=[item.to_line_item() for item in cart.items],
            subtotal=session.subtotal,
            discount=session.discount,
            shipping_cost=session.shipping_cost,
            total=session.total,
            currency_code=session.currency_code,
            status='Processing',
            payment_status='paid',
            shipping_address=shipping,
            customer_email=shipping.email,
        )

    def _persist(self, order: LocalOrder) -> bool:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self.create_order(order)
            except PersistenceError as e:
                last_error = e
                logger.error("注文の保存に失敗しました (paypal=%s, attempt %d): %s", order.paypal_order_id, attempt, e)
                if attempt < self.max_attempts:
                    time.sleep(self.backoff_seconds * 2 ** (attempt - 1))

        raise PersistenceError(
            f"決済は完了しましたが注文 {order.id} を保存できませんでした",
            body={"paypal_order_id": order.paypal_order_id, "local_order_id": str(order.id)},
        ) from last_error

    def finalize(self, session: CheckoutSession, cart: Cart, capture: CaptureResult) -> LocalOrder:
        """
        ローカル注文を確定する

        同じPayPal注文の注文が既にあればそれを返し、二重に作成しない。
        保存に失敗した場合はカートを残したままPersistenceErrorを送出する。
        """
        existing = self.find_order(capture.order_id)
        if existing:
            logger.info("Order for %s already exists: %s", capture.order_id, existing.id)
            order = existing
        else:
            order = self.build_order(session, cart, capture)
            if not self._persist(order):
                # 並行したリクエストが先に作成した
                order = self.find_order(capture.order_id) or order
                logger.info("Order for %s was created concurrently: %s", capture.order_id, order.id)
            else:
                logger.info("Order created: %s (paypal=%s, total=%s %s)", order.id, order.paypal_order_id, order.total, order.currency_code)

        if order.id not in session.order_history:
            session.order_history.append(order.id)
        session.local_order_id = order.id

        # 保存が成功してからカートを空にする
        cart.clear()
        try:
            self.save_cart(cart)
        except PersistenceError as e:
            # 注文は保存済みなので、カートの削除失敗は記録のみ
            logger.error("カートのクリアに失敗しました (cart=%s): %s", cart.id, e)

        return order
