from models.checkout import (
    Cart,
    CheckoutSession,
    CheckoutState,
    CheckoutSubmission,
    ShippingMethod,
)
from models.order import LocalOrder
from models.payment import CaptureResult
from models.settings import ShopSettings
from managers.paypal_manager import PayPalClient
from services.finalization import OrderFinalizer
from utils.errors import (
    PaymentError,
    ConfigurationError,
    PersistenceError,
    CheckoutStateError,
    CheckoutValidationError,
)
from utils.validation import validate_shipping_fields, validate_card_fields
from typing import Dict, Optional
from decimal import Decimal
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

RETRY_MESSAGE = "お支払いを完了できませんでした。カートはそのまま残っていますので、もう一度お試しください。"


class CheckoutOrchestrator:
    """
    1つのチェックアウトセッションの状態遷移を管理する

    CollectingInfo -> AwaitingApproval -> Capturing -> Completed
                                                    -> Failed -> CollectingInfo
                      AwaitingApproval -> Cancelled

    セッションとカートは呼び出し側から渡し、保存も呼び出し側で行う。
    PayPal・ストアのエラーはここで捕捉してセッションのerrorに変換する。
    """

    def __init__(
            self,
            session: CheckoutSession,
            cart: Cart,
            client: PayPalClient,
            finalizer: Optional[OrderFinalizer] = None,
            shop: Optional[ShopSettings] = None,
        ):
        self.session = session
        self.cart = cart
        self.client = client
        self.finalizer = finalizer or OrderFinalizer()
        self.shop = shop or ShopSettings.from_env()
        self.order: Optional[LocalOrder] = None

    @classmethod
    def start(
            cls,
            cart: Cart,
            client: PayPalClient,
            finalizer: Optional[OrderFinalizer] = None,
            shop: Optional[ShopSettings] = None,
        ) -> "CheckoutOrchestrator":
        """空でないカートからセッションを開始する"""
        if cart.is_empty() or cart.subtotal <= 0:
            raise CheckoutStateError("カートが空のためチェックアウトを開始できません")

        session = CheckoutSession(cart_id=cart.id, currency_code=cart.currency_code)
        orchestrator = cls(session, cart, client, finalizer, shop)
        orchestrator.compute_totals('standard')
        return orchestrator

    # 内部ヘルパー
    def _require(self, *states: CheckoutState):
        if self.session.state not in states:
            raise CheckoutStateError(
                f"セッション {self.session.id} は {self.session.state.value} のためこの操作はできません",
                body={"state": self.session.state.value},
            )

    def _transition(self, state: CheckoutState):
        logger.info("Checkout %s: %s -> %s", self.session.id, self.session.state.value, state.value)
        self.session.state = state
        self.session.updated_at = datetime.now()

    def _fail(self, message: str, error: Optional[Exception] = None):
        if error is not None:
            logger.error("Checkout %s failed: %s", self.session.id, error)
        self.session.error = message
        self._transition(CheckoutState.FAILED)

    def compute_totals(self, shipping_method: ShippingMethod):
        """合計 = 小計 - 割引 + 送料"""
        subtotal = self.cart.subtotal
        discount = self.cart.discount
        if shipping_method == 'express':
            shipping_cost = self.shop.express_shipping
        elif self.shop.free_shipping_threshold is not None and subtotal >= self.shop.free_shipping_threshold:
            shipping_cost = Decimal("0.00")
        else:
            shipping_cost = self.shop.standard_shipping

        self.session.shipping_method = shipping_method
        self.session.subtotal = subtotal
        self.session.discount = discount
        self.session.shipping_cost = shipping_cost
        self.session.total = subtotal - discount + shipping_cost

    @staticmethod
    def validate(submission: CheckoutSubmission) -> Dict[str, str]:
        shipping = submission.shipping
        errors = validate_shipping_fields(
            full_name=shipping.full_name,
            email=shipping.email,
            phone=shipping.phone,
            address=shipping.address,
            city=shipping.city,
            zip_code=shipping.zip_code,
            country=shipping.country,
        )
        if submission.payment_method == 'card':
            if submission.card is None:
                errors["card"] = "Card details are required"
            else:
                errors.update(validate_card_fields(
                    card_number=submission.card.card_number,
                    expiry=submission.card.expiry,
                    cvv=submission.card.cvv,
                    holder=submission.card.holder,
                ))
        return errors

    # 操作
    def submit(
            self,
            submission: CheckoutSubmission,
            return_url: Optional[str] = None,
            cancel_url: Optional[str] = None,
        ) -> CheckoutSession:
        """入力を検証してPayPal注文を作成し、承認待ちにする"""
        self._require(CheckoutState.COLLECTING_INFO)
        if self.cart.is_empty():
            raise CheckoutStateError("カートが空のためチェックアウトできません")

        errors = self.validate(submission)
        if errors:
            raise CheckoutValidationError(errors)

        self.session.shipping = submission.shipping
        self.session.payment_method = submission.payment_method
        self.session.error = None
        self.compute_totals(submission.shipping_method)

        try:
            payment_order = self.client.create_order(
                self.session.total,
                self.session.currency_code,
                description=f"{self.client.settings.brand_name} Order",
                return_url=return_url,
                cancel_url=cancel_url,
            )
        except ConfigurationError:
            raise
        except PaymentError as e:
            logger.error("Checkout %s: create order failed: %s", self.session.id, e)
            self.session.error = RETRY_MESSAGE
            return self.session

        self.session.paypal_order_id = payment_order.id
        self.session.approval_link = payment_order.approval_link
        self._transition(CheckoutState.AWAITING_APPROVAL)
        return self.session

    def approve(self, order_id: str, payer_id: Optional[str] = None) -> CheckoutSession:
        """
        承認コールバック（リダイレクトのtoken/PayerID、または埋め込みのonApprove）

        キャプチャに成功したら注文を確定してCompletedにする。
        """
        if self.session.state == CheckoutState.COMPLETED and order_id == self.session.paypal_order_id:
            # 二重のコールバックは何もしない
            return self.session

        self._require(CheckoutState.AWAITING_APPROVAL)
        if order_id != self.session.paypal_order_id:
            raise CheckoutStateError(f"PayPal注文ID {order_id} はこのセッションの注文ではありません")

        self.session.payer_id = payer_id
        self._transition(CheckoutState.CAPTURING)
        return self._capture()

    def _capture(self) -> CheckoutSession:
        try:
            result = self.client.capture_order(self.session.paypal_order_id)
        except PaymentError as e:
            self._fail(RETRY_MESSAGE, e)
            return self.session

        if not result.success:
            self._fail(RETRY_MESSAGE, PaymentError(f"capture status {result.status}"))
            return self.session

        return self._finalize(result)

    def _finalize(self, result: CaptureResult) -> CheckoutSession:
        try:
            self.order = self.finalizer.finalize(self.session, self.cart, result)
        except PersistenceError as e:
            # 決済は成功しているので、再試行時は再キャプチャせずに注文の保存だけをやり直す
            logger.critical("Checkout %s: payment captured but order not saved: %s", self.session.id, e)
            self._fail("お支払いは完了しましたが、注文の記録に失敗しました。再試行してください。")
            return self.session

        self.session.error = None
        self._transition(CheckoutState.COMPLETED)
        return self.session

    def retry(self) -> CheckoutSession:
        """
        失敗したセッションをやり直す

        再キャプチャの前に必ずPayPal側の注文ステータスを確認する。
        キャプチャ済みなら注文の確定だけを行う。
        """
        self._require(CheckoutState.FAILED)

        if self.session.paypal_order_id:
            try:
                payment_order = self.client.get_order(self.session.paypal_order_id)
            except PaymentError as e:
                logger.error("Checkout %s: order status check failed: %s", self.session.id, e)
                self.session.error = RETRY_MESSAGE
                return self.session

            if payment_order.status == 'CAPTURED':
                self._transition(CheckoutState.CAPTURING)
                return self._finalize(CaptureResult(
                    success=True,
                    order_id=payment_order.id,
                    status=payment_order.provider_status,
                    already_captured=True,
                ))
            if payment_order.status == 'APPROVED':
                self._transition(CheckoutState.CAPTURING)
                return self._capture()

        # 未承認・無効な注文は破棄して入力からやり直す
        self.session.paypal_order_id = None
        self.session.approval_link = None
        self.session.error = None
        self._transition(CheckoutState.COLLECTING_INFO)
        return self.session

    def cancel(self) -> CheckoutSession:
        """承認待ちのキャンセル。キャプチャ前なのでPayPalへの取り消しは不要"""
        self._require(CheckoutState.AWAITING_APPROVAL)
        self.session.error = None
        self._transition(CheckoutState.CANCELLED)
        return self.session
