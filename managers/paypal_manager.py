from typing import Optional, Dict, Any, Mapping, Union
from decimal import Decimal, ROUND_HALF_UP
from requests.adapters import HTTPAdapter
from requests.auth import HTTPBasicAuth
from urllib3.util.retry import Retry
from models.settings import PayPalSettings
from models.payment import PaymentOrder, CaptureResult
from utils.errors import (
    PaymentError,
    CredentialsMissing,
    AuthError,
    ProviderRequestError,
    OrderCreationError,
    CaptureError,
    ProviderUnavailable,
)
import requests
import logging
import json
import time
import uuid

logger = logging.getLogger(__name__)

# Webhook署名検証に必要なヘッダ
TRANSMISSION_HEADERS = (
    "transmission-id",
    "transmission-time",
    "cert-url",
    "auth-algo",
    "transmission-sig",
)


def _json_body(response: requests.Response) -> Dict[str, Any]:
    try:
        body = response.json()
        return body if isinstance(body, dict) else {"body": body}
    except ValueError:
        return {"raw": response.text}


def _format_amount(amount: Union[Decimal, float, str]) -> str:
    return str(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class PayPalClient:
    """PayPal REST APIへの送信をすべて担当するクライアント"""

    def __init__(self, settings: Optional[PayPalSettings] = None):
        self.settings = settings or PayPalSettings.from_env()
        # トークン取得・注文作成は一時的な通信エラーに限り指数バックオフで再試行する
        self.session = self._build_session(self.settings.max_retries)
        # キャプチャは二重決済を避けるため自動再試行しない
        self.capture_session = self._build_session(0)
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0

    @staticmethod
    def _build_session(retries: int) -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=retries,
            connect=retries,
            read=retries,
            status=retries,
            backoff_factor=0.5,
            status_forcelist=(502, 503, 504),
            allowed_methods=frozenset({"GET", "POST"}),
            raise_on_status=False,
        )
        session.mount("https://", HTTPAdapter(max_retries=retry))
        session.mount("http://", HTTPAdapter(max_retries=retry))
        return session

    def _request(self, method: str, path: str, session: Optional[requests.Session] = None, **kwargs) -> requests.Response:
        session = session or self.session
        try:
            return session.request(
                method,
                f"{self.settings.api_base}{path}",
                timeout=self.settings.timeout_seconds,
                **kwargs,
            )
        except requests.Timeout as e:
            raise ProviderUnavailable(f"PayPal APIがタイムアウトしました: {path}") from e
        except requests.RequestException as e:
            raise ProviderUnavailable(f"PayPal APIに接続できません: {path}: {e}") from e

    def _require_credentials(self) -> None:
        if not self.settings.client_id or not self.settings.client_secret:
            raise CredentialsMissing("PAYPAL_CLIENT_ID または PAYPAL_CLIENT_SECRET が設定されていません")

    def _token_request(self, data: Dict[str, str]) -> Dict[str, Any]:
        self._require_credentials()
        response = self._request(
            "POST",
            "/v1/oauth2/token",
            auth=HTTPBasicAuth(self.settings.client_id, self.settings.client_secret),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data=data,
        )
        body = _json_body(response)
        if not response.ok:
            logger.error("[PayPal] Token error: %s", body)
            raise AuthError("PayPalアクセストークンの取得に失敗しました", body, response.status_code)
        if not body.get("access_token"):
            logger.error("[PayPal] Token response without access_token: %s", body)
            raise AuthError("PayPalのトークン応答にaccess_tokenがありません", body, response.status_code)
        return body

    def get_access_token(self) -> str:
        """client credentialsでアクセストークンを取得する（キャッシュしない）"""
        data = self._token_request({"grant_type": "client_credentials"})
        self._access_token = data["access_token"]
        # 期限の60秒前には取り直す
        self._token_expires_at = time.monotonic() + max(int(data.get("expires_in", 0)) - 60, 0)
        return self._access_token

    def generate_client_token(self) -> str:
        """埋め込み決済UI用のクライアントトークンを発行する"""
        data = self._token_request({
            "grant_type": "client_credentials",
            "response_type": "client_token",
            "intent": "sdk_init",
        })
        return data["access_token"]

    def _bearer_token(self, refresh: bool = False) -> str:
        if refresh or not self._access_token or time.monotonic() >= self._token_expires_at:
            return self.get_access_token()
        return self._access_token

    def _authorized_request(self, method: str, path: str, session: Optional[requests.Session] = None,
                            headers: Optional[Dict[str, str]] = None, **kwargs) -> requests.Response:
        def send(token: str) -> requests.Response:
            return self._request(
                method,
                path,
                session,
                headers={"Content-Type": "application/json", **(headers or {}), "Authorization": f"Bearer {token}"},
                **kwargs,
            )

        response = send(self._bearer_token())
        if response.status_code == 401:
            # 期限切れの可能性があるので一度だけ取り直す
            logger.info("[PayPal] 401 received, refreshing access token")
            response = send(self._bearer_token(refresh=True))
            if response.status_code == 401:
                raise AuthError("PayPal APIの認証に失敗しました", _json_body(response), 401)
        return response

    def create_order(
            self,
            amount: Union[Decimal, float, str],
            currency_code: str = "EUR",
            description: str = "Pockimate Order",
            return_url: Optional[str] = None,
            cancel_url: Optional[str] = None,
            request_id: Optional[str] = None,
        ) -> PaymentOrder:
        """intent=CAPTUREでPayPal注文を作成する"""
        value = _format_amount(amount)
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [{
                "amount": {"currency_code": currency_code, "value": value},
                "description": description,
            }],
            "application_context": {
                "brand_name": self.settings.brand_name,
                "landing_page": "NO_PREFERENCE",
                "user_action": "PAY_NOW",
                "shipping_preference": "GET_FROM_FILE",
                "return_url": return_url or f"{self.settings.front_url}?paypal=success",
                "cancel_url": cancel_url or f"{self.settings.front_url}?paypal=cancel",
            },
        }
        response = self._authorized_request(
            "POST",
            "/v2/checkout/orders",
            headers={"PayPal-Request-Id": request_id or f"order-{uuid.uuid4()}"},
            json=payload,
        )
        if not response.ok:
            body = _json_body(response)
            logger.error("[PayPal] Create order error: %s", body)
            raise OrderCreationError("PayPal注文の作成に失敗しました", body, response.status_code)

        order = PaymentOrder.from_response(response.json(), Decimal(value), currency_code)
        if not order.approval_link:
            raise OrderCreationError("承認URLが見つかりません", {"id": order.id})
        logger.info("[PayPal] Order created: %s", order.id)
        return order

    def capture_order(self, order_id: str) -> CaptureResult:
        """承認済みの注文をキャプチャする。キャプチャ済みは成功扱い"""
        response = self._authorized_request(
            "POST",
            f"/v2/checkout/orders/{order_id}/capture",
            session=self.capture_session,
            json={},
        )
        if response.ok:
            result = CaptureResult.from_response(order_id, response.json())
            if not result.success:
                logger.warning("[PayPal] Capture not completed: %s status=%s", order_id, result.status)
            return result

        body = _json_body(response)
        error = CaptureError("PayPal注文のキャプチャに失敗しました", body, response.status_code)
        if response.status_code == 422 and error.issue == "ORDER_ALREADY_CAPTURED":
            logger.info("[PayPal] Order already captured: %s", order_id)
            return CaptureResult(success=True, order_id=order_id, status="COMPLETED", already_captured=True, details=body)

        logger.error("[PayPal] Capture error: %s", body)
        raise error

    def get_order(self, order_id: str) -> PaymentOrder:
        """注文の現在のステータスを取得する"""
        response = self._authorized_request("GET", f"/v2/checkout/orders/{order_id}")
        if not response.ok:
            body = _json_body(response)
            raise ProviderRequestError("PayPal注文の取得に失敗しました", body, response.status_code)
        return PaymentOrder.from_response(response.json())

    def refund_capture(self, capture_id: str, amount: Optional[Union[Decimal, float, str]] = None,
                       currency_code: str = "EUR") -> Dict[str, Any]:
        """キャプチャ済みの支払いを返金する。amount省略時は全額"""
        payload: Dict[str, Any] = {}
        if amount is not None:
            payload["amount"] = {"currency_code": currency_code, "value": _format_amount(amount)}
        response = self._authorized_request(
            "POST",
            f"/v2/payments/captures/{capture_id}/refund",
            session=self.capture_session,
            json=payload,
        )
        if not response.ok:
            body = _json_body(response)
            logger.error("[PayPal] Refund error: %s", body)
            raise ProviderRequestError("返金に失敗しました", body, response.status_code)
        return response.json()

    def verify_webhook_signature(self, headers: Mapping[str, str], raw_body: Union[bytes, str]) -> bool:
        """
        Webhookの署名をPayPalに問い合わせて検証する

        必須ヘッダが欠けている場合はPayPalを呼ばずにFalseを返す。
        通信エラーや解析エラーもすべてFalse（検証失敗）として扱う。
        """
        lowered = {key.lower(): value for key, value in headers.items()}
        values: Dict[str, str] = {}
        for name in TRANSMISSION_HEADERS:
            value = lowered.get(f"paypal-{name}") or lowered.get(name)
            if not value:
                logger.error("[PayPal Webhook] Missing required header: %s", name)
                return False
            values[name] = value

        if not self.settings.webhook_id:
            logger.error("[PayPal Webhook] PAYPAL_WEBHOOK_ID not configured")
            return False

        try:
            event = json.loads(raw_body)
            response = self._authorized_request(
                "POST",
                "/v1/notifications/verify-webhook-signature",
                json={
                    "auth_algo": values["auth-algo"],
                    "cert_url": values["cert-url"],
                    "transmission_id": values["transmission-id"],
                    "transmission_sig": values["transmission-sig"],
                    "transmission_time": values["transmission-time"],
                    "webhook_id": self.settings.webhook_id,
                    "webhook_event": event,
                },
            )
            if not response.ok:
                logger.error("[PayPal Webhook] Verification API error: %s", _json_body(response))
                return False

            status = _json_body(response).get("verification_status")
            logger.info("[PayPal Webhook] Verification result: %s", status)
            return status == "SUCCESS"

        except (PaymentError, ValueError, TypeError) as e:
            logger.error("[PayPal Webhook] Verification error: %s", e)
            return False
