from typing import Any, Dict, Optional


class PaymentError(Exception):
    """決済処理まわりの例外の基底クラス"""

    def __init__(self, message: str, body: Optional[Dict[str, Any]] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.body = body or {}
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return False

    def __str__(self) -> str:
        return self.message


class ConfigurationError(PaymentError):
    """設定不足（起動時に検知すべき致命的エラー）"""


class CredentialsMissing(ConfigurationError):
    pass


class AuthError(PaymentError):
    """認証情報が不正、またはトークン期限切れ"""


class ProviderRequestError(PaymentError):
    """PayPal APIが2xx以外を返した"""

    @property
    def retryable(self) -> bool:
        return True

    @property
    def issue(self) -> Optional[str]:
        details = self.body.get("details") or []
        if details and isinstance(details[0], dict):
            return details[0].get("issue")
        return self.body.get("name")


class OrderCreationError(ProviderRequestError):
    pass


class CaptureError(ProviderRequestError):
    pass


class ProviderUnavailable(ProviderRequestError):
    """タイムアウト・接続エラー"""


class VerificationFailure(PaymentError):
    pass


class PersistenceError(PaymentError):
    """ストアへの書き込み失敗。決済済み注文の場合は最重要"""

    @property
    def retryable(self) -> bool:
        return True


class CheckoutStateError(PaymentError):
    pass


class CheckoutValidationError(PaymentError):

    def __init__(self, errors: Dict[str, str]):
        super().__init__("入力内容に誤りがあります", body={"errors": errors})
        self.errors = errors
