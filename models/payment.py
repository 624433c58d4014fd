# models/payment.py
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List, Literal
from decimal import Decimal

# PayPal側のOrderステータス
ProviderOrderStatus = Literal['CREATED', 'SAVED', 'APPROVED', 'VOIDED', 'COMPLETED', 'PAYER_ACTION_REQUIRED']
# 設計上のライフサイクル
PaymentOrderStatus = Literal['CREATED', 'APPROVED', 'CAPTURED', 'DENIED', 'REVERSED', 'REFUNDED']


class PaymentLink(BaseModel):
    href: str
    rel: str
    method: Optional[str] = None


class PaymentOrder(BaseModel):
    id: str  # PayPal Order ID
    amount: Optional[Decimal] = None
    currency_code: Optional[str] = None
    status: PaymentOrderStatus = 'CREATED'
    provider_status: Optional[str] = None
    links: List[PaymentLink] = []

    @property
    def approval_link(self) -> Optional[str]:
        for link in self.links:
            if link.rel in ('approve', 'payer-action'):
                return link.href
        return None

    @classmethod
    def from_response(cls, data: Dict[str, Any], amount: Optional[Decimal] = None, currency_code: Optional[str] = None) -> "PaymentOrder":
        """PayPalのOrderレスポンスから生成する"""
        unit = (data.get("purchase_units") or [{}])[0]
        unit_amount = unit.get("amount") or {}
        captures = (unit.get("payments") or {}).get("captures") or []
        provider_status = data.get("status")

        return cls(
            id=data["id"],
            amount=Decimal(str(unit_amount.get("value"))) if unit_amount.get("value") else amount,
            currency_code=unit_amount.get("currency_code") or currency_code,
            status=to_lifecycle_status(provider_status, captures[0].get("status") if captures else None),
            provider_status=provider_status,
            links=[PaymentLink(**link) for link in data.get("links", [])],
        )


def to_lifecycle_status(provider_status: Optional[str], capture_status: Optional[str] = None) -> PaymentOrderStatus:
    if capture_status == 'DECLINED':
        return 'DENIED'
    if capture_status == 'REFUNDED':
        return 'REFUNDED'
    if capture_status == 'REVERSED':
        return 'REVERSED'
    if provider_status == 'COMPLETED':
        return 'CAPTURED'
    if provider_status == 'APPROVED':
        return 'APPROVED'
    return 'CREATED'


class CaptureResult(BaseModel):
    success: bool
    order_id: str
    status: Optional[str] = None
    capture_id: Optional[str] = None
    already_captured: bool = False
    payer_email: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_response(cls, order_id: str, data: Dict[str, Any]) -> "CaptureResult":
        unit = (data.get("purchase_units") or [{}])[0]
        captures = (unit.get("payments") or {}).get("captures") or []
        return cls(
            success=data.get("status") == 'COMPLETED',
            order_id=data.get("id", order_id),
            status=data.get("status"),
            capture_id=captures[0].get("id") if captures else None,
            payer_email=(data.get("payer") or {}).get("email_address"),
            details=data,
        )


class ClientTokenResponse(BaseModel):
    clientToken: str
