from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any, Literal
from decimal import Decimal
from datetime import datetime
import uuid

ORDER_CONTENT_TYPE = "order"

FulfillmentStatus = Literal['Processing', 'Shipped', 'Delivered', 'Cancelled']
PaymentStatus = Literal['pending', 'paid', 'payment_failed', 'refunded', 'reversed']

# 管理画面から許可する配送ステータスの遷移
FULFILLMENT_TRANSITIONS: Dict[str, List[str]] = {
    'Processing': ['Shipped', 'Cancelled'],
    'Shipped': ['Delivered', 'Cancelled'],
    'Delivered': [],
    'Cancelled': [],
}
TERMINAL_STATUSES = ('Delivered', 'Cancelled')


class OrderLineItem(BaseModel):
    product_id: str
    name: str
    quantity: int = Field(1, ge=1)
    unit_price: Decimal
    variant: Optional[str] = None
    color: Optional[str] = None
    image: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class ShippingAddress(BaseModel):
    full_name: str
    email: str
    phone: str
    address: str
    city: str
    state: Optional[str] = None
    zip_code: str
    country: str


class LocalOrder(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    paypal_order_id: str
    capture_id: Optional[str] = None
    items: List[OrderLineItem]
    subtotal: Decimal
    discount: Decimal = Decimal("0.00")
    shipping_cost: Decimal = Decimal("0.00")
    total: Decimal
    currency_code: str = 'EUR'
    status: FulfillmentStatus = 'Processing'
    payment_status: PaymentStatus = 'pending'
    needs_review: bool = False
    shipping_address: ShippingAddress
    customer_email: str
    tracking_number: Optional[str] = None
    applied_event_ids: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }

    @staticmethod
    def id_for_paypal_order(paypal_order_id: str) -> uuid.UUID:
        """PayPal注文IDから一意に決まるローカル注文ID"""
        return uuid.uuid5(uuid.NAMESPACE_URL, f"paypal:order:{paypal_order_id}")

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_transition(self, status: FulfillmentStatus) -> bool:
        return status in FULFILLMENT_TRANSITIONS[self.status]

    def update_timestamp(self, mode: Literal['update', 'create']):
        if mode == 'create':
            self.created_at = datetime.now()
            self.updated_at = None
        elif mode == 'update':
            self.updated_at = datetime.now()

    def to_content(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_content(cls, content: Dict[str, Any]) -> "LocalOrder":
        return cls.model_validate(content)


class OrderStatusUpdate(BaseModel):
    status: FulfillmentStatus
    tracking_number: Optional[str] = None


class RefundRequest(BaseModel):
    amount: Optional[Decimal] = None


class OrderTracking(BaseModel):
    """追跡番号での問い合わせ用。住所などの個人情報は含めない"""
    id: uuid.UUID
    status: FulfillmentStatus
    payment_status: PaymentStatus
    tracking_number: Optional[str] = None
    total: Decimal
    currency_code: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: LocalOrder) -> "OrderTracking":
        return cls.model_validate(order.model_dump(include=set(cls.model_fields)))
