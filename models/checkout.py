from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any, Literal
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime
from enum import Enum
from models.order import OrderLineItem, ShippingAddress
import uuid

CART_CONTENT_TYPE = "cart"
CHECKOUT_CONTENT_TYPE = "checkout_session"

CENT = Decimal("0.01")


class CheckoutState(str, Enum):
    COLLECTING_INFO = 'CollectingInfo'
    AWAITING_APPROVAL = 'AwaitingApproval'
    CAPTURING = 'Capturing'
    COMPLETED = 'Completed'
    FAILED = 'Failed'
    CANCELLED = 'Cancelled'


class FundingSource(str, Enum):
    PAYPAL = 'paypal'
    CARD = 'card'
    PAYLATER = 'paylater'
    GOOGLEPAY = 'googlepay'


PaymentMethod = Literal['paypal', 'card']
ShippingMethod = Literal['standard', 'express']


class CartItem(BaseModel):
    product_id: str
    name: str
    price: Decimal
    quantity: int = Field(1, ge=1)
    variant: Optional[str] = None
    color: Optional[str] = None
    image: Optional[str] = None

    def to_line_item(self) -> OrderLineItem:
        return OrderLineItem(product_id=self.product_id, name=self.name, quantity=self.quantity,
                             unit_price=self.price, variant=self.variant, color=self.color, image=self.image)


class Cart(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    items: List[CartItem] = []
    currency_code: str = 'EUR'
    discount_rate: Decimal = Field(Decimal("0"), ge=0, le=1)  # 0.2 = 20%

    @property
    def subtotal(self) -> Decimal:
        return sum((item.price * item.quantity for item in self.items), Decimal("0")).quantize(CENT, rounding=ROUND_HALF_UP)

    @property
    def discount(self) -> Decimal:
        return (self.subtotal * self.discount_rate).quantize(CENT, rounding=ROUND_HALF_UP)

    def is_empty(self) -> bool:
        return not self.items

    def clear(self):
        self.items = []
        self.discount_rate = Decimal("0")

    def to_content(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_content(cls, content: Dict[str, Any]) -> "Cart":
        return cls.model_validate(content)


class CardDetails(BaseModel):
    card_number: str
    expiry: str
    cvv: str
    holder: str


class CheckoutSubmission(BaseModel):
    shipping: ShippingAddress
    payment_method: PaymentMethod = 'paypal'
    shipping_method: ShippingMethod = 'standard'
    card: Optional[CardDetails] = None


class ApprovalCallback(BaseModel):
    order_id: str  # onApprove の orderID / リダイレクトの token
    payer_id: Optional[str] = None


class CheckoutSession(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    cart_id: uuid.UUID
    state: CheckoutState = CheckoutState.COLLECTING_INFO
    payment_method: Optional[PaymentMethod] = None
    shipping_method: ShippingMethod = 'standard'
    shipping: Optional[ShippingAddress] = None
    subtotal: Decimal = Decimal("0.00")
    discount: Decimal = Decimal("0.00")
    shipping_cost: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    currency_code: str = 'EUR'
    paypal_order_id: Optional[str] = None
    approval_link: Optional[str] = None
    payer_id: Optional[str] = None
    local_order_id: Optional[uuid.UUID] = None
    order_history: List[uuid.UUID] = []
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: Optional[datetime] = None

    def to_content(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_content(cls, content: Dict[str, Any]) -> "CheckoutSession":
        return cls.model_validate(content)


class CheckoutResponse(BaseModel):
    session_id: uuid.UUID
    state: CheckoutState
    total: Decimal
    currency_code: str
    paypal_order_id: Optional[str] = None
    approval_link: Optional[str] = None
    local_order_id: Optional[uuid.UUID] = None
    error: Optional[str] = None

    @classmethod
    def from_session(cls, session: CheckoutSession) -> "CheckoutResponse":
        return cls(session_id=session.id, **session.model_dump(
            include={"state", "total", "currency_code", "paypal_order_id", "approval_link", "local_order_id", "error"}))


class PaymentOptionStyle(BaseModel):
    layout: Literal['vertical', 'horizontal'] = 'vertical'
    color: Literal['gold', 'blue', 'silver', 'white', 'black'] = 'gold'
    shape: Literal['rect', 'pill'] = 'rect'
    label: Literal['paypal', 'checkout', 'buynow', 'pay'] = 'paypal'
    height: int = Field(45, ge=25, le=55)


class PaymentOption(BaseModel):
    funding_source: FundingSource
    style: PaymentOptionStyle
    express: bool = False
    client_id: Optional[str] = None
    currency_code: str = 'EUR'
    intent: str = 'capture'
    create_order_url: str = '/checkout/sessions/{session_id}/submit'
    approve_url: str = '/checkout/sessions/{session_id}/approve'
    cancel_url: str = '/checkout/sessions/{session_id}/cancel'
