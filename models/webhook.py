from pydantic import BaseModel, Field, TypeAdapter
from typing import Annotated, Any, Dict, Literal, Optional, Union
from datetime import datetime

WEBHOOK_CONTENT_TYPE = "webhook_event"

KNOWN_EVENT_TYPES = (
    'PAYMENT.CAPTURE.COMPLETED',
    'PAYMENT.CAPTURE.DENIED',
    'PAYMENT.CAPTURE.REFUNDED',
    'PAYMENT.CAPTURE.PENDING',
    'PAYMENT.CAPTURE.REVERSED',
    'CHECKOUT.ORDER.APPROVED',
    'CHECKOUT.ORDER.COMPLETED',
)


class BaseWebhookEvent(BaseModel):
    id: str
    event_type: str
    resource_type: Optional[str] = None
    resource: Dict[str, Any] = {}
    create_time: Optional[str] = None
    summary: Optional[str] = None

    model_config = {
        "extra": "allow"
    }

    @property
    def paypal_order_id(self) -> Optional[str]:
        return self.resource.get("id")


class CaptureEvent(BaseWebhookEvent):
    """PAYMENT.CAPTURE.* のresourceはcaptureなので注文IDは関連IDから引く"""

    @property
    def capture_id(self) -> Optional[str]:
        return self.resource.get("id")

    @property
    def paypal_order_id(self) -> Optional[str]:
        related = (self.resource.get("supplementary_data") or {}).get("related_ids") or {}
        return related.get("order_id")


class CaptureCompleted(CaptureEvent):
    event_type: Literal['PAYMENT.CAPTURE.COMPLETED']


class CaptureDenied(CaptureEvent):
    event_type: Literal['PAYMENT.CAPTURE.DENIED']


class CaptureRefunded(CaptureEvent):
    event_type: Literal['PAYMENT.CAPTURE.REFUNDED']

    @property
    def paypal_order_id(self) -> Optional[str]:
        # 返金イベントのresourceはrefundなので、related_idsかupリンクから注文を辿る
        order_id = super().paypal_order_id
        if order_id:
            return order_id
        for link in self.resource.get("links", []):
            if link.get("rel") == "up" and "/checkout/orders/" in link.get("href", ""):
                return link["href"].rstrip("/").split("/")[-1]
        return None


class CapturePending(CaptureEvent):
    event_type: Literal['PAYMENT.CAPTURE.PENDING']


class CaptureReversed(CaptureEvent):
    event_type: Literal['PAYMENT.CAPTURE.REVERSED']


class OrderApproved(BaseWebhookEvent):
    event_type: Literal['CHECKOUT.ORDER.APPROVED']


class OrderCompleted(BaseWebhookEvent):
    event_type: Literal['CHECKOUT.ORDER.COMPLETED']


class UnrecognizedEvent(BaseWebhookEvent):
    pass


KnownWebhookEvent = Annotated[
    Union[
        CaptureCompleted,
        CaptureDenied,
        CaptureRefunded,
        CapturePending,
        CaptureReversed,
        OrderApproved,
        OrderCompleted,
    ],
    Field(discriminator="event_type"),
]
WebhookEvent = Union[
    CaptureCompleted,
    CaptureDenied,
    CaptureRefunded,
    CapturePending,
    CaptureReversed,
    OrderApproved,
    OrderCompleted,
    UnrecognizedEvent,
]

_known_event_adapter = TypeAdapter(KnownWebhookEvent)


def parse_webhook_event(payload: Dict[str, Any]) -> WebhookEvent:
    """event_typeで対応するイベント型に振り分ける。未知のタイプはUnrecognizedEvent"""
    if payload.get("event_type") in KNOWN_EVENT_TYPES:
        return _known_event_adapter.validate_python(payload)
    return UnrecognizedEvent.model_validate(payload)


class WebhookEventRecord(BaseModel):
    id: str  # PayPalのイベントID（冪等性キー）
    event_type: str
    resource_type: Optional[str] = None
    paypal_order_id: Optional[str] = None
    verified: bool = True
    applied: bool = False
    outcome: Optional[str] = None
    payload: Dict[str, Any] = {}
    received_at: datetime = Field(default_factory=datetime.now)
    applied_at: Optional[datetime] = None

    def to_content(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_content(cls, content: Dict[str, Any]) -> "WebhookEventRecord":
        return cls.model_validate(content)

    @classmethod
    def from_event(cls, event: BaseWebhookEvent) -> "WebhookEventRecord":
        return cls(
            id=event.id,
            event_type=event.event_type,
            resource_type=event.resource_type,
            paypal_order_id=event.paypal_order_id,
            payload=event.model_dump(mode="json"),
        )


class WebhookResponse(BaseModel):
    received: bool = True
    event_id: str
    event_type: str
