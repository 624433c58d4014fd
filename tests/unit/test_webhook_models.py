from models.webhook import (
    CaptureCompleted,
    CaptureRefunded,
    OrderApproved,
    UnrecognizedEvent,
    WebhookEventRecord,
    parse_webhook_event,
)
from pydantic import ValidationError
import pytest


def test_capture_event_resolves_order_from_related_ids():
    event = parse_webhook_event({
        "id": "WH-1",
        "event_type": "PAYMENT.CAPTURE.COMPLETED",
        "resource": {"id": "CAP-1", "supplementary_data": {"related_ids": {"order_id": "O1"}}},
    })

    assert isinstance(event, CaptureCompleted)
    assert event.capture_id == "CAP-1"
    assert event.paypal_order_id == "O1"


def test_refund_event_falls_back_to_up_link():
    event = parse_webhook_event({
        "id": "WH-2",
        "event_type": "PAYMENT.CAPTURE.REFUNDED",
        "resource": {
            "id": "R-1",
            "links": [
                {"href": "https://api.sandbox.paypal.com/v2/payments/refunds/R-1", "rel": "self"},
                {"href": "https://api.sandbox.paypal.com/v2/checkout/orders/O2", "rel": "up"},
            ],
        },
    })

    assert isinstance(event, CaptureRefunded)
    assert event.paypal_order_id == "O2"


def test_order_event_uses_resource_id():
    event = parse_webhook_event({"id": "WH-3", "event_type": "CHECKOUT.ORDER.APPROVED", "resource": {"id": "O3"}})

    assert isinstance(event, OrderApproved)
    assert event.paypal_order_id == "O3"


def test_unknown_event_type():
    event = parse_webhook_event({"id": "WH-4", "event_type": "CUSTOMER.DISPUTE.CREATED", "resource": {"dispute_id": "PP-D-1"}})

    assert isinstance(event, UnrecognizedEvent)
    assert event.paypal_order_id is None


def test_event_without_id_is_invalid():
    with pytest.raises(ValidationError):
        parse_webhook_event({"event_type": "PAYMENT.CAPTURE.DENIED"})


def test_event_record():
    event = parse_webhook_event({"id": "WH-5", "event_type": "PAYMENT.CAPTURE.DENIED", "resource_type": "capture",
                                 "resource": {"id": "CAP-5", "supplementary_data": {"related_ids": {"order_id": "O5"}}}})

    record = WebhookEventRecord.from_event(event)

    assert record.paypal_order_id == "O5"
    assert record.applied is False
    assert record.payload["resource"]["id"] == "CAP-5"
