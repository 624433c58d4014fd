from managers.paypal_manager import PayPalClient
from repository import order as order_repo
from repository import webhook_event as webhook_repo
from unittest.mock import Mock
import json
import pytest

HEADERS = {
    "paypal-transmission-id": "69cd13f0-d67a-11e5-baa3-778b53f4ae55",
    "paypal-transmission-time": "2026-10-19T10:20:30Z",
    "paypal-cert-url": "https://api.sandbox.paypal.com/v1/notifications/certs/CERT-360caa42-fca2a594-1d93a270",
    "paypal-auth-algo": "SHA256withRSA",
    "paypal-transmission-sig": "lmI95Jx3Y9nhR5SJWlHVIWpg4AgFk7n9bCHSRxbrd8A9zrhdu2rMyFrmz+Zjh3s3boXB07VXCXUZy/UFzUlnGJn0wDugt7FlSvdKeIJenLRemUxYCPVoEZzg9VFNqOa48gMkvF+XTpxBeUx/kWy6B5cp7GkT2+pOowfRK7OaynuxUoKW3JcMWw272VKjLTtTAShncla7tGF+55rxyt2KNZIIqxNMJ48RDZheGU5w1npu9dZHnPgTXB9iomeVRoD8O/jhRpnKsGrDschyNdkeh81BJJMH4Ctc6lnCCquoP/GzCzz33MMsNdid7vL/NIWaCsekQpW26FpWPi/tfj8nLA==",
}


def capture_event(event_id, event_type, order_id, capture_id="3C679366HH908993F"):
    return {
        "id": event_id,
        "event_type": event_type,
        "resource_type": "capture",
        "create_time": "2026-10-19T10:20:29Z",
        "resource": {
            "id": capture_id,
            "status": "COMPLETED",
            "supplementary_data": {"related_ids": {"order_id": order_id}},
        },
    }


@pytest.fixture
def verification(make_response):
    """PayPalの署名検証APIの応答を切り替える"""
    state = {"status": "SUCCESS"}

    def fake_request(method, url, **kwargs):
        if url.endswith("/v1/oauth2/token"):
            return make_response(200, {"access_token": "A21AAF-test", "expires_in": 32400})
        return make_response(200, {"verification_status": state["status"]})

    state["request"] = Mock(side_effect=fake_request)
    return state


@pytest.fixture
def webhook_client(app, client, paypal_settings, verification):
    paypal = PayPalClient(paypal_settings)
    paypal.session.request = verification["request"]
    app.state.paypal_client = paypal
    return client


def post_event(client, payload, headers=HEADERS):
    return client.post("/paypal-webhook", content=json.dumps(payload), headers=headers)


def verify_calls(verification):
    return [c for c in verification["request"].call_args_list if c.args[1].endswith("/verify-webhook-signature")]


def test_capture_denied_marks_order_payment_failed(webhook_client, make_order):
    order = make_order('O2', payment_status='pending')
    order_repo.create_order(order)

    response = post_event(webhook_client, capture_event("WH-DENIED-1", "PAYMENT.CAPTURE.DENIED", "O2"))

    assert response.status_code == 200
    assert response.json() == {"received": True, "event_id": "WH-DENIED-1", "event_type": "PAYMENT.CAPTURE.DENIED"}
    assert order_repo.get_order(str(order.id)).payment_status == 'payment_failed'


def test_capture_denied_without_local_order_is_recorded_only(webhook_client, table):
    response = post_event(webhook_client, capture_event("WH-DENIED-2", "PAYMENT.CAPTURE.DENIED", "O2"))

    assert response.status_code == 200
    assert table.contents("order") == []
    record = webhook_repo.get_event("WH-DENIED-2")
    assert record.applied is True
    assert record.outcome == "no_local_order"
    assert record.paypal_order_id == "O2"


def test_missing_signature_header_returns_401(webhook_client, make_order, verification):
    order = make_order('O3', payment_status='pending')
    order_repo.create_order(order)
    headers = {k: v for k, v in HEADERS.items() if k != "paypal-transmission-sig"}

    response = post_event(webhook_client, capture_event("WH-3", "PAYMENT.CAPTURE.COMPLETED", "O3"), headers)

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid webhook signature"}
    assert order_repo.get_order(str(order.id)).payment_status == 'pending'
    verification["request"].assert_not_called()


def test_failed_verification_returns_401(webhook_client, make_order, verification, table):
    verification["status"] = "FAILURE"
    order = make_order('O4', payment_status='pending')
    order_repo.create_order(order)

    response = post_event(webhook_client, capture_event("WH-4", "PAYMENT.CAPTURE.COMPLETED", "O4"))

    assert response.status_code == 401
    assert len(verify_calls(verification)) == 1
    assert order_repo.get_order(str(order.id)).payment_status == 'pending'
    assert table.contents("webhook_event") == []


def test_capture_completed_marks_order_paid(webhook_client, make_order, verification):
    order = make_order('O5', payment_status='pending', capture_id=None)
    order_repo.create_order(order)

    response = post_event(webhook_client, capture_event("WH-5", "PAYMENT.CAPTURE.COMPLETED", "O5", capture_id="CAP-55"))

    assert response.status_code == 200
    saved = order_repo.get_order(str(order.id))
    assert saved.payment_status == 'paid'
    assert saved.capture_id == "CAP-55"
    assert len(verify_calls(verification)) == 1


def test_redelivered_event_is_not_applied_twice(webhook_client, make_order):
    order = make_order('O6', payment_status='pending')
    order_repo.create_order(order)
    completed = capture_event("WH-6A", "PAYMENT.CAPTURE.COMPLETED", "O6")
    refunded = capture_event("WH-6B", "PAYMENT.CAPTURE.REFUNDED", "O6")

    assert post_event(webhook_client, completed).status_code == 200
    assert post_event(webhook_client, refunded).status_code == 200
    # 最初のイベントの再送で状態が巻き戻らないこと
    response = post_event(webhook_client, completed)

    assert response.status_code == 200
    assert response.json()["event_id"] == "WH-6A"
    saved = order_repo.get_order(str(order.id))
    assert saved.payment_status == 'refunded'
    assert saved.applied_event_ids == ["WH-6A", "WH-6B"]


def test_capture_reversed_flags_order_for_review(webhook_client, make_order):
    order = make_order('O7')
    order_repo.create_order(order)

    response = post_event(webhook_client, capture_event("WH-7", "PAYMENT.CAPTURE.REVERSED", "O7"))

    assert response.status_code == 200
    saved = order_repo.get_order(str(order.id))
    assert saved.payment_status == 'reversed'
    assert saved.needs_review is True


def test_informational_and_unknown_events_do_not_change_orders(webhook_client, make_order):
    order = make_order('O8', payment_status='pending')
    order_repo.create_order(order)
    approved = {"id": "WH-8A", "event_type": "CHECKOUT.ORDER.APPROVED", "resource_type": "checkout-order",
                "resource": {"id": "O8", "status": "APPROVED"}}
    unknown = {"id": "WH-8B", "event_type": "BILLING.SUBSCRIPTION.CREATED", "resource": {"id": "I-1"}}

    assert post_event(webhook_client, approved).json()["event_type"] == "CHECKOUT.ORDER.APPROVED"
    assert post_event(webhook_client, unknown).status_code == 200

    assert order_repo.get_order(str(order.id)).payment_status == 'pending'
    assert webhook_repo.get_event("WH-8A").outcome == "logged"
    assert webhook_repo.get_event("WH-8B").outcome == "ignored"


def test_store_failure_returns_500(webhook_client, table):
    table.failing_partitions.add("webhook_event")

    response = post_event(webhook_client, capture_event("WH-9", "PAYMENT.CAPTURE.COMPLETED", "O9"))

    assert response.status_code == 500


def test_non_post_is_rejected(webhook_client):
    response = webhook_client.get("/paypal-webhook")
    assert response.status_code == 405


def test_non_object_payload_returns_400(webhook_client, table):
    response = post_event(webhook_client, ["PAYMENT.CAPTURE.COMPLETED"])

    assert response.status_code == 400
    assert table.contents("webhook_event") == []
