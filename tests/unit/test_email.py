from api.email import send_order_confirmation
from models.email import EmailContent
from unittest.mock import patch


def test_order_confirmation_content(make_order):
    order = make_order('O1', shipping_cost='15.00', total='114.99')
    order.update_timestamp('create')

    content = EmailContent.order_confirmation(order, "Pockimate")

    assert str(order.id) in content.subject
    assert "Pockimate x 1  €99.99" in content.plainText
    assert "合計: €114.99" in content.plainText
    assert "Berlin 10115" in content.plainText


def test_order_confirmation_html_escapes_customer_input(make_order, shipping):
    address = shipping.model_copy(update={"full_name": "<b>Anna</b>", "city": "Berlin<script>"})
    items = [{'product_id': 'pockimate-01', 'name': '<img src=x>', 'quantity': 1, 'unit_price': '99.99'}]
    order = make_order('O1', shipping_address=address, items=items)

    content = EmailContent.order_confirmation(order)

    assert "<b>Anna</b>" not in content.html
    assert "&lt;b&gt;Anna&lt;/b&gt;" in content.html
    assert "<script>" not in content.html
    assert "&lt;img src=x&gt;" in content.html
    # テキスト版はそのまま
    assert "<b>Anna</b> 様" in content.plainText


def test_send_order_confirmation(make_order, monkeypatch):
    monkeypatch.setenv("SENDER_ADDRESS", "DoNotReply@pockimate.example")
    monkeypatch.delenv("RECIPENTS_ADDRESS", raising=False)
    order = make_order('O1')

    with patch("api.email.EmailManager") as manager:
        send_order_confirmation(order)

    message = manager.return_value.client.begin_send.call_args.args[0]
    assert message["senderAddress"] == "DoNotReply@pockimate.example"
    assert message["recipients"]["to"] == [{"address": "anna@example.com", "displayName": "Anna Schmidt"}]


def test_send_failure_is_logged_not_raised(make_order, monkeypatch):
    monkeypatch.delenv("EMAIL_CONNECTION_STRING", raising=False)

    with patch("api.email.EmailManager", side_effect=ValueError("EMAIL_CONNECTION_STRING環境変数が設定されていません")):
        assert send_order_confirmation(make_order('O1')) is None
