from models.query import QueryFilter
from repository import content as content_repo
from repository import order as order_repo
from utils.errors import PersistenceError, CheckoutStateError
from azure.core.exceptions import ResourceModifiedError
from unittest.mock import Mock
import pytest


def test_create_is_keyed_by_type_and_id(table):
    assert content_repo.create_content("webhook_event", {"id": "WH-1", "event_type": "PAYMENT.CAPTURE.DENIED"}) is True
    assert content_repo.create_content("webhook_event", {"id": "WH-1", "event_type": "PAYMENT.CAPTURE.DENIED"}) is False
    # 種別が違えば同じIDでも別レコード
    assert content_repo.create_content("order", {"id": "WH-1"}) is True


def test_content_without_id_is_rejected(table):
    with pytest.raises(ValueError):
        content_repo.upsert_content("cart", {"items": []})


def test_get_missing_content(table):
    with pytest.raises(ValueError):
        content_repo.get_content("order", "missing")


def test_query_by_promoted_column(table):
    content_repo.upsert_content("order", {"id": "1", "paypal_order_id": "O1", "items": [{"name": "a"}]})
    content_repo.upsert_content("order", {"id": "2", "paypal_order_id": "O2"})
    content_repo.upsert_content("checkout_session", {"id": "3", "paypal_order_id": "O1"})

    qf = QueryFilter()
    qf.add_eq("paypal_order_id", "O1")
    records = content_repo.query_contents("order", qf)

    assert [r.id for r in records] == ["1"]
    assert records[0].content["items"] == [{"name": "a"}]
    assert records[0].etag


def test_store_errors_become_persistence_errors(table):
    table.failing_partitions.add("order")

    with pytest.raises(PersistenceError) as e:
        content_repo.upsert_content("order", {"id": "1"})
    assert e.value.retryable


def test_atomic_update_retries_on_concurrent_write(table, monkeypatch):
    content_repo.upsert_content("order", {"id": "1", "count": 0})
    update_entity = table.update_entity
    calls = []

    def racing_update(entity, **kwargs):
        if not calls:
            # 読み込み後に別の書き込みが割り込む
            content_repo.upsert_content("order", {"id": "1", "count": 10})
        calls.append(entity)
        return update_entity(entity, **kwargs)

    monkeypatch.setattr(table, "update_entity", racing_update)

    record = content_repo.update_content_atomic("order", "1", lambda c: {**c, "count": c["count"] + 1})

    assert record.content["count"] == 11
    assert len(calls) == 2
    assert content_repo.get_content("order", "1").content["count"] == 11


def test_atomic_update_gives_up_after_max_attempts(table, monkeypatch):
    content_repo.upsert_content("order", {"id": "1", "count": 0})
    monkeypatch.setattr(table, "update_entity", Mock(side_effect=ResourceModifiedError("conflict")))

    with pytest.raises(PersistenceError):
        content_repo.update_content_atomic("order", "1", lambda c: {**c, "count": 1}, max_attempts=2)


def test_atomic_update_without_change_does_not_write(table, monkeypatch):
    content_repo.upsert_content("order", {"id": "1", "count": 0})
    update_entity = Mock()
    monkeypatch.setattr(table, "update_entity", update_entity)

    record = content_repo.update_content_atomic("order", "1", lambda c: None)

    assert record.content["count"] == 0
    update_entity.assert_not_called()


def test_payment_event_applied_once(table, make_order):
    order = make_order('O1', payment_status='pending')
    order_repo.create_order(order)

    assert order_repo.apply_payment_event(str(order.id), "WH-1", 'paid') is True
    assert order_repo.apply_payment_event(str(order.id), "WH-1", 'paid') is False
    assert order_repo.get_order(str(order.id)).applied_event_ids == ["WH-1"]


def test_terminal_order_status_is_final(table, make_order):
    order = make_order('O1', status='Cancelled')
    order_repo.create_order(order)

    with pytest.raises(CheckoutStateError):
        order_repo.update_order_status(str(order.id), 'Shipped')
    # 支払い情報の更新は受け付ける
    assert order_repo.apply_payment_event(str(order.id), "WH-2", 'refunded') is True


def test_find_order_by_paypal_id(table, make_order):
    order = make_order('O7')
    order_repo.create_order(order)

    assert order_repo.find_order_by_paypal_id('O7').id == order.id
    assert order_repo.find_order_by_paypal_id('O8') is None
