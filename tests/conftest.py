from azure.core.exceptions import (
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
    ServiceRequestError,
)
from fastapi.testclient import TestClient
from types import SimpleNamespace
from unittest.mock import Mock
from decimal import Decimal
from models.settings import PayPalSettings, ShopSettings
from models.checkout import Cart, CartItem
from models.order import LocalOrder, ShippingAddress
from repository import content as content_repo
from api import create_app
import itertools
import json
import threading
import pytest
import requests


class FakeEntity(dict):
    """azure.data.tables.TableEntityと同じくmetadataにetagを持つ"""
    metadata: dict = {}


class FakeTableClient:
    """contentテーブルのインメモリ実装"""

    def __init__(self):
        self.rows = {}
        self.failing_partitions = set()
        self._etags = itertools.count(1)
        self._lock = threading.Lock()

    def _check_write(self, partition_key):
        if partition_key in self.failing_partitions:
            raise ServiceRequestError(f"store unavailable for {partition_key}")

    def _store(self, entity):
        key = (entity["PartitionKey"], entity["RowKey"])
        self.rows[key] = (dict(entity), f'W/"datetime\'{next(self._etags)}\'"')

    def _entity(self, key):
        data, etag = self.rows[key]
        entity = FakeEntity(data)
        entity.metadata = {"etag": etag}
        return entity

    def create_entity(self, entity):
        self._check_write(entity["PartitionKey"])
        with self._lock:
            if (entity["PartitionKey"], entity["RowKey"]) in self.rows:
                raise ResourceExistsError("The specified entity already exists.")
            self._store(entity)

    def upsert_entity(self, entity, mode=None):
        self._check_write(entity["PartitionKey"])
        self._store(entity)

    def update_entity(self, entity, mode=None, etag=None, match_condition=None):
        self._check_write(entity["PartitionKey"])
        key = (entity["PartitionKey"], entity["RowKey"])
        if key not in self.rows:
            raise ResourceNotFoundError("The specified resource does not exist.")
        if etag is not None and self.rows[key][1] != etag:
            raise ResourceModifiedError("The update condition specified in the request was not satisfied.")
        self._store(entity)

    def get_entity(self, partition_key, row_key):
        if (partition_key, row_key) not in self.rows:
            raise ResourceNotFoundError("The specified resource does not exist.")
        return self._entity((partition_key, row_key))

    def delete_entity(self, partition_key, row_key):
        self.rows.pop((partition_key, row_key), None)

    def query_entities(self, query_filter, parameters=None, results_per_page=None):
        # "a eq @a and (b eq @b and c eq @c)" 形式のみ対応
        conditions = []
        for clause in query_filter.replace("(", "").replace(")", "").split(" and "):
            field, op, param = clause.strip().split(" ")
            assert op == "eq"
            conditions.append((field, (parameters or {})[param.lstrip("@")]))

        for key in list(self.rows):
            data = self.rows[key][0]
            if all(data.get(field) == value for field, value in conditions):
                yield self._entity(key)

    def contents(self, partition_key):
        return [json.loads(data["content"]) for (pk, _), (data, _) in self.rows.items() if pk == partition_key]


@pytest.fixture
def table(monkeypatch):
    fake = FakeTableClient()
    monkeypatch.setattr(content_repo, "TableConnectionManager", lambda: SimpleNamespace(content_table=fake))
    return fake


@pytest.fixture
def paypal_settings():
    return PayPalSettings(
        mode='sandbox',
        client_id='test-client-id',
        client_secret='test-client-secret',
        api_base='https://api-m.sandbox.paypal.com',
        webhook_id='WH-TEST-1',
        timeout_seconds=10,
        front_url='https://shop.example.com',
    )


@pytest.fixture
def shop_settings():
    return ShopSettings(currency_code='EUR', standard_shipping=Decimal("0.00"), express_shipping=Decimal("15.00"))


@pytest.fixture
def paypal_client(paypal_settings):
    client = Mock()
    client.settings = paypal_settings
    return client


@pytest.fixture
def app(paypal_settings, shop_settings, paypal_client):
    fastapi_app = create_app(paypal_settings, shop_settings)
    fastapi_app.state.paypal_client = paypal_client
    return fastapi_app


@pytest.fixture
def client(app, table):
    return TestClient(app)


@pytest.fixture
def cart():
    return Cart(items=[CartItem(product_id='pockimate-01', name='Pockimate', price=Decimal("99.99"), quantity=1)])


@pytest.fixture
def shipping():
    return ShippingAddress(
        full_name='Anna Schmidt',
        email='anna@example.com',
        phone='+49 30 1234567',
        address='Hauptstrasse 1',
        city='Berlin',
        zip_code='10115',
        country='DE',
    )


@pytest.fixture
def make_order(shipping):
    def factory(paypal_order_id='O1', **kwargs) -> LocalOrder:
        values = dict(
            paypal_order_id=paypal_order_id,
            capture_id='CAP-1',
            items=[{'product_id': 'pockimate-01', 'name': 'Pockimate', 'quantity': 1, 'unit_price': '99.99'}],
            subtotal=Decimal("99.99"),
            total=Decimal("99.99"),
            payment_status='paid',
            shipping_address=shipping,
            customer_email=shipping.email,
        )
        values.update(kwargs)
        return LocalOrder(**values)
    return factory


@pytest.fixture
def make_response():
    """requests.Responseのスタブを作る"""
    def factory(status_code=200, json_data=None):
        response = Mock(spec=requests.Response)
        response.status_code = status_code
        response.ok = 200 <= status_code < 400
        response.json.return_value = json_data if json_data is not None else {}
        response.text = str(json_data)
        return response
    return factory
