import json

from ordermesh.broker import DLQ, Channel, Delivery
from ordermesh.consumers import (
    KitchenConsumer,
    KitchenGateway,
    OrdersConsumer,
    Outcome,
    PaymentsConsumer,
    StockConsumer,
)
from ordermesh.models import Order


class FakeChannel(Channel):
    def __init__(self):
        self.published = []

    def exchange_declare(self, name, kind, durable=True):
        pass

    def queue_declare(self, name, durable=True, exclusive=False):
        return name

    def queue_bind(self, queue, exchange, routing_key=""):
        pass

    def publish(self, exchange, routing_key, publishing):
        self.published.append((exchange, routing_key, publishing))


class FakeKitchenGateway(KitchenGateway):
    def __init__(self, fail=False):
        self.fail = fail
        self.updates = []

    def update_order(self, order):
        self.updates.append(order)
        if self.fail:
            raise RuntimeError("unavailable")


class FakeOrdersService:
    def __init__(self, fail=False):
        self.fail = fail
        self.updates = []

    def update_order(self, order):
        self.updates.append(order)
        if self.fail:
            raise RuntimeError("unavailable")
        return order


class FakePaymentsService:
    def __init__(self, fail=False):
        self.fail = fail
        self.orders = []

    def create_payment(self, order):
        self.orders.append(order)
        if self.fail:
            raise RuntimeError("unavailable")
        return "dummy-link"


def order_body(**fields):
    return json.dumps(fields).encode()


def test_kitchen_cooks_paid_order_and_marks_ready():
    cooked = []
    gateway = FakeKitchenGateway()
    consumer = KitchenConsumer(gateway, cook=lambda: cooked.append(True))
    delivery = Delivery(body=order_body(ID="o1", CustomerID="c1", Status="paid"))
    assert consumer.handle(FakeChannel(), delivery) is Outcome.ACK
    assert cooked == [True]
    assert gateway.updates == [Order(id="o1", customer_id="c1", status="ready")]


def test_kitchen_ignores_unpaid_order():
    gateway = FakeKitchenGateway()
    consumer = KitchenConsumer(gateway, cook=lambda: None)
    delivery = Delivery(body=order_body(ID="o1", Status="pending"))
    assert consumer.handle(FakeChannel(), delivery) is Outcome.ACK
    assert gateway.updates == []


def test_kitchen_rejects_bad_body():
    consumer = KitchenConsumer(FakeKitchenGateway(), cook=lambda: None)
    assert consumer.handle(FakeChannel(), Delivery(body=b"not json")) is Outcome.NACK


def test_kitchen_retries_when_update_fails():
    sleeps = []
    channel = FakeChannel()
    consumer = KitchenConsumer(FakeKitchenGateway(fail=True), cook=lambda: None, sleep=sleeps.append)
    delivery = Delivery(
        body=order_body(ID="o1", Status="paid"), exchange="order.paid", routing_key=""
    )
    assert consumer.handle(channel, delivery) is Outcome.UNACKED
    assert sleeps == [1]
    exchange, routing_key, publishing = channel.published[0]
    assert (exchange, routing_key) == ("order.paid", "")
    assert publishing.headers["x-retry-count"] == 1
    assert publishing.body == delivery.body


def test_orders_consumer_updates_order():
    service = FakeOrdersService()
    delivery = Delivery(body=order_body(ID="o1", Status="waiting_payment", PaymentLink="link"))
    assert OrdersConsumer(service).handle(FakeChannel(), delivery) is Outcome.ACK
    assert service.updates == [Order(id="o1", status="waiting_payment", payment_link="link")]


def test_orders_consumer_rejects_bad_body():
    service = FakeOrdersService()
    assert OrdersConsumer(service).handle(FakeChannel(), Delivery(body=b"[1, 2")) is Outcome.NACK
    assert service.updates == []


def test_orders_consumer_moves_to_dead_letters_after_retries():
    channel = FakeChannel()
    sleeps = []
    consumer = OrdersConsumer(FakeOrdersService(fail=True), sleep=sleeps.append)
    delivery = Delivery(body=order_body(ID="o1"), headers={"x-retry-count": 2}, exchange="order.paid")
    assert consumer.handle(channel, delivery) is Outcome.UNACKED
    assert sleeps == []
    exchange, routing_key, publishing = channel.published[0]
    assert (exchange, routing_key) == ("", DLQ)
    assert publishing.headers["x-retry-count"] == 3


def test_orders_consumer_accepts_trace_headers():
    service = FakeOrdersService()
    headers = {"traceparent": "00-" + "a" * 32 + "-" + "b" * 16 + "-01"}
    delivery = Delivery(body=order_body(ID="o2"), headers=headers)
    assert OrdersConsumer(service).handle(FakeChannel(), delivery) is Outcome.ACK
    assert service.updates[0].id == "o2"


def test_payments_consumer_creates_payment():
    service = FakePaymentsService()
    delivery = Delivery(body=order_body(ID="o1", CustomerID="c1", Status="pending"))
    assert PaymentsConsumer(service).handle(FakeChannel(), delivery) is Outcome.ACK
    assert service.orders == [Order(id="o1", customer_id="c1", status="pending")]


def test_payments_consumer_retries_then_rejects():
    channel = FakeChannel()
    sleeps = []
    consumer = PaymentsConsumer(FakePaymentsService(fail=True), sleep=sleeps.append)
    delivery = Delivery(body=order_body(ID="o1"), routing_key="order.created")
    assert consumer.handle(channel, delivery) is Outcome.NACK
    assert sleeps == [1]
    assert channel.published[0][:2] == ("", "order.created")


def test_payments_consumer_queue_name_default():
    assert PaymentsConsumer(FakePaymentsService()).queue_name == "order.created"


def test_stock_consumer_acknowledges():
    channel = FakeChannel()
    assert StockConsumer().handle(channel, Delivery(body=b"o1")) is Outcome.ACK
    assert channel.published == []