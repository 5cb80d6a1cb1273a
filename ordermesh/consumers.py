"""Handlers for the broker messages each service consumes."""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import Any

from .broker import ORDER_CREATED_EVENT, Channel, Delivery, extract_amqp_headers, handle_retry
from .models import Order
from .tracing import start_span

log = logging.getLogger(__name__)


class Outcome(Enum):
    """What to do with a delivery once it has been handled."""

    ACK = "ack"
    NACK = "nack"
    UNACKED = "unacked"


class KitchenGateway(ABC):
    """Tells the orders service that an order has been prepared."""

    @abstractmethod
    def update_order(self, order: Order) -> None: ...


def _cook_order() -> None:
    log.info("Cooking order...")
    time.sleep(5)
    log.info("Order cooked!")


def _decode_order(body: bytes) -> Order:
    return Order.from_dict(json.loads(body))


def _span_name(queue_name: str) -> str:
    return f"AMQP - consume - {queue_name}"


def _retry(channel: Channel, delivery: Delivery, sleep: Callable[[float], None]) -> None:
    try:
        handle_retry(channel, delivery, sleep)
    except Exception as exc:
        log.error("error handling the retry: %s", exc)


class KitchenConsumer:
    """Cooks paid orders and marks them ready."""

    def __init__(
        self,
        gateway: KitchenGateway,
        queue_name: str = "",
        cook: Callable[[], None] = _cook_order,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._gateway = gateway
        self.queue_name = queue_name
        self._cook = cook
        self._sleep = sleep

    def handle(self, channel: Channel, delivery: Delivery) -> Outcome:
        with start_span(_span_name(self.queue_name)) as span:
            try:
                order = _decode_order(delivery.body)
            except ValueError as exc:
                log.error("Error unmarshalling order: %s", exc)
                return Outcome.NACK

            if order.status == "paid":
                self._cook()
                span.add_event(f"Order Cooked: {order}")
                try:
                    self._gateway.update_order(
                        Order(status="ready", id=order.id, customer_id=order.customer_id)
                    )
                except Exception as exc:
                    log.error("error updating the order %s: %s", order, exc)
                    _retry(channel, delivery, self._sleep)
                    return Outcome.UNACKED

            span.add_event(f"order.updated: {order}")
            return Outcome.ACK


class OrdersConsumer:
    """Applies order updates published by other services."""

    def __init__(
        self, service: Any, queue_name: str = "", sleep: Callable[[float], None] = time.sleep
    ) -> None:
        self._service = service
        self.queue_name = queue_name
        self._sleep = sleep

    def handle(self, channel: Channel, delivery: Delivery) -> Outcome:
        log.info("Received message: %s", delivery.body)
        parent = extract_amqp_headers(delivery.headers)
        with start_span(_span_name(self.queue_name), parent) as span:
            try:
                order = _decode_order(delivery.body)
            except ValueError as exc:
                log.error("failed to unmarshal order: %s", exc)
                return Outcome.NACK

            try:
                self._service.update_order(order)
            except Exception as exc:
                log.error("failed to update order: %s", exc)
                _retry(channel, delivery, self._sleep)
                return Outcome.UNACKED

            span.add_event("order.updated")
            log.info("Order has been updated from AMQP")
            return Outcome.ACK


class PaymentsConsumer:
    """Creates payment links for newly created orders."""

    def __init__(
        self,
        service: Any,
        queue_name: str = ORDER_CREATED_EVENT,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._service = service
        self.queue_name = queue_name
        self._sleep = sleep

    def handle(self, channel: Channel, delivery: Delivery) -> Outcome:
        log.info("Received message: %s", delivery.body)
        parent = extract_amqp_headers(delivery.headers)
        with start_span(_span_name(self.queue_name), parent) as span:
            try:
                order = _decode_order(delivery.body)
            except ValueError as exc:
                log.error("failed to unmarshal order: %s", exc)
                return Outcome.NACK

            try:
                payment_link = self._service.create_payment(order)
            except Exception as exc:
                log.error("failed to create payment link: %s", exc)
                _retry(channel, delivery, self._sleep)
                return Outcome.NACK

            span.add_event(f"payment.created: {payment_link}")
            log.info("Payment link %s", payment_link)
            return Outcome.ACK


class StockConsumer:
    """Acknowledges paid-order announcements."""

    def __init__(self, queue_name: str = "") -> None:
        self.queue_name = queue_name

    def handle(self, channel: Channel, delivery: Delivery) -> Outcome:
        parent = extract_amqp_headers(delivery.headers)
        with start_span(_span_name(self.queue_name), parent):
            log.info("Received a message: %s", delivery.body)
            log.info("Order received: %s", delivery.body.decode("utf-8", "replace"))
            return Outcome.ACK