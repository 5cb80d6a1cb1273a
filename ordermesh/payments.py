"""Payment link creation for new orders."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from .models import Order
from .tracing import current_span

log = logging.getLogger(__name__)

DUMMY_LINK = "dummy-link"


class PaymentProcessor(ABC):
    """Creates a link where a customer pays for an order."""

    @abstractmethod
    def create_payment_link(self, order: Order) -> str: ...


class InMemoryProcessor(PaymentProcessor):
    """A processor standing in for a real payment provider.

    Every order it is asked about is kept in ``requested``, and each one is
    answered with the same fixed link.
    """

    def __init__(self, link: str = DUMMY_LINK) -> None:
        self.link = link
        self.requested: list[Order] = []

    def create_payment_link(self, order: Order) -> str:
        self.requested.append(order)
        log.debug("payment link for order %r: %s", order.id, self.link)
        return self.link


class OrdersGateway(ABC):
    """Tells the orders service about a created payment link."""

    @abstractmethod
    def update_order_after_payment_link(self, order_id: str, payment_link: str) -> None: ...


class PaymentsService:
    """Creates payment links and records them on the order."""

    def __init__(self, processor: PaymentProcessor, gateway: OrdersGateway) -> None:
        self._processor = processor
        self._gateway = gateway

    def create_payment(self, order: Order) -> str:
        """Return the payment link, or "" when the order could not be updated with it."""
        payment_link = self._processor.create_payment_link(order)
        try:
            self._gateway.update_order_after_payment_link(order.id, payment_link)
        except Exception as exc:
            log.warning("failed to update order %s with payment link: %s", order.id, exc)
            return ""
        return payment_link


class TelemetryPaymentsService:
    """Records each call as an event on the active span before passing it on."""

    def __init__(self, next_service: PaymentsService) -> None:
        self._next = next_service

    def create_payment(self, order: Order) -> str:
        current_span().add_event(f"CreatePayment: {order}")
        return self._next.create_payment(order)