"""Order storage and the order service with its logging and tracing layers."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, TypeVar

from bson import ObjectId

from .common import NoItemsError, NoStockError
from .models import CreateOrderRequest, GetOrderRequest, Item, ItemsWithQuantity, Order
from .tracing import current_span

log = logging.getLogger(__name__)

DB_NAME = "orders"
COLLECTION_NAME = "orders"

_T = TypeVar("_T")


class OrderNotFoundError(LookupError):
    """No order matches the given id and customer."""


@dataclass
class StoredOrder:
    """An order as it is kept in the store."""

    id: str = ""
    customer_id: str = ""
    status: str = ""
    payment_link: str = ""
    items: list[Item] = field(default_factory=list)

    def to_proto(self) -> Order:
        """The order as exchanged between services; items are not carried over."""
        return Order(
            id=self.id,
            customer_id=self.customer_id,
            status=self.status,
            payment_link=self.payment_link,
        )


class StockGateway(ABC):
    """Asks the stock service whether items can be served."""

    @abstractmethod
    def check_if_item_is_in_stock(
        self, customer_id: str, items: Sequence[ItemsWithQuantity]
    ) -> tuple[bool, list[Item]]: ...


class InMemoryOrdersStore:
    """Orders kept in memory, safe to share between threads."""

    def __init__(self) -> None:
        self._orders: dict[str, StoredOrder] = {}
        self._lock = threading.Lock()

    def create(self, order: StoredOrder) -> str:
        order_id = str(ObjectId())
        with self._lock:
            self._orders[order_id] = replace(order, id=order_id, items=list(order.items))
        return order_id

    def get(self, order_id: str, customer_id: str) -> StoredOrder:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None or order.customer_id != customer_id:
                raise OrderNotFoundError(f"order {order_id} not found")
            return replace(order, items=list(order.items))

    def update(self, order_id: str, new_order: Order) -> None:
        """Overwrite status and payment link; an unknown id changes nothing."""
        with self._lock:
            order = self._orders.get(order_id)
            if order is not None:
                order.payment_link = new_order.payment_link
                order.status = new_order.status


def _item_to_document(item: Item) -> dict[str, Any]:
    return {"id": item.id, "name": item.name, "quantity": item.quantity, "priceid": item.price_id}


def _item_from_document(doc: dict[str, Any]) -> Item:
    return Item(
        id=doc.get("id", ""),
        name=doc.get("name", ""),
        quantity=doc.get("quantity", 0),
        price_id=doc.get("priceid", ""),
    )


def _order_to_document(order: StoredOrder) -> dict[str, Any]:
    doc: dict[str, Any] = {}
    if order.id:
        doc["_id"] = ObjectId(order.id)
    if order.customer_id:
        doc["customerID"] = order.customer_id
    if order.status:
        doc["status"] = order.status
    if order.payment_link:
        doc["paymentLink"] = order.payment_link
    if order.items:
        doc["items"] = [_item_to_document(item) for item in order.items]
    return doc


def _order_from_document(doc: dict[str, Any]) -> StoredOrder:
    raw_id = doc.get("_id")
    return StoredOrder(
        id="" if raw_id is None else str(raw_id),
        customer_id=doc.get("customerID", ""),
        status=doc.get("status", ""),
        payment_link=doc.get("paymentLink", ""),
        items=[_item_from_document(entry) for entry in doc.get("items") or []],
    )


def _object_id_or_zero(order_id: str) -> ObjectId:
    return ObjectId(order_id) if ObjectId.is_valid(order_id) else ObjectId(b"\x00" * 12)


class MongoOrdersStore:
    """Orders kept in a MongoDB collection."""

    def __init__(self, client: Any, database: str = DB_NAME, collection: str = COLLECTION_NAME) -> None:
        self._collection = client[database][collection]

    def create(self, order: StoredOrder) -> str:
        result = self._collection.insert_one(_order_to_document(order))
        return str(result.inserted_id)

    def get(self, order_id: str, customer_id: str) -> StoredOrder:
        key: Any = ObjectId(order_id) if ObjectId.is_valid(order_id) else order_id
        doc = self._collection.find_one({"_id": key, "customerID": customer_id})
        if doc is None:
            raise OrderNotFoundError(f"order {order_id} not found")
        return _order_from_document(doc)

    def update(self, order_id: str, new_order: Order) -> None:
        self._collection.update_one(
            {"_id": _object_id_or_zero(order_id)},
            {"$set": {"paymentLink": new_order.payment_link, "status": new_order.status}},
        )


def merge_items_with_quantities(items: Sequence[ItemsWithQuantity]) -> list[ItemsWithQuantity]:
    """Combine entries with the same id, summing quantities, in order of first appearance."""
    merged: dict[str, ItemsWithQuantity] = {}
    for item in items:
        if item.id in merged:
            merged[item.id].quantity += item.quantity
        else:
            merged[item.id] = ItemsWithQuantity(id=item.id, quantity=item.quantity)
    return list(merged.values())


class OrdersService:
    """Creates, validates, reads and updates orders."""

    def __init__(self, store: InMemoryOrdersStore | MongoOrdersStore, gateway: StockGateway) -> None:
        self._store = store
        self._gateway = gateway

    def update_order(self, order: Order) -> Order:
        self._store.update(order.id, order)
        return order

    def get_order(self, request: GetOrderRequest) -> Order:
        return self._store.get(request.order_id, request.customer_id).to_proto()

    def create_order(self, request: CreateOrderRequest, items: list[Item]) -> Order:
        order_id = self._store.create(
            StoredOrder(customer_id=request.customer_id, status="pending", items=items)
        )
        return Order(id=order_id, customer_id=request.customer_id, status="pending", items=items)

    def validate_orders(self, request: CreateOrderRequest) -> list[Item]:
        """Check the request against stock and return the priced items."""
        if not request.items:
            raise NoItemsError()
        merged = merge_items_with_quantities(request.items)
        in_stock, items = self._gateway.check_if_item_is_in_stock(request.customer_id, merged)
        if not in_stock:
            raise NoStockError()
        return items


class LoggingOrdersService:
    """Logs how long each call to the wrapped service took."""

    def __init__(self, next_service: Any) -> None:
        self._next = next_service

    def _timed(self, name: str, call: Callable[..., _T], *args: Any) -> _T:
        start = time.perf_counter()
        try:
            return call(*args)
        finally:
            log.info("%s", name, extra={"took": time.perf_counter() - start})

    def update_order(self, order: Order) -> Order:
        return self._timed("UpdateOrder", self._next.update_order, order)

    def get_order(self, request: GetOrderRequest) -> Order:
        return self._timed("GetOrder", self._next.get_order, request)

    def create_order(self, request: CreateOrderRequest, items: list[Item]) -> Order:
        return self._timed("CreateOrder", self._next.create_order, request, items)

    def validate_orders(self, request: CreateOrderRequest) -> list[Item]:
        return self._timed("ValidateOrder", self._next.validate_orders, request)


class TelemetryOrdersService:
    """Records each call as an event on the active span before passing it on."""

    def __init__(self, next_service: Any) -> None:
        self._next = next_service

    def update_order(self, order: Order) -> Order:
        current_span().add_event(f"UpdateOrder: {order}")
        return self._next.update_order(order)

    def get_order(self, request: GetOrderRequest) -> Order:
        current_span().add_event(f"GetOrder: {request}")
        return self._next.get_order(request)

    def create_order(self, request: CreateOrderRequest, items: list[Item]) -> Order:
        current_span().add_event(f"CreateOrder: {request}")
        return self._next.create_order(request, items)

    def validate_orders(self, request: CreateOrderRequest) -> list[Item]:
        current_span().add_event(f"ValidateOrder: {request}")
        return self._next.validate_orders(request)