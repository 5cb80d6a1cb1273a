"""Stock levels and the checks made against them before an order is placed."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from .models import Item, ItemsWithQuantity
from .tracing import current_span

log = logging.getLogger(__name__)


class ItemNotFoundError(LookupError):
    """The requested item is not stocked."""

    def __init__(self, message: str = "item not found") -> None:
        super().__init__(message)


def _default_stock() -> list[Item]:
    return [
        Item(id="2", name="Potato Chips", price_id="price_1QqmZmP3SxpbeGudtiSa4i9P", quantity=10),
        Item(id="1", name="Cheese Burger", price_id="price_1QqmZKP3SxpbeGudwP2hHhHl", quantity=20),
    ]


class StockStore:
    """Items on hand, keyed by item id."""

    def __init__(self, items: Iterable[Item] | None = None) -> None:
        stock = _default_stock() if items is None else items
        self._stock: dict[str, Item] = {item.id: item for item in stock}

    def get_item(self, item_id: str) -> Item:
        try:
            return self._stock[item_id]
        except KeyError:
            raise ItemNotFoundError() from None

    def get_items(self, ids: Iterable[str]) -> list[Item]:
        """The stocked items among ``ids``, in the order asked for; unknown ids are skipped."""
        return [self._stock[item_id] for item_id in ids if item_id in self._stock]


class StockService:
    """Answers whether requested quantities can be served."""

    def __init__(self, store: StockStore) -> None:
        self._store = store

    def check_if_items_are_in_stock(
        self, items: Sequence[ItemsWithQuantity]
    ) -> tuple[bool, list[Item]]:
        """Return whether every stocked item covers its request, with priced items.

        When some quantity cannot be served, the stock records themselves are returned.
        """
        in_stock = self._store.get_items(item.id for item in items)

        short = any(
            stocked.id == wanted.id and stocked.quantity < wanted.quantity
            for stocked in in_stock
            for wanted in items
        )
        if short:
            return False, in_stock

        priced = [
            Item(
                id=stocked.id,
                name=stocked.name,
                price_id=stocked.price_id,
                quantity=wanted.quantity,
            )
            for stocked in in_stock
            for wanted in items
            if stocked.id == wanted.id
        ]
        return True, priced

    def get_items(self, ids: Iterable[str]) -> list[Item]:
        return self._store.get_items(ids)


class TelemetryStockService:
    """Records each call as an event on the active span before passing it on."""

    def __init__(self, next_service: StockService) -> None:
        self._next = next_service

    def check_if_items_are_in_stock(
        self, items: Sequence[ItemsWithQuantity]
    ) -> tuple[bool, list[Item]]:
        current_span().add_event(f"CheckIfItemAreInStock: {list(items)}")
        return self._next.check_if_items_are_in_stock(items)

    def get_items(self, ids: Iterable[str]) -> list[Item]:
        ids = list(ids)
        current_span().add_event(f"GetItems: {ids}")
        return self._next.get_items(ids)


class StockHandler:
    """The request-facing entry points of the stock service."""

    def __init__(self, service: StockService | TelemetryStockService) -> None:
        self._service = service

    def check_if_item_is_in_stock(
        self, items: Sequence[ItemsWithQuantity]
    ) -> tuple[bool, list[Item]]:
        return self._service.check_if_items_are_in_stock(items)

    def get_items(self, item_ids: Iterable[str]) -> list[Item]:
        return self._service.get_items(item_ids)