import pytest

from ordermesh.models import Item, ItemsWithQuantity
from ordermesh.stock import (
    ItemNotFoundError,
    StockHandler,
    StockService,
    StockStore,
    TelemetryStockService,
)
from ordermesh.tracing import start_span

BURGER_PRICE = "price_1QqmZKP3SxpbeGudwP2hHhHl"
CHIPS_PRICE = "price_1QqmZmP3SxpbeGudtiSa4i9P"


@pytest.fixture
def service():
    return StockService(StockStore())


def test_default_store_holds_seeded_items():
    store = StockStore()
    assert store.get_item("1") == Item(
        id="1", name="Cheese Burger", quantity=20, price_id=BURGER_PRICE
    )
    assert store.get_item("2") == Item(
        id="2", name="Potato Chips", quantity=10, price_id=CHIPS_PRICE
    )


def test_get_item_unknown_raises():
    with pytest.raises(ItemNotFoundError, match="item not found"):
        StockStore().get_item("missing")


def test_get_items_skips_unknown_and_keeps_order():
    items = StockStore().get_items(["2", "missing", "1"])
    assert [item.id for item in items] == ["2", "1"]


def test_get_items_none_found_is_empty():
    assert StockStore().get_items(["x", "y"]) == []


def test_custom_store_contents():
    store = StockStore([Item(id="a", name="Apple", quantity=3)])
    assert store.get_items(["a", "1"]) == [Item(id="a", name="Apple", quantity=3)]


def test_in_stock_returns_priced_items_with_requested_quantity(service):
    ok, items = service.check_if_items_are_in_stock([ItemsWithQuantity(id="1", quantity=3)])
    assert ok is True
    assert items == [Item(id="1", name="Cheese Burger", quantity=3, price_id=BURGER_PRICE)]


def test_exact_quantity_is_in_stock(service):
    ok, items = service.check_if_items_are_in_stock([ItemsWithQuantity(id="2", quantity=10)])
    assert ok is True
    assert items[0].quantity == 10


def test_short_quantity_returns_stock_records(service):
    ok, items = service.check_if_items_are_in_stock([ItemsWithQuantity(id="2", quantity=11)])
    assert ok is False
    assert items == [Item(id="2", name="Potato Chips", quantity=10, price_id=CHIPS_PRICE)]


def test_unknown_items_are_ignored(service):
    ok, items = service.check_if_items_are_in_stock([ItemsWithQuantity(id="nope", quantity=1)])
    assert ok is True
    assert items == []


def test_check_does_not_change_stock(service):
    service.check_if_items_are_in_stock([ItemsWithQuantity(id="1", quantity=5)])
    assert service.get_items(["1"])[0].quantity == 20


def test_telemetry_records_event_and_passes_through(service):
    telemetry = TelemetryStockService(service)
    with start_span("request") as span:
        items = telemetry.get_items(["1"])
        ok, _ = telemetry.check_if_items_are_in_stock([ItemsWithQuantity(id="1", quantity=1)])
    assert [item.id for item in items] == ["1"]
    assert ok is True
    assert span.events[0].startswith("GetItems: ")
    assert span.events[1].startswith("CheckIfItemAreInStock: ")


def test_handler_delegates_to_service(service):
    handler = StockHandler(TelemetryStockService(service))
    ok, items = handler.check_if_item_is_in_stock([ItemsWithQuantity(id="2", quantity=2)])
    assert ok is True
    assert items == [Item(id="2", name="Potato Chips", quantity=2, price_id=CHIPS_PRICE)]
    assert [item.name for item in handler.get_items(["1", "2"])] == [
        "Cheese Burger",
        "Potato Chips",
    ]