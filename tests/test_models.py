import pytest

from ordermesh.models import (
    CreateOrderResponse,
    Item,
    ItemsWithQuantity,
    Order,
)


def test_item_to_dict_uses_wire_names():
    item = Item(id="1", name="Cheese Burger", quantity=2, price_id="price_x")
    assert item.to_dict() == {"ID": "1", "Name": "Cheese Burger", "Quantity": 2, "PriceID": "price_x"}


def test_item_round_trip():
    item = Item(id="2", name="Potato Chips", quantity=5, price_id="price_y")
    assert Item.from_dict(item.to_dict()) == item


def test_order_round_trip_with_items():
    order = Order(
        id="abc",
        customer_id="c1",
        status="pending",
        items=[Item(id="1", name="Cheese Burger", quantity=1, price_id="p1")],
        payment_link="http://localhost/pay",
    )
    assert Order.from_dict(order.to_dict()) == order


def test_empty_order_omits_fields():
    assert Order().to_dict() == {}
    assert Order.from_dict({}) == Order()


def test_from_dict_matches_keys_case_insensitively():
    assert ItemsWithQuantity.from_dict({"id": "7", "quantity": 3}) == ItemsWithQuantity(id="7", quantity=3)


def test_items_with_quantity_round_trip():
    entry = ItemsWithQuantity(id="9", quantity=4)
    assert ItemsWithQuantity.from_dict(entry.to_dict()) == entry


def test_from_dict_rejects_wrong_types():
    with pytest.raises(ValueError):
        ItemsWithQuantity.from_dict({"ID": "1", "Quantity": "two"})
    with pytest.raises(ValueError):
        Order.from_dict({"ID": 5})
    with pytest.raises(ValueError):
        Order.from_dict({"Items": "not-a-list"})


def test_from_dict_rejects_non_objects():
    with pytest.raises(ValueError):
        Item.from_dict(["ID", "1"])


def test_create_order_response_to_dict():
    order = Order(id="o1", customer_id="c1", status="pending")
    url = "http://localhost:8080/success.html?customerID=c1&orderID=o1"
    result = CreateOrderResponse(order=order, redirect_to_url=url).to_dict()
    assert result["order"] == order.to_dict()
    assert result["redirectToURL"] == url


def test_create_order_response_without_order():
    assert CreateOrderResponse().to_dict()["order"] is None