"""Domain records exchanged between the order services."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


def _require_mapping(data: Any, kind: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{kind} must be a JSON object")
    return data


def _lookup(data: Mapping[str, Any], key: str) -> Any:
    """Find a key the way a JSON decoder matching field names case-insensitively would."""
    if key in data:
        return data[key]
    lowered = key.lower()
    for name, value in data.items():
        if isinstance(name, str) and name.lower() == lowered:
            return value
    return None


def _str_field(data: Mapping[str, Any], key: str) -> str:
    value = _lookup(data, key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _int_field(data: Mapping[str, Any], key: str) -> int:
    value = _lookup(data, key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r} must be an integer")
    return value


def _list_field(data: Mapping[str, Any], key: str) -> list[Any]:
    value = _lookup(data, key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"field {key!r} must be a list")
    return value


def _without_empty(pairs: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in pairs.items() if value not in ("", 0, [], None)}


@dataclass
class Item:
    """A stock item with its price reference and a quantity."""

    id: str = ""
    name: str = ""
    quantity: int = 0
    price_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _without_empty(
            {"ID": self.id, "Name": self.name, "Quantity": self.quantity, "PriceID": self.price_id}
        )

    @classmethod
    def from_dict(cls, data: Any) -> Item:
        data = _require_mapping(data, "item")
        return cls(
            id=_str_field(data, "ID"),
            name=_str_field(data, "Name"),
            quantity=_int_field(data, "Quantity"),
            price_id=_str_field(data, "PriceID"),
        )


@dataclass
class ItemsWithQuantity:
    """An item reference and how many of it a customer asks for."""

    id: str = ""
    quantity: int = 0

    def to_dict(self) -> dict[str, Any]:
        return _without_empty({"ID": self.id, "Quantity": self.quantity})

    @classmethod
    def from_dict(cls, data: Any) -> ItemsWithQuantity:
        data = _require_mapping(data, "item")
        return cls(id=_str_field(data, "ID"), quantity=_int_field(data, "Quantity"))


@dataclass
class Order:
    """An order as seen by the services."""

    id: str = ""
    customer_id: str = ""
    status: str = ""
    items: list[Item] = field(default_factory=list)
    payment_link: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _without_empty(
            {
                "ID": self.id,
                "CustomerID": self.customer_id,
                "Status": self.status,
                "Items": [item.to_dict() for item in self.items],
                "PaymentLink": self.payment_link,
            }
        )

    @classmethod
    def from_dict(cls, data: Any) -> Order:
        data = _require_mapping(data, "order")
        return cls(
            id=_str_field(data, "ID"),
            customer_id=_str_field(data, "CustomerID"),
            status=_str_field(data, "Status"),
            items=[Item.from_dict(entry) for entry in _list_field(data, "Items")],
            payment_link=_str_field(data, "PaymentLink"),
        )


@dataclass
class CreateOrderRequest:
    """A customer's request to place an order."""

    customer_id: str = ""
    items: list[ItemsWithQuantity] = field(default_factory=list)


@dataclass
class GetOrderRequest:
    """A lookup of one order belonging to one customer."""

    order_id: str = ""
    customer_id: str = ""


@dataclass
class CreateOrderResponse:
    """The gateway's reply to a newly created order."""

    order: Order | None = None
    redirect_to_url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "order": self.order.to_dict() if self.order is not None else None,
            "redirectToURL": self.redirect_to_url,
        }