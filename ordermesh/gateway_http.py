"""HTTP front door that places and looks up orders through the orders service."""

from __future__ import annotations

import logging
import mimetypes
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlsplit

from .common import NoItemsError, encode_json, error_body, read_json
from .models import CreateOrderRequest, CreateOrderResponse, ItemsWithQuantity, Order
from .tracing import Span, SpanStatus, start_span

log = logging.getLogger(__name__)

INVALID_ARGUMENT = "InvalidArgument"
UNKNOWN = "Unknown"
DEFAULT_REDIRECT_BASE = "http://localhost:8080"


class GatewayError(Exception):
    """A failure reported by a remote service, with its status code and message."""

    def __init__(self, message: str, code: str = UNKNOWN) -> None:
        self.message = message
        self.code = code
        super().__init__(f"rpc error: code = {code} desc = {message}")


class OrdersGateway(ABC):
    """Reaches the orders service."""

    @abstractmethod
    def create_order(self, request: CreateOrderRequest) -> Order: ...

    @abstractmethod
    def get_order(self, order_id: str, customer_id: str) -> Order: ...


@dataclass
class HTTPResponse:
    """Status, headers and body of a reply."""

    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


def _json_response(status: int, value: Any) -> HTTPResponse:
    return HTTPResponse(status, encode_json(value), {"Content-Type": "application/json"})


def _error_response(status: int, message: str) -> HTTPResponse:
    return _json_response(status, error_body(message))


def _not_found() -> HTTPResponse:
    return HTTPResponse(404, b"404 page not found\n", {"Content-Type": "text/plain; charset=utf-8"})


def validate_items(items: Iterable[ItemsWithQuantity]) -> list[ItemsWithQuantity]:
    """Check that there is at least one item and each has an id and a positive quantity."""
    items = list(items)
    if not items:
        raise NoItemsError()
    for item in items:
        if not item.id:
            raise ValueError("Item should have an ID")
        if item.quantity <= 0:
            raise ValueError("Item must have valid quantity")
    return items


def _parse_items(body: Any) -> list[ItemsWithQuantity]:
    data = read_json(body)
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError("request body must be a JSON array of items")
    return [ItemsWithQuantity.from_dict(entry) for entry in data]


def _status_of(exc: Exception) -> tuple[str, str]:
    if isinstance(exc, GatewayError):
        return exc.code, exc.message
    return UNKNOWN, str(exc)


def _failure(span: Span, exc: Exception) -> HTTPResponse:
    span.set_status(SpanStatus.ERROR, str(exc))
    code, message = _status_of(exc)
    if code != INVALID_ARGUMENT:
        return _error_response(400, message)
    return _error_response(500, str(exc))


class OrdersHTTPHandler:
    """Routes customer order requests and serves static pages."""

    def __init__(
        self,
        gateway: OrdersGateway,
        static_dir: str | Path | None = "public",
        redirect_base: str = DEFAULT_REDIRECT_BASE,
    ) -> None:
        self._gateway = gateway
        self._static_dir = static_dir
        self._redirect_base = redirect_base

    def handle_create_order(self, customer_id: str, body: Any, request_uri: str) -> HTTPResponse:
        try:
            items = _parse_items(body)
        except ValueError as exc:
            return _error_response(400, str(exc))

        with start_span(f"POST {request_uri}") as span:
            try:
                validate_items(items)
            except ValueError as exc:
                return _error_response(400, str(exc))

            try:
                order = self._gateway.create_order(
                    CreateOrderRequest(customer_id=customer_id, items=items)
                )
            except Exception as exc:
                return _failure(span, exc)

            response = CreateOrderResponse(
                order=order,
                redirect_to_url=(
                    f"{self._redirect_base}/success.html"
                    f"?customerID={order.customer_id}&orderID={order.id}"
                ),
            )
            return _json_response(200, response)

    def handle_get_order(self, customer_id: str, order_id: str, request_uri: str) -> HTTPResponse:
        with start_span(f"GET {request_uri}") as span:
            try:
                order = self._gateway.get_order(order_id, customer_id)
            except Exception as exc:
                return _failure(span, exc)
            return _json_response(200, order)

    def dispatch(self, method: str, path: str, body: Any = None) -> HTTPResponse:
        """Route a request by method and path."""
        method = method.upper()
        url_path = urlsplit(path).path
        segments = url_path.split("/")
        is_orders = (
            len(segments) in (5, 6)
            and segments[:3] == ["", "api", "customers"]
            and segments[3] != ""
            and segments[4] == "orders"
        )
        if is_orders and len(segments) == 5 and method == "POST":
            return self.handle_create_order(unquote(segments[3]), body, path)
        if is_orders and len(segments) == 6 and segments[5] and method in ("GET", "HEAD"):
            response = self.handle_get_order(unquote(segments[3]), unquote(segments[5]), path)
            if method == "HEAD":
                response.body = b""
            return response
        return self._serve_static(url_path)

    def _serve_static(self, url_path: str) -> HTTPResponse:
        if self._static_dir is None:
            return _not_found()
        root = Path(self._static_dir).resolve()
        target = (root / unquote(url_path).lstrip("/")).resolve()
        if target != root and root not in target.parents:
            return _not_found()
        if target.is_dir():
            target = target / "index.html"
        if not target.is_file():
            return _not_found()
        content_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"
        return HTTPResponse(200, target.read_bytes(), {"Content-Type": content_type})