# ordermesh

`ordermesh` holds the business logic of a small order management system.
Its parts follow one order through this flow:

1. A customer places an order through the HTTP handler.
2. The orders service checks the requested items against stock.
3. The orders service stores the order as `pending`.
4. The payments service creates a payment link for the order and records it on the order.
5. A signed payment webhook publishes the order as `paid` to the `order.paid` exchange.
6. The kitchen, orders and stock consumers handle that message.

Each part is an ordinary Python object. You can connect the parts to real
infrastructure, using RabbitMQ through `pika` and MongoDB through `pymongo`.
You can also connect them to the in-memory stand-ins that come with the package.

## Modules

| Module | What it provides |
| --- | --- |
| `ordermesh.models` | `Item`, `ItemsWithQuantity`, `Order`, `CreateOrderRequest`, `GetOrderRequest`, `CreateOrderResponse` |
| `ordermesh.common` | `env_string`, the JSON helpers `read_json`, `encode_json` and `error_body`, and the errors `NoItemsError`, `NoStockError` and `MissingBodyError` |
| `ordermesh.tracing` | In-process spans with W3C trace-context identifiers: `start_span`, `current_span`, `Span`, `SpanStatus` |
| `ordermesh.discovery` | The `Registry` interface, `InMemoryRegistry`, `DiscoveryError`, `generate_instance_id` and `pick_address` |
| `ordermesh.broker` | The `Channel` interface, `Publishing`, `Delivery`, `declare_topology`, `connect`, `handle_retry` with dead-lettering, and trace header propagation (`HeaderCarrier`, `inject_amqp_headers`, `extract_amqp_headers`) |
| `ordermesh.stock` | `StockStore`, `StockService`, `TelemetryStockService`, `StockHandler`, `ItemNotFoundError` |
| `ordermesh.orders` | `OrdersService` with the `LoggingOrdersService` and `TelemetryOrdersService` wrappers, `InMemoryOrdersStore`, `MongoOrdersStore`, `StockGateway`, `merge_items_with_quantities` |
| `ordermesh.payments` | `PaymentsService`, `TelemetryPaymentsService`, `PaymentProcessor`, `InMemoryProcessor`, `OrdersGateway` |
| `ordermesh.gateway_http` | `OrdersHTTPHandler`, `HTTPResponse`, `GatewayError`, `OrdersGateway` and `validate_items` |
| `ordermesh.consumers` | `KitchenConsumer`, `OrdersConsumer`, `PaymentsConsumer`, `StockConsumer`, the `Outcome` of handling a delivery, and `KitchenGateway` |
| `ordermesh.webhook` | `sign_payload`, `verify_signature`, `SignatureError`, `WebhookHandler` |

## Configuration

`env_string` reads a setting from the environment. It returns the given
default when the variable is unset:

```python
from ordermesh.common import env_string

rabbit_host = env_string("RABBITMQ_HOST", "localhost")
rabbit_port = env_string("RABBITMQ_PORT", "5672")
```

## Service discovery

```python
from ordermesh.discovery import InMemoryRegistry, generate_instance_id, pick_address

registry = InMemoryRegistry()
instance_id = generate_instance_id("orders")
registry.register(instance_id, "orders", "localhost:3000")

registry.health_check(instance_id, "orders")   # mark the instance active now
print(registry.discover("orders"))             # ['localhost:3000']
print(pick_address(registry, "orders"))        # one address chosen at random

registry.deregister(instance_id, "orders")
```

`discover` and `service_addresses` raise `DiscoveryError` when a service has
no instances. `health_check` raises `DiscoveryError` for an unknown service or
instance. `service_addresses` returns only the instances whose last
registration or health check happened within the last five seconds.

## Placing and reading orders

```python
from ordermesh.models import CreateOrderRequest, ItemsWithQuantity
from ordermesh.orders import InMemoryOrdersStore, OrdersService, StockGateway
from ordermesh.stock import StockService, StockStore

class LocalStock(StockGateway):
    def __init__(self):
        self._service = StockService(StockStore())

    def check_if_item_is_in_stock(self, customer_id, items):
        return self._service.check_if_items_are_in_stock(items)

service = OrdersService(InMemoryOrdersStore(), LocalStock())
request = CreateOrderRequest(
    customer_id="c1",
    items=[ItemsWithQuantity("1", 2), ItemsWithQuantity("1", 1)],
)
items = service.validate_orders(request)     # merged: one Cheese Burger, quantity 3
order = service.create_order(request, items) # status "pending", with a new id
```

`StockStore()` starts with two items. Item `"1"` is "Cheese Burger" with 20 in
stock, and item `"2"` is "Potato Chips" with 10 in stock.
`validate_orders` raises `NoItemsError` for an empty request. It raises
`NoStockError` when a requested quantity is more than the stock holds. Before
the stock check, `merge_items_with_quantities` merges requested items that
share an id.

`MongoOrdersStore(client)` keeps orders in the `orders` collection of the
`orders` database. It takes a `pymongo` client. `get` raises
`OrderNotFoundError` when no order matches both the id and the customer.

## HTTP handler

`OrdersHTTPHandler.dispatch(method, path, body)` routes these requests:

- `POST /api/customers/{customerID}/orders`. The body is a JSON array of items.
- `GET /api/customers/{customerID}/orders/{orderID}`.

All other paths are served as static files from the `public` directory.
Responses come back as `HTTPResponse` values. `validate_items` rejects these
requests with status 400:

- a request with no items;
- an item without an id;
- an item whose quantity is not positive.

## Messaging

`declare_topology` declares the following:

- the direct exchange `order.created`;
- the fanout exchange `order.paid`;
- the queue `main_queue`, bound to the fanout exchange `dlx_main`;
- the dead-letter queue `dlq_main`.

`connect(user, password, host, port)` opens a `pika` connection and declares
this topology. It returns a `Channel` and a function that closes the
connection.

`handle_retry` counts attempts in the `x-retry-count` header. It waits one
second per attempt and then publishes the delivery again. On the third attempt
it publishes to `dlq_main` instead.

The trace context travels in the `traceparent` header. `inject_amqp_headers`
writes it, and `extract_amqp_headers` reads it back as a parent span.

Each consumer's `handle(channel, delivery)` returns an `Outcome`: `ACK`, `NACK`
or `UNACKED`. Acknowledging the delivery is left to the caller.

## Payment webhooks

```python
from ordermesh.webhook import sign_payload, verify_signature

secret = "secret"
header = sign_payload(b'{"type": "ping"}', secret, 1700000000)
event = verify_signature(b'{"type": "ping"}', header, secret, now=1700000000)
```

`verify_signature` raises `SignatureError` in these cases:

- the header is missing or malformed;
- the timestamp is older than the tolerance, 300 seconds by default;
- no signature in the header matches.

`WebhookHandler.handle(body, signature)` verifies every call. It returns the
HTTP status to answer with:

- 503 for a body over 64 KiB;
- 400 for a bad signature or a malformed checkout session;
- 200 otherwise.

For a `checkout.session.completed` event whose session is `paid`, it publishes
the order from the session metadata as `paid` to `order.paid`.

## What the package does not do

- It has no commands and starts no servers. `OrdersHTTPHandler` and
  `WebhookHandler` turn requests into responses but do not listen on a socket.
- It has no loop that consumes from the broker. The consumers handle one
  delivery at a time.
- It has no network clients between services. `StockGateway`,
  `payments.OrdersGateway`, `gateway_http.OrdersGateway` and `KitchenGateway`
  are interfaces for you to implement.
- It has no registry backed by an external discovery service, only
  `InMemoryRegistry`.
- It has no real payment provider, only `InMemoryProcessor`, which answers every
  order with the same fixed link.
- Spans stay in process and are not exported anywhere.

## Running the tests

The test suite uses pytest. It is declared in the `test` extra:

```
pip install -e ".[test]"
pytest
```