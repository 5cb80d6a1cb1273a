"""Order management business logic: orders, stock, payments and kitchen, linked by a message broker and service discovery."""

__version__ = "0.1.0"

__all__ = [
    "broker",
    "common",
    "consumers",
    "discovery",
    "gateway_http",
    "models",
    "orders",
    "payments",
    "stock",
    "tracing",
    "webhook",
]