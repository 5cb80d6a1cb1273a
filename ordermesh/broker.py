"""Message broker topology, retries and trace propagation over AMQP."""

from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import pika

from .tracing import Span, current_span

log = logging.getLogger(__name__)

ORDER_CREATED_EVENT = "order.created"
ORDER_PAID_EVENT = "order.paid"

MAX_RETRY_COUNT = 3
DLQ = "dlq_main"
DLX = "dlx_main"
MAIN_QUEUE = "main_queue"
RETRY_HEADER = "x-retry-count"
TRACEPARENT_HEADER = "traceparent"
PERSISTENT = 2

_TRACEPARENT = re.compile(
    r"^(?P<version>[0-9a-f]{2})-(?P<trace>[0-9a-f]{32})-(?P<span>[0-9a-f]{16})-(?P<flags>[0-9a-f]{2})(?P<rest>.*)$"
)


@dataclass
class Publishing:
    """A message to publish."""

    body: bytes
    headers: dict[str, Any] = field(default_factory=dict)
    content_type: str = "application/json"
    delivery_mode: int = PERSISTENT


@dataclass
class Delivery:
    """A message received from a queue."""

    body: bytes
    headers: dict[str, Any] | None = None
    exchange: str = ""
    routing_key: str = ""
    delivery_tag: int = 0


class Channel(ABC):
    """The broker operations the services rely on."""

    @abstractmethod
    def exchange_declare(self, name: str, kind: str, durable: bool = True) -> None: ...

    @abstractmethod
    def queue_declare(self, name: str, durable: bool = True, exclusive: bool = False) -> str:
        """Declare a queue and return its (possibly server-generated) name."""

    @abstractmethod
    def queue_bind(self, queue: str, exchange: str, routing_key: str = "") -> None: ...

    @abstractmethod
    def publish(self, exchange: str, routing_key: str, publishing: Publishing) -> None: ...


@dataclass
class HeaderCarrier:
    """String access to AMQP message headers for trace propagation."""

    headers: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str) -> str:
        if key not in self.headers:
            return ""
        value = self.headers[key]
        if isinstance(value, bytes):
            return value.decode("utf-8")
        if not isinstance(value, str):
            raise TypeError(f"header {key!r} is not a string")
        return value

    def set(self, key: str, value: str) -> None:
        self.headers[key] = value

    def keys(self) -> list[str]:
        return list(self.headers)


def handle_retry(
    channel: Channel,
    delivery: Delivery,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Publish the delivery again, or move it to the dead-letter queue after too many tries."""
    if delivery.headers is None:
        delivery.headers = {}

    retry_count = delivery.headers.get(RETRY_HEADER)
    if isinstance(retry_count, bool) or not isinstance(retry_count, int):
        retry_count = 0
    retry_count += 1
    delivery.headers[RETRY_HEADER] = retry_count

    log.info("Retrying message %s, retry count: %d", delivery.body, retry_count)

    publishing = Publishing(body=delivery.body, headers=delivery.headers)
    if retry_count >= MAX_RETRY_COUNT:
        log.info("Moving message to DLQ %s", DLQ)
        channel.publish("", DLQ, publishing)
        return

    sleep(retry_count)
    channel.publish(delivery.exchange, delivery.routing_key, publishing)


def inject_amqp_headers(span: Span | None = None) -> dict[str, Any]:
    """Headers carrying the trace context of ``span`` (or of the active span)."""
    if span is None:
        span = current_span()
    carrier = HeaderCarrier()
    if span.is_valid:
        carrier.set(TRACEPARENT_HEADER, span.traceparent)
    return carrier.headers


def extract_amqp_headers(headers: dict[str, Any] | None) -> Span | None:
    """The remote parent span described by ``headers``, or None if they carry no valid one."""
    value = HeaderCarrier(dict(headers or {})).get(TRACEPARENT_HEADER).strip()
    match = _TRACEPARENT.match(value)
    if match is None:
        return None
    version = match["version"]
    if version == "ff" or (version == "00" and match["rest"]):
        return None
    if match["rest"] and not match["rest"].startswith("-"):
        return None
    trace_id, span_id = match["trace"], match["span"]
    if set(trace_id) == {"0"} or set(span_id) == {"0"}:
        return None
    return Span(name="", trace_id=trace_id, span_id=span_id, recording=False, remote=True)


def declare_topology(channel: Channel) -> None:
    """Declare the event exchanges and the dead-letter queues."""
    channel.exchange_declare(ORDER_CREATED_EVENT, "direct", durable=True)
    channel.exchange_declare(ORDER_PAID_EVENT, "fanout", durable=True)

    main_queue = channel.queue_declare(MAIN_QUEUE, durable=True, exclusive=False)
    channel.exchange_declare(DLX, "fanout", durable=True)
    channel.queue_bind(main_queue, DLX, "")
    channel.queue_declare(DLQ, durable=True, exclusive=False)


class _PikaChannel(Channel):
    def __init__(self, channel: Any) -> None:
        self._channel = channel

    def exchange_declare(self, name: str, kind: str, durable: bool = True) -> None:
        self._channel.exchange_declare(exchange=name, exchange_type=kind, durable=durable)

    def queue_declare(self, name: str, durable: bool = True, exclusive: bool = False) -> str:
        result = self._channel.queue_declare(queue=name, durable=durable, exclusive=exclusive)
        return result.method.queue

    def queue_bind(self, queue: str, exchange: str, routing_key: str = "") -> None:
        self._channel.queue_bind(queue=queue, exchange=exchange, routing_key=routing_key)

    def publish(self, exchange: str, routing_key: str, publishing: Publishing) -> None:
        self._channel.basic_publish(
            exchange=exchange,
            routing_key=routing_key,
            body=publishing.body,
            properties=pika.BasicProperties(
                content_type=publishing.content_type,
                headers=publishing.headers,
                delivery_mode=publishing.delivery_mode,
            ),
        )


def connect(user: str, password: str, host: str, port: str) -> tuple[Channel, Callable[[], None]]:
    """Open a channel to the broker, declare the topology and return it with a close function."""
    url = f"amqp://{quote(user, safe='')}:{quote(password, safe='')}@{host}:{port}"
    connection = pika.BlockingConnection(pika.URLParameters(url))
    channel = _PikaChannel(connection.channel())
    declare_topology(channel)
    return channel, connection.close