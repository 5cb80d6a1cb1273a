"""Payment provider webhook: verifies signed events and announces paid orders."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from .broker import ORDER_PAID_EVENT, Channel, Publishing, inject_amqp_headers
from .common import encode_json
from .models import Order
from .tracing import start_span

log = logging.getLogger(__name__)

MAX_BODY_BYTES = 65536
DEFAULT_TOLERANCE = 300
SIGNATURE_SCHEME = "v1"
CHECKOUT_COMPLETED = "checkout.session.completed"


class SignatureError(ValueError):
    """The webhook signature is missing, malformed, stale or wrong."""


def _as_bytes(payload: bytes | str) -> bytes:
    return payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)


def _compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    message = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def sign_payload(payload: bytes | str, secret: str, timestamp: int) -> str:
    """The signature header value for ``payload`` signed at ``timestamp``."""
    signature = _compute_signature(_as_bytes(payload), secret, timestamp)
    return f"t={timestamp},{SIGNATURE_SCHEME}={signature}"


def _parse_header(header: str) -> tuple[int, list[bytes]]:
    if not header:
        raise SignatureError("webhook has no signature header")
    timestamp: int | None = None
    signatures: list[bytes] = []
    for pair in header.split(","):
        key, sep, value = pair.partition("=")
        if not sep:
            raise SignatureError("webhook has invalid signature header")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise SignatureError("webhook has invalid signature header") from None
        elif key == SIGNATURE_SCHEME:
            try:
                signatures.append(bytes.fromhex(value))
            except ValueError:
                continue
    if timestamp is None:
        raise SignatureError("webhook has invalid signature header")
    if not signatures:
        raise SignatureError("webhook had no valid signature")
    return timestamp, signatures


def verify_signature(
    payload: bytes | str,
    header: str,
    secret: str,
    tolerance: float = DEFAULT_TOLERANCE,
    now: float | None = None,
) -> dict[str, Any]:
    """Check the signature header and return the decoded event."""
    payload = _as_bytes(payload)
    timestamp, signatures = _parse_header(header)
    if now is None:
        now = time.time()
    if now - timestamp > tolerance:
        raise SignatureError("timestamp wasn't within tolerance")
    expected = bytes.fromhex(_compute_signature(payload, secret, timestamp))
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise SignatureError("webhook had no valid signature")
    event = json.loads(payload)
    if not isinstance(event, dict):
        raise ValueError("event must be a JSON object")
    return event


def _session_of(event: Mapping[str, Any]) -> Mapping[str, Any]:
    data = event.get("data")
    session = data.get("object") if isinstance(data, Mapping) else None
    if not isinstance(session, Mapping):
        raise ValueError("event carries no checkout session")
    metadata = session.get("metadata")
    if metadata is not None and (
        not isinstance(metadata, Mapping)
        or not all(isinstance(value, str) for value in metadata.values())
    ):
        raise ValueError("checkout session metadata must map strings to strings")
    return session


class WebhookHandler:
    """Accepts checkout events and publishes paid orders."""

    def __init__(
        self,
        channel: Channel,
        secret: str,
        tolerance: float = DEFAULT_TOLERANCE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._channel = channel
        self._secret = secret
        self._tolerance = tolerance
        self._clock = clock

    def handle(self, body: bytes, signature: str) -> int:
        """Process one webhook call and return the HTTP status to answer with."""
        if len(body) > MAX_BODY_BYTES:
            log.error("Error reading request body: request body too large")
            return 503

        log.info("Got body: %s", body.decode("utf-8", "replace"))

        try:
            event = verify_signature(body, signature, self._secret, self._tolerance, self._clock())
        except ValueError as exc:
            log.error("Error verifying webhook signature: %s", exc)
            return 400

        if event.get("type") == CHECKOUT_COMPLETED:
            try:
                session = _session_of(event)
            except ValueError as exc:
                log.error("Error parsing webhook JSON: %s", exc)
                return 400

            if session.get("payment_status") == "paid":
                log.info("Payment for Checkout Session %s successful!", session.get("id", ""))
                self._publish_paid(session.get("metadata") or {})

            log.info("Message published order.paid")

        return 200

    def _publish_paid(self, metadata: Mapping[str, str]) -> None:
        order = Order(
            id=metadata.get("orderID", ""),
            customer_id=metadata.get("customerID", ""),
            status="paid",
        )
        body = encode_json(order).rstrip(b"\n")
        with start_span(f"AMQP - publish - {ORDER_PAID_EVENT}") as span:
            headers = inject_amqp_headers(span)
            try:
                self._channel.publish(ORDER_PAID_EVENT, "", Publishing(body=body, headers=headers))
            except Exception as exc:
                log.error("failed to publish %s: %s", ORDER_PAID_EVENT, exc)