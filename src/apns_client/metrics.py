"""
Delivery metrics in the Prometheus global REGISTRY.

The engine itself knows nothing about Prometheus: counters are fed from
delivery callbacks built by instrumented_callbacks().
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Union

from loguru import logger
from prometheus_client import Counter

from .delivery import DeliveryCallbacks

APNS_MESSAGES_WRITTEN_TOTAL = Counter(
    "apns_messages_written_total",
    "Total number of notification frames written to the gateway",
)

APNS_ERROR_RESPONSES_TOTAL = Counter(
    "apns_error_responses_total",
    "Total number of error responses received from the gateway",
    ["status"],
)

APNS_MESSAGES_SKIPPED_TOTAL = Counter(
    "apns_messages_skipped_total",
    "Total number of messages abandoned after hitting the per-message exception limit",
)

APNS_DELIVERY_EXCEPTIONS_TOTAL = Counter(
    "apns_delivery_exceptions_total",
    "Total number of exceptions caught by the delivery loop",
    ["exception"],
)


class MetricsRegistry:
    """Centralized access to the delivery counters."""

    messages_written_total = APNS_MESSAGES_WRITTEN_TOTAL
    error_responses_total = APNS_ERROR_RESPONSES_TOTAL
    messages_skipped_total = APNS_MESSAGES_SKIPPED_TOTAL
    delivery_exceptions_total = APNS_DELIVERY_EXCEPTIONS_TOTAL


# Singleton instance
metrics_registry = MetricsRegistry()


def _chain(
    record: Callable[..., None], extra: Optional[Callable[..., Any]]
) -> Callable[..., None]:
    def hook(delivery, *args):
        record(*args)
        if extra is not None:
            extra(delivery, *args)

    return hook


def _on_write(message) -> None:
    metrics_registry.messages_written_total.inc()


def _on_apns_error(status, message_id) -> None:
    metrics_registry.error_responses_total.labels(status=str(status)).inc()


def _on_message_skip(message) -> None:
    metrics_registry.messages_skipped_total.inc()
    logger.debug(f"Recorded skip of message {message.message_id}")


def _on_exception(error, message) -> None:
    metrics_registry.delivery_exceptions_total.labels(exception=type(error).__name__).inc()


def instrumented_callbacks(
    extra: Union[DeliveryCallbacks, Mapping[str, Callable[..., Any]], None] = None,
) -> DeliveryCallbacks:
    """Callbacks that update the counters, then call any ``extra`` hooks."""
    user = DeliveryCallbacks.coerce(extra)
    return DeliveryCallbacks(
        on_write=_chain(_on_write, user.on_write),
        on_message_skip=_chain(_on_message_skip, user.on_message_skip),
        on_exception=_chain(_on_exception, user.on_exception),
        on_apns_error=_chain(_on_apns_error, user.on_apns_error),
    )
