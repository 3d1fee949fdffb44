"""
Delivery transport registry.

A transport factory takes the application settings and returns the async
``deliver(payload) -> DeliveryResult`` callable the dispatch queue invokes.
Transports must be idempotent enough to survive a retried delivery.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import uuid4

import httpx

from deliveryq.config import Settings
from deliveryq.types.queue import DeliveryResult

logger = logging.getLogger(__name__)

# Type alias for delivery callables
Deliver = Callable[[dict[str, Any]], Awaitable[DeliveryResult]]
TransportFactory = Callable[[Settings], Deliver]

# Transport registry
_transports: dict[str, TransportFactory] = {}


def register_transport(name: str) -> Callable[[TransportFactory], TransportFactory]:
    """
    Decorator to register a delivery transport factory.

    Example:
        @register_transport("smtp")
        def smtp_transport(settings: Settings) -> Deliver:
            ...
    """
    def decorator(factory: TransportFactory) -> TransportFactory:
        _transports[name] = factory
        logger.debug(f"Registered delivery transport: {name}")
        return factory
    return decorator


def get_transport(name: str) -> TransportFactory | None:
    """Get the transport factory registered under ``name``."""
    return _transports.get(name)


def list_transports() -> list[str]:
    """List all registered transport names."""
    return list(_transports.keys())


def unsupported_transport(name: str) -> Deliver:
    """
    Build a deliver callable for an unknown provider.

    Every call fails with a result instead of raising, so the queue's retry
    policy handles it like any other delivery failure.
    """
    async def deliver(payload: dict[str, Any]) -> DeliveryResult:
        return DeliveryResult(
            success=False,
            error=f"Unsupported delivery provider: {name}",
        )
    return deliver


def create_deliver(settings: Settings) -> Deliver:
    """
    Resolve the configured delivery provider to a deliver callable.

    Args:
        settings: Application settings.

    Returns:
        The deliver callable for ``settings.delivery_provider``.
    """
    name = settings.delivery_provider
    factory = get_transport(name)

    if factory is None:
        logger.error(
            "Unsupported delivery provider",
            extra={"provider": name, "available": list_transports()},
        )
        return unsupported_transport(name)

    return factory(settings)


# ============================================================================
# Built-in transports
# ============================================================================


@register_transport("log")
def log_transport(settings: Settings) -> Deliver:
    """
    Dry-run transport.

    Logs the delivery and reports success without contacting anything.
    """
    async def deliver(payload: dict[str, Any]) -> DeliveryResult:
        message_id = f"log_{uuid4().hex[:12]}"
        logger.info(
            "Delivered message (dry run)",
            extra={"message_id": message_id, "to": payload.get("to")},
        )
        return DeliveryResult(success=True, message_id=message_id)
    return deliver


@register_transport("webhook")
def webhook_transport(settings: Settings) -> Deliver:
    """
    POST each payload as JSON to ``settings.delivery_webhook_url``.

    A 2xx response counts as delivered. The response may carry an ``id``
    field that becomes the message id.
    """
    url = settings.delivery_webhook_url
    timeout = settings.delivery_timeout_seconds

    async def deliver(payload: dict[str, Any]) -> DeliveryResult:
        if not url:
            return DeliveryResult(
                success=False,
                error="Missing delivery_webhook_url for webhook transport",
            )

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            return DeliveryResult(success=False, error=f"Webhook request failed: {e}")

        if not response.is_success:
            return DeliveryResult(success=False, error=f"HTTP {response.status_code}")

        message_id = None
        if response.headers.get("content-type", "").startswith("application/json"):
            body = response.json()
            if isinstance(body, dict) and body.get("id") is not None:
                message_id = str(body["id"])

        return DeliveryResult(success=True, message_id=message_id)
    return deliver
