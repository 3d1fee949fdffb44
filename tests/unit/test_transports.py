"""
Unit tests for delivery transports.
"""

import httpx
import pytest

from deliveryq.config import Settings
from deliveryq.dispatch.transports import (
    create_deliver,
    get_transport,
    list_transports,
    register_transport,
)
from deliveryq.types.queue import DeliveryResult


@pytest.fixture
def mock_webhook(monkeypatch: pytest.MonkeyPatch):
    """Route webhook requests to an in-process handler."""
    requests: list[httpx.Request] = []
    responses: list[httpx.Response] = []
    original = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return responses.pop(0)

    def client_factory(**kwargs):
        return original(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    return requests, responses


class TestRegistry:
    """Tests for the transport registry."""

    def test_builtin_transports(self):
        """Test the built-in transports are registered."""
        transports = list_transports()

        assert "log" in transports
        assert "webhook" in transports

    def test_get_unknown_transport(self):
        assert get_transport("carrier-pigeon") is None

    @pytest.mark.asyncio
    async def test_register_custom_transport(self):
        """Test a registered factory is used by create_deliver."""

        @register_transport("test-custom")
        def custom_transport(settings: Settings):
            async def deliver(payload):
                return DeliveryResult(success=True, message_id="custom-1")
            return deliver

        deliver = create_deliver(Settings(delivery_provider="test-custom"))
        result = await deliver({"to": "someone"})

        assert result.success is True
        assert result.message_id == "custom-1"

    @pytest.mark.asyncio
    async def test_unsupported_provider(self):
        """Test an unknown provider fails every delivery."""
        deliver = create_deliver(Settings(delivery_provider="fax"))

        result = await deliver({"to": "someone"})

        assert result.success is False
        assert "unsupported" in result.error.lower()
        assert "fax" in result.error


class TestLogTransport:
    """Tests for the dry-run transport."""

    @pytest.mark.asyncio
    async def test_log_delivery_succeeds(self):
        deliver = create_deliver(Settings(delivery_provider="log"))

        result = await deliver({"to": "user@example.com", "body": "hi"})

        assert result.success is True
        assert result.message_id.startswith("log_")


class TestWebhookTransport:
    """Tests for the webhook transport."""

    @pytest.mark.asyncio
    async def test_missing_url(self):
        """Test delivery fails without a configured URL."""
        deliver = create_deliver(Settings(delivery_provider="webhook", delivery_webhook_url=None))

        result = await deliver({"to": "someone"})

        assert result.success is False
        assert "delivery_webhook_url" in result.error

    @pytest.mark.asyncio
    async def test_successful_post(self, mock_webhook):
        """Test a 2xx response is a delivery, with the returned id."""
        requests, responses = mock_webhook
        responses.append(httpx.Response(200, json={"id": "hook-42"}))
        deliver = create_deliver(
            Settings(delivery_provider="webhook", delivery_webhook_url="http://hooks.test/deliver")
        )

        result = await deliver({"to": "someone"})

        assert result.success is True
        assert result.message_id == "hook-42"
        assert requests[0].method == "POST"
        assert str(requests[0].url) == "http://hooks.test/deliver"

    @pytest.mark.asyncio
    async def test_error_status(self, mock_webhook):
        """Test a non-2xx response is a failed delivery."""
        _, responses = mock_webhook
        responses.append(httpx.Response(503))
        deliver = create_deliver(
            Settings(delivery_provider="webhook", delivery_webhook_url="http://hooks.test/deliver")
        )

        result = await deliver({"to": "someone"})

        assert result.success is False
        assert result.error == "HTTP 503"

    @pytest.mark.asyncio
    async def test_connection_error(self, monkeypatch: pytest.MonkeyPatch):
        """Test transport errors become failed results."""
        original = httpx.AsyncClient

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        monkeypatch.setattr(
            httpx,
            "AsyncClient",
            lambda **kwargs: original(transport=httpx.MockTransport(handler), **kwargs),
        )
        deliver = create_deliver(
            Settings(delivery_provider="webhook", delivery_webhook_url="http://hooks.test/deliver")
        )

        result = await deliver({"to": "someone"})

        assert result.success is False
        assert "Webhook request failed" in result.error
