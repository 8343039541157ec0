"""
Tests for the commerce backend client - error classification and retries.
"""

import httpx
import pytest

from storefront_checkout.commerce_backend_client import DEFAULT_PAYMENT_GATEWAYS
from storefront_checkout.errors import (
    AuthError,
    CommerceBackendError,
    NetworkError,
    ValidationError,
)

from conftest import BASE_URL, make_backend_client, order_response, request_json


class _Recorder:
    """MockTransport handler replaying a fixed list of responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class TestCreateOrder:
    """POST /orders."""

    @pytest.mark.asyncio
    async def test_posts_payload_with_basic_auth(self):
        handler = _Recorder(httpx.Response(201, json=order_response()))
        client = make_backend_client(handler)

        result = await client.create_order({"payment_method": "bacs"})

        assert result["id"] == 501
        request = handler.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{BASE_URL}/orders"
        assert request.headers["Authorization"].startswith("Basic ")
        assert request_json(request) == {"payment_method": "bacs"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 422])
    async def test_validation_error_carries_server_message(self, status):
        handler = _Recorder(httpx.Response(status, json={
            "code": "woocommerce_rest_invalid_email",
            "message": "Invalid billing email address.",
            "data": {"status": status},
        }))
        client = make_backend_client(handler)

        with pytest.raises(ValidationError) as exc_info:
            await client.create_order({})

        assert exc_info.value.message == "Invalid billing email address."
        assert exc_info.value.status == status
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_errors(self, status):
        client = make_backend_client(_Recorder(httpx.Response(status, json={"message": "nope"})))
        with pytest.raises(AuthError) as exc_info:
            await client.create_order({})
        assert exc_info.value.status == status

    @pytest.mark.asyncio
    async def test_server_error_is_backend_error(self):
        client = make_backend_client(_Recorder(httpx.Response(500, text="boom")))
        with pytest.raises(CommerceBackendError) as exc_info:
            await client.create_order({})
        assert exc_info.value.status == 500
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_timeout_is_retryable_network_error(self):
        handler = _Recorder(httpx.ReadTimeout("timed out"))
        client = make_backend_client(handler)

        with pytest.raises(NetworkError) as exc_info:
            await client.create_order({})

        assert exc_info.value.retryable is True
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_order_creation_is_never_retried(self):
        handler = _Recorder(httpx.Response(503, text="unavailable"))
        client = make_backend_client(handler)

        with pytest.raises(CommerceBackendError):
            await client.create_order({})

        assert len(handler.requests) == 1


class TestReads:
    """GET requests retry on transient failures."""

    @pytest.mark.asyncio
    async def test_get_order_retries_gateway_error(self):
        handler = _Recorder(httpx.Response(503), httpx.Response(200, json=order_response(9)))
        client = make_backend_client(handler)

        order = await client.get_order(9)

        assert order["id"] == 9
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_get_order_retries_timeout(self):
        handler = _Recorder(httpx.ConnectTimeout("slow"), httpx.Response(200, json=order_response(9)))
        client = make_backend_client(handler)

        await client.get_order(9)
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_retries_stop_at_attempt_cap(self):
        handler = _Recorder(httpx.Response(504))
        client = make_backend_client(handler, retry_attempts=3)

        with pytest.raises(CommerceBackendError):
            await client.get_order(9)
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self):
        handler = _Recorder(httpx.Response(404, json={"message": "Invalid ID."}))
        client = make_backend_client(handler)

        with pytest.raises(CommerceBackendError, match="Invalid ID."):
            await client.get_order(9)
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_get_orders_for_customer(self):
        handler = _Recorder(httpx.Response(200, json=[order_response(1), order_response(2)]))
        client = make_backend_client(handler)

        orders = await client.get_orders(customer_id=12, per_page=5)

        assert [o["id"] for o in orders] == [1, 2]
        params = handler.requests[0].url.params
        assert params["customer"] == "12"
        assert params["per_page"] == "5"

    @pytest.mark.asyncio
    async def test_payment_gateways_filters_disabled(self):
        handler = _Recorder(httpx.Response(200, json=[
            {"id": "bacs", "title": "Direct Bank Transfer", "enabled": True},
            {"id": "cheque", "title": "Check payments", "enabled": False},
        ]))
        gateways = await make_backend_client(handler).get_payment_gateways()
        assert [g["id"] for g in gateways] == ["bacs"]

    @pytest.mark.asyncio
    async def test_payment_gateways_fall_back_to_defaults(self):
        handler = _Recorder(httpx.ConnectError("unreachable"))
        gateways = await make_backend_client(handler).get_payment_gateways()

        assert gateways == DEFAULT_PAYMENT_GATEWAYS
        assert gateways is not DEFAULT_PAYMENT_GATEWAYS

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await make_backend_client(_Recorder(httpx.Response(200, json={}))).health_check() is True
        assert await make_backend_client(_Recorder(httpx.Response(500))).health_check() is False


class TestDebugCurl:
    """CURL logging never leaks the consumer secret."""

    def test_curl_command_redacts_secret(self):
        client = make_backend_client(_Recorder(httpx.Response(200)), debug_curl=True)
        command = client._generate_curl_command(
            "POST", f"{BASE_URL}/orders", {"Content-Type": "application/json"}, None, {"a": 1}
        )

        assert "cs_secret" not in command
        assert "ck_test:***" in command
        assert command.startswith("curl -X POST")
