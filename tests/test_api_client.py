"""
Tests for the HTTP transport client.

Requests are answered by httpx.MockTransport handlers; the retry sleep is an
AsyncMock so backoff delays can be asserted without waiting.
"""

import json
from unittest.mock import MagicMock

import httpx
import pytest

from carwash_data.domain.exceptions import (
    ApiException,
    NetworkException,
    NotFoundException,
    TimeoutException,
    ValidationException,
)
from carwash_data.logging_config import set_request_id


def respond(status_code: int, **kwargs):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, **kwargs)

    return handler


class TestResponseParsing:
    """Test decoding of successful responses."""

    @pytest.mark.asyncio
    async def test_json_response_parsed(self, make_api_client):
        client = make_api_client(respond(200, json={"services": [{"id": "1"}]}))

        result = await client.get("/services")

        assert result == {"services": [{"id": "1"}]}

    @pytest.mark.asyncio
    async def test_text_response_returned_raw(self, make_api_client):
        client = make_api_client(respond(200, text="pong"))

        assert await client.get("/ping") == "pong"

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self, make_api_client):
        client = make_api_client(respond(204))

        assert await client.delete("/services/1") is None

    @pytest.mark.asyncio
    async def test_url_and_query_string(self, make_api_client):
        client = make_api_client(respond(200, json=[]))

        await client.get("/services/search", params={"q": "wash"})

        request = client.seen_requests[0]
        assert request.method == "GET"
        assert request.url.path == "/api/services/search"
        assert request.url.params["q"] == "wash"

    @pytest.mark.asyncio
    async def test_json_body_sent(self, make_api_client):
        client = make_api_client(respond(201, json={"id": "9"}))

        await client.post("/clients", {"name": "Ava"})

        request = client.seen_requests[0]
        assert request.method == "POST"
        assert json.loads(request.content) == {"name": "Ava"}
        assert request.headers["Content-Type"] == "application/json"


class TestHeaders:
    """Test auth and tracing headers."""

    @pytest.mark.asyncio
    async def test_bearer_token(self, make_api_client):
        client = make_api_client(respond(200, json={}))
        client.set_auth_token("secret-token")

        await client.get("/clients")

        assert client.seen_requests[0].headers["Authorization"] == "Bearer secret-token"

    @pytest.mark.asyncio
    async def test_token_removed(self, make_api_client):
        client = make_api_client(respond(200, json={}), auth_token="secret-token")
        client.remove_auth_token()

        await client.get("/clients")

        assert "Authorization" not in client.seen_requests[0].headers

    @pytest.mark.asyncio
    async def test_request_id_forwarded(self, make_api_client):
        client = make_api_client(respond(200, json={}))
        set_request_id("req-123")

        await client.get("/services")

        assert client.seen_requests[0].headers["X-Request-ID"] == "req-123"

    @pytest.mark.asyncio
    async def test_per_request_timeout(self, make_api_client):
        client = make_api_client(respond(200, json={}))

        await client.get("/services", timeout_ms=5000)

        assert client.seen_requests[0].extensions["timeout"]["read"] == 5.0


class TestErrorClassification:
    """Test mapping of failures onto the error taxonomy."""

    @pytest.mark.asyncio
    async def test_404_not_found_single_attempt(self, make_api_client, sleep_mock):
        client = make_api_client(respond(404, json={"message": "Service not found"}))

        with pytest.raises(NotFoundException) as exc_info:
            await client.get("/services/99")

        assert exc_info.value.message == "Service not found"
        assert len(client.seen_requests) == 1
        sleep_mock.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_400_with_errors_is_validation(self, make_api_client):
        body = {
            "message": "Invalid service",
            "errors": [{"field": "price", "message": "must be positive"}, "name is required"],
        }
        client = make_api_client(respond(400, json=body))

        with pytest.raises(ValidationException) as exc_info:
            await client.post("/services", {})

        assert exc_info.value.reasons == ["price: must be positive", "name is required"]
        assert len(client.seen_requests) == 1

    @pytest.mark.asyncio
    async def test_400_without_errors_is_http_error(self, make_api_client):
        client = make_api_client(respond(400, text="bad request"))

        with pytest.raises(ApiException) as exc_info:
            await client.get("/services")

        assert exc_info.value.code == "HTTP_ERROR"
        assert len(client.seen_requests) == 1

    @pytest.mark.asyncio
    async def test_timeout_classified(self, make_api_client):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_api_client(handler, max_retries=1)

        with pytest.raises(TimeoutException):
            await client.get("/services")

    @pytest.mark.asyncio
    async def test_connection_error_is_network(self, make_api_client):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_api_client(handler, max_retries=1)

        with pytest.raises(NetworkException):
            await client.get("/services")


class TestRetryPolicy:
    """Test retry bound and backoff."""

    @pytest.mark.asyncio
    async def test_500_attempted_max_retries_times(self, make_api_client, sleep_mock):
        client = make_api_client(respond(500, json={"message": "boom"}))

        with pytest.raises(ApiException) as exc_info:
            await client.get("/services")

        assert exc_info.value.code == "SERVER_ERROR"
        assert len(client.seen_requests) == 3
        assert sleep_mock.await_count == 2

    @pytest.mark.asyncio
    async def test_backoff_grows_exponentially_with_bounded_jitter(self, make_api_client, sleep_mock):
        client = make_api_client(respond(503))

        with pytest.raises(ApiException):
            await client.get("/services")

        first, second = [call.args[0] for call in sleep_mock.await_args_list]
        assert 1.0 <= first <= 1.1
        assert 2.0 <= second <= 2.1

    @pytest.mark.asyncio
    async def test_backoff_capped_by_max_delay(self, make_api_client, sleep_mock):
        client = make_api_client(respond(500), backoff_factor=10.0, max_delay_ms=1500)

        with pytest.raises(ApiException):
            await client.get("/services")

        assert sleep_mock.await_args_list[1].args[0] <= 1.5 + 0.1

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, make_api_client):
        responses = iter([httpx.Response(502), httpx.Response(200, json={"count": 7})])
        client = make_api_client(lambda request: next(responses))

        assert await client.get("/services/count") == {"count": 7}
        assert len(client.seen_requests) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [408, 429])
    async def test_retryable_client_errors(self, make_api_client, status):
        client = make_api_client(respond(status))

        with pytest.raises(ApiException):
            await client.get("/services")

        assert len(client.seen_requests) == 3

    @pytest.mark.asyncio
    async def test_network_errors_retried(self, make_api_client):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_api_client(handler)

        with pytest.raises(NetworkException):
            await client.get("/services")

        assert len(client.seen_requests) == 3

    @pytest.mark.asyncio
    async def test_per_request_max_retries(self, make_api_client):
        client = make_api_client(respond(500))

        with pytest.raises(ApiException):
            await client.get("/services", max_retries=1)

        assert len(client.seen_requests) == 1

    @pytest.mark.asyncio
    async def test_failed_attempts_logged(self, make_api_client, monkeypatch):
        from carwash_data.infrastructure import api_client as module

        logger = MagicMock()
        monkeypatch.setattr(module, "logger", logger)
        client = make_api_client(respond(500))

        with pytest.raises(ApiException):
            await client.get("/services")

        events = [(c.args[0], c.kwargs) for c in logger.warning.call_args_list]
        assert [kw["attempt"] for _, kw in events] == [1, 2, 3]
        assert [kw["remaining_retries"] for _, kw in events] == [2, 1, 0]
        assert events[0][1]["url"] == "http://api.test/api/services"
        assert events[0][1]["method"] == "GET"


class TestLifecycle:
    """Test client lifecycle."""

    @pytest.mark.asyncio
    async def test_close_releases_client(self, make_api_client):
        client = make_api_client(respond(200, json={}))
        await client.get("/services")
        assert client._client is not None

        await client.close()

        assert client._client is None

    @pytest.mark.asyncio
    async def test_async_context_manager(self, make_api_client):
        async with make_api_client(respond(200, json={})) as client:
            await client.get("/services")

        assert client._client is None
