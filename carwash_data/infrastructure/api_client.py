"""
HTTP client for the booking backend API.

Wraps a persistent httpx.AsyncClient with a per-request timeout, classification
of failures into the repository error taxonomy, and tenacity-driven retries with
exponential backoff plus jitter for transient failures.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from ..config import get_settings
from ..domain.exceptions import (
    ApiException,
    NetworkException,
    NotFoundException,
    RepositoryException,
    TimeoutException,
    UnknownException,
    ValidationException,
)
from ..logging_config import get_request_id
from ..metrics import record_api_attempt

logger = structlog.get_logger(__name__)

USER_AGENT = "carwash-data/1.0"
JITTER_RATIO = 0.1


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, RepositoryException) and exc.retryable


def _format_reason(error: Any) -> str:
    if isinstance(error, dict):
        field = error.get("field") or error.get("path")
        message = error.get("message") or error.get("msg") or str(error)
        return f"{field}: {message}" if field else str(message)
    return str(error)


class ApiClient:
    """
    Async client for the booking backend.

    Every request carries JSON headers, the bearer token when one is set, and the
    current request ID for tracing. Failed attempts that are retryable (network
    errors, timeouts, 5xx, 408 and 429) are retried up to ``max_retries`` attempts
    in total; everything else is raised on the first failure.

    Attributes:
        base_url: Base URL all request paths are joined to
        timeout_ms: Default per-request timeout in milliseconds
        max_retries: Maximum number of attempts per request
        base_delay_ms: Delay before the first retry
        backoff_factor: Multiplier applied to the delay on every further retry
        max_delay_ms: Upper bound of the backoff delay before jitter
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_ms: Optional[float] = None,
        max_retries: Optional[int] = None,
        base_delay_ms: Optional[float] = None,
        backoff_factor: Optional[float] = None,
        max_delay_ms: Optional[float] = None,
        auth_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout_ms = timeout_ms if timeout_ms is not None else settings.API_TIMEOUT_MS
        self.max_retries = max_retries if max_retries is not None else settings.API_MAX_RETRIES
        self.base_delay_ms = (
            base_delay_ms if base_delay_ms is not None else settings.RETRY_BASE_DELAY_MS
        )
        self.backoff_factor = (
            backoff_factor if backoff_factor is not None else settings.RETRY_BACKOFF_FACTOR
        )
        self.max_delay_ms = max_delay_ms if max_delay_ms is not None else settings.RETRY_MAX_DELAY_MS
        self._auth_token = auth_token if auth_token is not None else settings.API_AUTH_TOKEN
        self._transport = transport
        self._sleep = sleep

        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            "Initialized ApiClient",
            base_url=self.base_url,
            timeout_ms=self.timeout_ms,
            max_retries=self.max_retries,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the persistent HTTP client with connection pooling."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                timeout=self.timeout_ms / 1000,
                limits=httpx.Limits(
                    max_keepalive_connections=20,
                    max_connections=100,
                    keepalive_expiry=30.0,
                ),
            )
            logger.debug("Created new HTTP client with connection pooling")
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.debug("Closed HTTP client")

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def set_auth_token(self, token: str) -> None:
        """Send ``Authorization: Bearer <token>`` with every following request."""
        self._auth_token = token

    def remove_auth_token(self) -> None:
        self._auth_token = None

    def _get_request_headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"

        request_id = get_request_id()
        if request_id:
            headers["X-Request-ID"] = request_id

        return headers

    def _build_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _retrying(self, attempts: int) -> AsyncRetrying:
        base_s = self.base_delay_ms / 1000
        wait = wait_exponential(
            multiplier=base_s,
            exp_base=self.backoff_factor,
            max=self.max_delay_ms / 1000,
        ) + wait_random(0, JITTER_RATIO * base_s)

        kwargs: Dict[str, Any] = {
            "stop": stop_after_attempt(attempts),
            "wait": wait,
            "retry": retry_if_exception(_is_retryable),
            "reraise": True,
        }
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return AsyncRetrying(**kwargs)

    async def request(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        *,
        params: Optional[Dict[str, Any]] = None,
        timeout_ms: Optional[float] = None,
        max_retries: Optional[int] = None,
    ) -> Any:
        """
        Issue a request and return the decoded response body.

        Args:
            path: Path relative to ``base_url`` (or an absolute URL)
            method: HTTP verb
            body: JSON-serializable request body
            params: Query string parameters
            timeout_ms: Per-request timeout, defaults to ``timeout_ms``
            max_retries: Maximum attempts, defaults to ``max_retries``

        Returns:
            Parsed JSON, raw text for non-JSON responses, or None for an empty body

        Raises:
            NotFoundException: HTTP 404
            ValidationException: HTTP 400/422 carrying an ``errors`` list
            ApiException: Any other error status
            TimeoutException: The request exceeded its deadline
            NetworkException: The API could not be reached
            UnknownException: Any other failure
        """
        method = method.upper()
        url = self._build_url(path)
        timeout = timeout_ms if timeout_ms is not None else self.timeout_ms
        attempts = max(1, max_retries if max_retries is not None else self.max_retries)

        result: Any = None
        async for attempt in self._retrying(attempts):
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                try:
                    result = await self._send(method, url, body, params, timeout)
                except RepositoryException as exc:
                    record_api_attempt(method, exc.code)
                    remaining = attempts - attempt_number if exc.retryable else 0
                    logger.warning(
                        "API request attempt failed",
                        url=url,
                        method=method,
                        attempt=attempt_number,
                        remaining_retries=remaining,
                        error_code=exc.code,
                        status_code=exc.status_code,
                        error=exc.message,
                    )
                    raise
                record_api_attempt(method, "success")
        return result

    async def _send(
        self,
        method: str,
        url: str,
        body: Any,
        params: Optional[Dict[str, Any]],
        timeout_ms: float,
    ) -> Any:
        client = await self._get_client()
        try:
            response = await client.request(
                method,
                url,
                json=body,
                params=params,
                headers=self._get_request_headers(),
                timeout=timeout_ms / 1000,
            )
        except httpx.TimeoutException as e:
            raise TimeoutException(f"{method} {url}", timeout_ms, details={"cause": str(e)}) from e
        except httpx.RequestError as e:
            raise NetworkException(
                f"Network error while calling {method} {url}: {e}",
                details={"url": url, "method": method},
            ) from e
        except Exception as e:
            raise UnknownException(
                f"Unexpected error while calling {method} {url}: {e}",
                details={"url": url, "method": method},
            ) from e

        if response.is_error:
            raise self._error_from_response(response, method, url)

        return self._parse_body(response, method, url)

    @staticmethod
    def _parse_body(response: httpx.Response, method: str, url: str) -> Any:
        if response.status_code == 204 or not response.content:
            return None

        content_type = response.headers.get("content-type", "")
        if "json" not in content_type:
            return response.text

        try:
            return response.json()
        except ValueError as e:
            raise UnknownException(
                f"Invalid JSON in response from {method} {url}",
                details={"url": url, "method": method, "status_code": response.status_code},
            ) from e

    @staticmethod
    def _error_from_response(
        response: httpx.Response, method: str, url: str
    ) -> RepositoryException:
        status = response.status_code
        payload: Dict[str, Any] = {}
        try:
            decoded = response.json()
            if isinstance(decoded, dict):
                payload = decoded
        except ValueError:
            pass

        message = payload.get("message") or f"HTTP {status}: {response.reason_phrase}"
        details = {"url": url, "method": method, "response": payload or response.text}
        errors: Optional[List[Any]] = payload.get("errors")

        if status == 404:
            return NotFoundException("Resource", url, message=message)
        if status in (400, 422) and isinstance(errors, list):
            return ValidationException(
                message,
                reasons=[_format_reason(error) for error in errors],
                details=details,
            )
        return ApiException(message, status_code=status, details=details)

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request(path, "GET", **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request(path, "POST", body, **kwargs)

    async def put(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request(path, "PUT", body, **kwargs)

    async def patch(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request(path, "PATCH", body, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request(path, "DELETE", **kwargs)
