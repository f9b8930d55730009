"""
Retrying async HTTP client for third-party provider APIs.

Wraps ``httpx.AsyncClient`` with a bounded retry policy:
- HTTP 429 and 5xx responses are retried
- connection errors and timeouts are retried on the same schedule
- any other 4xx fails immediately with the response body attached

Backoff honours ``Retry-After`` when the provider sends it, otherwise it is
exponential (1s, 2s, 4s, 8s cap) plus up to 250ms of jitter.
"""

import asyncio
import random
from typing import Any, Optional

import httpx

from libs.common.errors import ProviderError
from libs.common.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
BASE_DELAY_SECONDS = 1.0
MAX_DELAY_SECONDS = 8.0
MAX_JITTER_SECONDS = 0.25


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Return the Retry-After delay in seconds, or None if absent/unusable."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def backoff_delay(attempt: int, retry_after: Optional[str] = None) -> float:
    """Delay in seconds before the retry following zero-based ``attempt``."""
    delay = parse_retry_after(retry_after)
    if delay is not None:
        return delay
    base = min(BASE_DELAY_SECONDS * (2**attempt), MAX_DELAY_SECONDS)
    return base + random.uniform(0, MAX_JITTER_SECONDS)


def _response_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class RetryingHttpClient:
    """Async JSON/form client with retry and backoff.

    ``log_context`` is merged into every log record (e.g. the provider
    account id) so retries can be traced per account.
    """

    def __init__(
        self,
        base_url: str,
        headers: Optional[dict[str, str]] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout: float = 30.0,
        log_context: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.log_context = log_context or {}
        self._transport = transport

    def _fields(self, **kwargs: Any) -> dict[str, Any]:
        return {"extra_fields": {**self.log_context, **kwargs}}

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Optional[dict] = None,
        form: Optional[dict] = None,
        params: Optional[dict] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """
        Send a request and return the parsed JSON body (None when empty).

        Args:
            endpoint: Path relative to ``base_url``
            method: HTTP method
            body: JSON body
            form: Form-encoded body (mutually exclusive with ``body``)
            params: Query parameters
            headers: Per-request headers, merged over the client defaults

        Raises:
            ProviderError: On a non-retryable status or once attempts run out
        """
        url = f"{self.base_url}{endpoint}"
        request_headers = {**self.headers, **(headers or {})}

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            for attempt in range(self.max_attempts):
                is_last = attempt + 1 >= self.max_attempts
                try:
                    response = await client.request(
                        method=method,
                        url=url,
                        headers=request_headers,
                        params=params,
                        json=body,
                        data=form,
                    )
                except httpx.TransportError as exc:
                    if is_last:
                        logger.error(
                            f"{method} {endpoint} failed after {self.max_attempts} attempts: {exc}",
                            extra=self._fields(endpoint=endpoint, attempt=attempt + 1),
                        )
                        raise ProviderError(
                            f"Request to {endpoint} failed: {exc}",
                            status_code=None,
                            body=None,
                            endpoint=endpoint,
                        ) from exc
                    delay = backoff_delay(attempt)
                    logger.warning(
                        f"{method} {endpoint} transport error, retrying in {delay:.2f}s",
                        extra=self._fields(
                            endpoint=endpoint,
                            attempt=attempt + 1,
                            error=str(exc),
                            delay_seconds=round(delay, 3),
                        ),
                    )
                    await asyncio.sleep(delay)
                    continue

                logger.debug(
                    f"{method} {endpoint} -> {response.status_code}",
                    extra=self._fields(
                        endpoint=endpoint,
                        attempt=attempt + 1,
                        status_code=response.status_code,
                    ),
                )

                if response.is_success:
                    return _response_body(response)

                data = _response_body(response)
                if is_retryable_status(response.status_code) and not is_last:
                    delay = backoff_delay(attempt, response.headers.get("Retry-After"))
                    logger.warning(
                        f"{method} {endpoint} returned {response.status_code}, "
                        f"retrying in {delay:.2f}s",
                        extra=self._fields(
                            endpoint=endpoint,
                            attempt=attempt + 1,
                            status_code=response.status_code,
                            delay_seconds=round(delay, 3),
                        ),
                    )
                    await asyncio.sleep(delay)
                    continue

                logger.error(
                    f"{method} {endpoint} failed: {response.status_code} - {data}",
                    extra=self._fields(
                        endpoint=endpoint,
                        attempt=attempt + 1,
                        status_code=response.status_code,
                    ),
                )
                raise ProviderError(
                    f"{method} {endpoint} returned {response.status_code}",
                    status_code=response.status_code,
                    body=data,
                    endpoint=endpoint,
                )

        # Unreachable: the loop either returns or raises on its last attempt.
        raise ProviderError(f"Request to {endpoint} failed", endpoint=endpoint)
