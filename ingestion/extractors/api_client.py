"""
Platform order API client with authentication, rate limiting, and retry logic.

This module provides robust paginated order pulls with:
- Exponential backoff retry logic for transient failures
- Circuit breaker pattern to prevent cascading failures
- Rate limiting protection (HTTP 429 with Retry-After)
- Envelope validation: malformed or error responses become fetch failures
- Timeout handling with configurable limits
"""

import httpx
import asyncio
from typing import Dict, Any, Optional
from datetime import date, datetime, timedelta
from core.config import PlatformSettings, settings
from core.exceptions import (
    APIExtractionError,
    NetworkError,
    RateLimitError,
    AuthenticationError,
    ResourceNotFoundError,
    MalformedResponseError,
)
from ingestion.base import FetchPage
import logging

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"


class PlatformAPIClient:
    """
    Pull pages of updated orders from one platform's REST API.

    Request contract:
        GET {base_url}?date=YYYY-MM-DD&page=N&limit=M&filter-date=update
        Header {auth_header}: {api_key}

    Response envelope:
        {"status": 1, "message": "...", "data": {"orders": [...], "count": N, "page": N}}

    Attributes:
        max_retries: Maximum number of attempts per request (default: 3)
        retry_delay: Initial retry delay in seconds (default: 1.0)
        circuit_breaker_threshold: Failures before circuit opens (default: 5)
        circuit_breaker_timeout: Seconds before circuit reset (default: 60)
    """

    def __init__(
        self,
        config: PlatformSettings,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.config = config
        self.platform = config.name
        self.max_retries = max(1, max_retries if max_retries is not None else settings.API_MAX_RETRIES)
        self.retry_delay = retry_delay if retry_delay is not None else settings.API_RETRY_DELAY
        self.user_agent = user_agent or settings.API_USER_AGENT
        self.timeout = config.timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        # Circuit breaker state
        self._circuit_breaker_failures = 0
        self._circuit_breaker_threshold = 5
        self._circuit_breaker_open_until: Optional[datetime] = None
        self._circuit_breaker_timeout = 60  # seconds

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        if self.config.api_key:
            headers[self.config.auth_header] = self.config.api_key
        return headers

    # ------------------------------------------------------------------
    # Circuit breaker
    # ------------------------------------------------------------------

    def _is_circuit_open(self) -> bool:
        """Check if circuit breaker is open."""
        if self._circuit_breaker_open_until is None:
            return False

        if datetime.utcnow() >= self._circuit_breaker_open_until:
            logger.info(f"Circuit breaker reset for {self.platform}")
            self._circuit_breaker_failures = 0
            self._circuit_breaker_open_until = None
            return False

        return True

    def _record_failure(self):
        """Record a failure and potentially open circuit breaker."""
        self._circuit_breaker_failures += 1

        if self._circuit_breaker_failures >= self._circuit_breaker_threshold:
            self._circuit_breaker_open_until = datetime.utcnow() + timedelta(
                seconds=self._circuit_breaker_timeout
            )
            logger.warning(
                f"Circuit breaker opened for {self.platform}. "
                f"Will retry after {self._circuit_breaker_timeout} seconds."
            )

    def _record_success(self):
        """Record a successful request."""
        self._circuit_breaker_failures = 0
        self._circuit_breaker_open_until = None

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def _make_request_with_retry(self, params: Dict[str, Any]) -> httpx.Response:
        """
        Make HTTP request with retry logic and exponential backoff.

        Raises:
            AuthenticationError / ResourceNotFoundError: not retried
            RateLimitError / NetworkError: after max retries
            APIExtractionError: circuit open or unexpected failure
        """
        url = self.config.base_url

        if self._is_circuit_open():
            raise APIExtractionError(
                f"Circuit breaker is open for {self.platform}",
                context={
                    "platform": self.platform,
                    "api_url": url,
                    "open_until": self._circuit_breaker_open_until.isoformat()
                }
            )

        client = self._get_client()
        last_exception = None

        for attempt in range(self.max_retries):
            try:
                logger.debug(f"Request attempt {attempt + 1}/{self.max_retries} to {url} params={params}")

                response = await client.get(
                    url,
                    headers=self._headers(),
                    params=params,
                    timeout=self.timeout
                )

                if response.status_code in (401, 403):
                    self._record_failure()
                    raise AuthenticationError(
                        f"Authentication failed for {self.platform}",
                        context={
                            "status_code": response.status_code,
                            "api_url": url,
                            "platform": self.platform
                        }
                    )

                if response.status_code == 404:
                    self._record_failure()
                    raise ResourceNotFoundError(
                        f"Resource not found: {url}",
                        context={
                            "status_code": 404,
                            "api_url": url,
                            "platform": self.platform
                        }
                    )

                if response.status_code == 429:
                    retry_after = self._retry_after(response, attempt)
                    logger.warning(f"{self.platform} rate limited. Retrying after {retry_after} seconds")

                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(retry_after)
                        continue
                    self._record_failure()
                    raise RateLimitError(
                        f"Rate limit exceeded for {self.platform}",
                        context={
                            "status_code": 429,
                            "api_url": url,
                            "platform": self.platform,
                            "retry_count": attempt + 1
                        },
                        retry_after=retry_after
                    )

                if response.status_code >= 500:
                    if attempt < self.max_retries - 1:
                        delay = self.retry_delay * (2 ** attempt)
                        logger.warning(
                            f"{self.platform} server error {response.status_code}. "
                            f"Retrying in {delay} seconds (attempt {attempt + 1}/{self.max_retries})"
                        )
                        await asyncio.sleep(delay)
                        continue
                    self._record_failure()
                    raise NetworkError(
                        f"Server error after {self.max_retries} attempts",
                        context={
                            "status_code": response.status_code,
                            "api_url": url,
                            "platform": self.platform,
                            "retry_count": attempt + 1,
                            "response_body": response.text[:500]
                        }
                    )

                response.raise_for_status()
                self._record_success()
                return response

            except httpx.TimeoutException as e:
                last_exception = e
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(f"{self.platform} request timeout. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)
                else:
                    self._record_failure()
                    raise NetworkError(
                        f"Request timeout after {self.max_retries} attempts",
                        context={
                            "api_url": url,
                            "platform": self.platform,
                            "timeout": self.timeout,
                            "retry_count": attempt + 1
                        },
                        original_exception=e
                    )

            except httpx.TransportError as e:
                last_exception = e
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(f"{self.platform} network error. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)
                else:
                    self._record_failure()
                    raise NetworkError(
                        f"Network error after {self.max_retries} attempts",
                        context={
                            "api_url": url,
                            "platform": self.platform,
                            "retry_count": attempt + 1
                        },
                        original_exception=e
                    )

            except httpx.HTTPStatusError as e:
                self._record_failure()
                raise APIExtractionError(
                    f"Unexpected HTTP status {e.response.status_code}",
                    context={
                        "status_code": e.response.status_code,
                        "api_url": url,
                        "platform": self.platform
                    },
                    original_exception=e
                )

        raise APIExtractionError(
            "Max retries exceeded",
            context={"api_url": url, "platform": self.platform},
            original_exception=last_exception
        )

    def _retry_after(self, response: httpx.Response, attempt: int) -> float:
        header = response.headers.get("Retry-After")
        try:
            return float(header) if header is not None else self.retry_delay * (2 ** attempt)
        except ValueError:
            return self.retry_delay * (2 ** attempt)

    async def fetch(self, day: date, page: int = 1, page_size: Optional[int] = None) -> FetchPage:
        """
        Fetch one page of orders updated on ``day``.

        Returns:
            FetchPage with the raw order dicts and whether more pages exist

        Raises:
            APIExtractionError (or a subclass) for any failure
        """
        limit = page_size or self.config.page_size
        params = {
            "date": day.strftime(DATE_FORMAT),
            "page": page,
            "limit": limit,
            "filter-date": "update",
        }

        logger.info(f"Fetching {self.platform} orders for {params['date']} page {page}")
        response = await self._make_request_with_retry(params)

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                "Failed to parse JSON response",
                context={
                    "api_url": self.config.base_url,
                    "platform": self.platform,
                    "page": page,
                    "response_body": response.text[:500]
                },
                original_exception=e
            )

        return self._parse_envelope(body, page, limit)

    def _parse_envelope(self, body: Any, page: int, limit: int) -> FetchPage:
        context = {"platform": self.platform, "page": page}

        if not isinstance(body, dict):
            raise MalformedResponseError("Response body is not a JSON object", context=context)

        if "status" not in body:
            raise MalformedResponseError("Response has no status", context=context)

        status = body["status"]
        if str(status) != "1":
            raise APIExtractionError(
                f"{self.platform} API returned error status: {body.get('message') or status}",
                context={**context, "api_status": status, "api_code": body.get("code")}
            )

        data = body.get("data")
        if data is None:
            return FetchPage(orders=[], has_more=False, total_count=0, page=page)
        if not isinstance(data, dict):
            raise MalformedResponseError("Response 'data' is not an object", context=context)

        orders = data.get("orders") or []
        if not isinstance(orders, list):
            raise MalformedResponseError("Response 'data.orders' is not a list", context=context)

        total = data.get("count")
        try:
            total = int(total) if total is not None else None
        except (TypeError, ValueError):
            total = None

        if total is not None:
            has_more = page * limit < total and len(orders) > 0
        else:
            has_more = len(orders) >= limit

        logger.debug(f"{self.platform} page {page}: {len(orders)} orders (count={total}, has_more={has_more})")
        return FetchPage(orders=orders, has_more=has_more, total_count=total, page=page)
