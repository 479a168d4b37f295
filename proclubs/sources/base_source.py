import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

# Define common HTTP status codes that warrant a retry
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class SourceError(Exception):
    """Base exception for stats source errors."""

    pass


class SourceUnavailable(SourceError):
    """Timeout, network failure or non-success status from the stats source."""

    pass


class MalformedResponse(SourceError):
    """The source answered, but the payload is not what we expect. Never retried."""

    pass


class RetryableStatusError(SourceError):
    """Transient HTTP status (408, 429, 5xx); triggers a retry."""

    def __init__(self, status_code: int, url: str):
        super().__init__(f"HTTP {status_code} from {url}")
        self.status_code = status_code


class BaseSource(ABC):
    """Abstract base class for per-club stats sources.

    Every request runs under a shared semaphore, so at most
    ``max_concurrency`` requests are in flight across all clubs; waiters
    are resumed in arrival order. Successful payloads are cached for
    ``cache_ttl`` seconds.
    """

    name: str = "unknown"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        max_concurrency: int = 3,
        max_attempts: int = 3,
        retry_backoff: float = 1.0,
        cache_ttl: float = 60.0,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            headers=headers,
        )
        if client is not None and headers:
            self.client.headers.update(headers)
        self.max_attempts = max_attempts
        self.retry_backoff = retry_backoff
        self.cache_ttl = cache_ttl
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._cache: Dict[str, Tuple[Any, float]] = {}  # key -> (payload, expiry)
        self._cache_lock = asyncio.Lock()

    @abstractmethod
    async def fetch_matches(self, club_id: str) -> List[Dict[str, Any]]:
        """Fetch raw match records for one club.

        Returns:
            A list of raw match dicts; empty when the source is unavailable.
        """
        pass

    @abstractmethod
    async def fetch_members(self, club_id: str) -> List[Dict[str, Any]]:
        """Fetch raw member records for one club; empty on failure."""
        pass

    def _cache_key(self, url: str, params: Optional[Dict[str, Any]]) -> str:
        query = ",".join(f"{k}={v}" for k, v in sorted((params or {}).items()))
        return f"{url}?{query}" if query else url

    async def _get_cached(self, key: str) -> Optional[Any]:
        async with self._cache_lock:
            if key in self._cache:
                payload, expiry = self._cache[key]
                if time.monotonic() < expiry:
                    return payload
                del self._cache[key]
        return None

    async def _set_cache(self, key: str, payload: Any) -> None:
        if self.cache_ttl <= 0:
            return
        async with self._cache_lock:
            self._cache[key] = (payload, time.monotonic() + self.cache_ttl)

    async def _request_once(
        self, url: str, params: Optional[Dict[str, Any]]
    ) -> httpx.Response:
        async with self._semaphore:
            logger.debug(f"GET {url}", params=params)
            response = await self.client.get(url, params=params)

        if response.status_code in RETRYABLE_STATUS_CODES:
            logger.warning(
                f"{self.name} returned {response.status_code} for {url}, will retry"
            )
            raise RetryableStatusError(response.status_code, url)
        if response.is_error:
            # Other 4xx/5xx are not transient
            raise SourceUnavailable(f"HTTP {response.status_code} from {url}")
        return response

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a JSON payload with caching and bounded, increasing backoff retries.

        Raises:
            SourceUnavailable: after the last failed attempt, or on a
                non-retryable status.
            MalformedResponse: the body is not valid JSON.
        """
        cache_key = self._cache_key(url, params)
        cached = await self._get_cached(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit for {cache_key}")
            return cached

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_incrementing(
                    start=self.retry_backoff, increment=self.retry_backoff
                ),
                retry=retry_if_exception_type(
                    (httpx.TransportError, RetryableStatusError)
                ),
                reraise=True,
            ):
                with attempt:
                    response = await self._request_once(url, params)
        except RetryableStatusError as e:
            raise SourceUnavailable(
                f"{self.name} still failing after {self.max_attempts} attempts: {e}"
            ) from e
        except httpx.TimeoutException as e:
            raise SourceUnavailable(
                f"{self.name} timed out after {self.max_attempts} attempts: {url}"
            ) from e
        except httpx.TransportError as e:
            raise SourceUnavailable(
                f"{self.name} network error after {self.max_attempts} attempts: {e}"
            ) from e

        try:
            payload = response.json()
        except ValueError as e:
            logger.debug(f"Raw response content: {response.text[:500]}")
            raise MalformedResponse(f"Invalid JSON from {url}: {e}") from e

        await self._set_cache(cache_key, payload)
        return payload

    async def close(self):
        """Closes the underlying HTTP client."""
        await self.client.aclose()
        logger.info(f"Closed HTTP client for {self.name}")
