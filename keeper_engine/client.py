import httpx
import asyncio
import json
import logging
import time
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

from . import database
from .config import (
    API_URL,
    CACHE_TTL_SECONDS,
    MAX_RETRIES,
    RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
    RETRY_BASE_DELAY_SECONDS,
    TRANSACTION_LEGS,
)
from .errors import ExternalFetchError

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Sliding-window limiter: at most `max_requests` calls to `acquire` in any
    `window_seconds` span. Callers over the limit sleep until the oldest call
    leaves the window.
    """

    def __init__(
        self,
        max_requests: int = RATE_LIMIT_MAX_REQUESTS,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._calls = deque()

    def _prune(self, now: float):
        while self._calls and now - self._calls[0] >= self.window_seconds:
            self._calls.popleft()

    def remaining(self) -> int:
        self._prune(self._clock())
        return self.max_requests - len(self._calls)

    async def acquire(self):
        while True:
            now = self._clock()
            self._prune(now)
            if len(self._calls) < self.max_requests:
                self._calls.append(now)
                return
            wait = self.window_seconds - (now - self._calls[0])
            logger.debug("Rate limit reached, waiting %.2fs", wait)
            await self._sleep(wait)


_limiter = RateLimiter()


def _is_retryable(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


async def _request_with_retry(
    http_client: httpx.AsyncClient,
    url: str,
    limiter: Optional[RateLimiter] = None,
) -> Any:
    """
    GET `url` through the rate limiter, retrying 429s, 5xx responses and
    transport errors with exponential backoff. A 404 means "no such resource"
    and returns None. Anything else that fails raises ExternalFetchError.
    """
    limiter = limiter or _limiter
    last_error = "no attempt made"

    for attempt in range(MAX_RETRIES + 1):
        if attempt:
            delay = RETRY_BASE_DELAY_SECONDS * (2 ** (attempt - 1))
            logger.info("Retrying %s in %.1fs (attempt %d, %s)", url, delay, attempt + 1, last_error)
            await asyncio.sleep(delay)

        await limiter.acquire()
        try:
            response = await http_client.get(url)
        except httpx.TransportError as e:
            last_error = f"transport error: {e!r}"
            continue

        if response.status_code == 404:
            return None
        if _is_retryable(response.status_code):
            last_error = f"HTTP {response.status_code}"
            continue
        if response.is_error:
            raise ExternalFetchError(url, f"HTTP {response.status_code}")
        return response.json()

    logger.warning("Giving up on %s after %d attempts: %s", url, MAX_RETRIES + 1, last_error)
    raise ExternalFetchError(url, f"gave up after {MAX_RETRIES + 1} attempts: {last_error}")


async def get(url: str, http_client: Optional[httpx.AsyncClient] = None):
    """
    A generic, caching GET request for the Sleeper API.
    """
    db = await database.get_db_connection()
    try:
        # 1. Check cache
        cursor = await db.execute("SELECT data, timestamp FROM api_cache WHERE url = ?", (url,))
        row = await cursor.fetchone()

        if row:
            cached_data = json.loads(row["data"])
            timestamp = datetime.fromisoformat(row["timestamp"])
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
            if datetime.now(timezone.utc) - timestamp < timedelta(seconds=CACHE_TTL_SECONDS):
                return cached_data

        # 2. If not in cache or stale, fetch from API
        if http_client is None:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS) as owned_client:
                fresh_data = await _request_with_retry(owned_client, url)
        else:
            fresh_data = await _request_with_retry(http_client, url)

        # 3. Store in cache; misses are not cached
        if fresh_data is not None:
            await db.execute(
                "INSERT OR REPLACE INTO api_cache (url, data, timestamp) VALUES (?, ?, ?)",
                (url, json.dumps(fresh_data), datetime.now(timezone.utc).isoformat()),
            )
            await db.commit()
        return fresh_data

    finally:
        await db.close()


async def get_league(league_id: str):
    url = f"{API_URL}/league/{league_id}"
    return await get(url)


async def get_league_rosters(league_id: str):
    url = f"{API_URL}/league/{league_id}/rosters"
    return await get(url) or []


async def get_league_users(league_id: str):
    url = f"{API_URL}/league/{league_id}/users"
    return await get(url) or []


async def get_league_drafts(league_id: str):
    url = f"{API_URL}/league/{league_id}/drafts"
    return await get(url) or []


async def get_draft_picks(draft_id: str):
    url = f"{API_URL}/draft/{draft_id}/picks"
    return await get(url) or []


async def get_league_transactions(league_id: str, leg: int):
    url = f"{API_URL}/league/{league_id}/transactions/{leg}"
    return await get(url) or []


async def get_all_league_transactions(league_id: str):
    # All legs or nothing: a failed leg raises
    transaction_tasks = [get_league_transactions(league_id, leg) for leg in TRANSACTION_LEGS]
    weekly_transactions_results = await asyncio.gather(*transaction_tasks)

    all_transactions = []
    for result in weekly_transactions_results:
        if isinstance(result, list):
            all_transactions.extend(result)
    return all_transactions


async def get_traded_picks(league_id: str):
    url = f"{API_URL}/league/{league_id}/traded_picks"
    return await get(url) or []
