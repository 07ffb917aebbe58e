from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenLease:
    access_token: str
    expires_at: datetime


def utc_clock() -> datetime:
    return datetime.now(tz=timezone.utc)


class TokenCache:
    """
    In-memory holder of the provider bearer token.

    Responsibilities
    ----------------
    - Return the cached lease while it is valid.
    - Fetch a new lease when none is cached or the cached one is within
      ``safety_margin`` of its expiry.
    - Let callers drop the lease (``invalidate``) after the provider rejected it.

    Notes
    -----
    - Concurrent callers needing a refresh share a single fetch.
    - Both the fetcher and the clock are injected, so tests can drive expiry
      without touching the network or sleeping.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[TokenLease]],
        *,
        clock: Callable[[], datetime] = utc_clock,
        safety_margin: timedelta = timedelta(seconds=60),
    ) -> None:
        self._fetch = fetch
        self._clock = clock
        self._safety_margin = safety_margin
        self._lease: TokenLease | None = None
        self._lock = asyncio.Lock()

    @property
    def lease(self) -> TokenLease | None:
        return self._lease

    def _is_fresh(self, lease: TokenLease | None) -> bool:
        return lease is not None and lease.expires_at - self._safety_margin > self._clock()

    async def get(self) -> str:
        """
        Return a valid access token, fetching a new one if needed.
        """
        lease = self._lease
        if self._is_fresh(lease):
            return lease.access_token

        async with self._lock:
            # Another caller may have refreshed while we waited.
            if self._is_fresh(self._lease):
                return self._lease.access_token

            self._lease = await self._fetch()
            logger.info("Fetched new provider token valid until %s", self._lease.expires_at.isoformat())
            return self._lease.access_token

    def invalidate(self, token: str | None = None) -> None:
        """
        Drop the cached lease.

        When ``token`` is given, the lease is only dropped if it still holds
        that token, so a rejection of an old token does not discard a lease
        another caller has just refreshed.
        """
        if token is None or (self._lease is not None and self._lease.access_token == token):
            self._lease = None
