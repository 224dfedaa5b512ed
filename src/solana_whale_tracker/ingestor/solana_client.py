"""Solana JSON-RPC and price feed client.

This module provides the read-only market data adapter used by the
discovery and monitor loops:
- Token holder enumeration via ``getProgramAccounts``
- Recent signatures and parsed transactions for an address
- Current token price from a Jupiter-compatible price endpoint
- Rate limiting to respect provider limits
- Failover to a secondary RPC URL

There are no retry loops here; failed calls raise ``SourceUnavailable`` and
the caller picks the work up again on its next cycle.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from types import TracebackType
from typing import Any

import httpx

from solana_whale_tracker.exceptions import SourceUnavailable
from solana_whale_tracker.ingestor.models import HolderAccount, ParsedTransaction

logger = logging.getLogger(__name__)

SPL_TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_ACCOUNT_DATA_SIZE = 165

DEFAULT_REQUEST_TIMEOUT = 15.0
DEFAULT_MAX_REQUESTS_PER_SECOND = 10.0
PRIMARY_RECOVERY_INTERVAL_SECONDS = 60.0


@dataclass
class RateLimiter:
    """Token bucket rate limiter."""

    max_tokens: float
    refill_rate: float  # tokens per second
    tokens: float
    last_refill: float

    @classmethod
    def create(cls, max_requests_per_second: float) -> "RateLimiter":
        """Create a rate limiter with specified max requests per second."""
        return cls(
            max_tokens=max_requests_per_second,
            refill_rate=max_requests_per_second,
            tokens=max_requests_per_second,
            last_refill=time.monotonic(),
        )

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.max_tokens, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    async def acquire(self, tokens: float = 1.0) -> None:
        """Acquire tokens, waiting if necessary."""
        while True:
            self._refill()
            if self.tokens >= tokens:
                self.tokens -= tokens
                return
            wait_time = (tokens - self.tokens) / self.refill_rate
            await asyncio.sleep(wait_time)


class SolanaClient:
    """Read-only Solana data adapter.

    Example:
        ```python
        async with SolanaClient(
            "https://api.mainnet-beta.solana.com",
            token_mint="DnUsQnwNot38V9JbisNC18VHZkae1eKK5N2Dgy55pump",
        ) as client:
            holders = await client.list_holder_accounts(client.token_mint, Decimal("100000"))
            price = await client.get_current_price()
        ```
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        token_mint: str,
        price_api_url: str = "https://price.jup.ag/v6/price",
        fallback_rpc_url: str | None = None,
        request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT,
        max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            rpc_url: Primary Solana JSON-RPC endpoint URL.
            token_mint: Mint address of the tracked SPL token.
            price_api_url: Price endpoint queried with ``ids=<mint>``.
            fallback_rpc_url: Optional fallback RPC URL for failover.
            request_timeout_seconds: Upper bound on any single call.
            max_requests_per_second: Rate limit for RPC calls.
            http_client: Optional preconfigured httpx client (not closed
                by this object).
        """
        self._rpc_url = rpc_url
        self._fallback_rpc_url = fallback_rpc_url
        self.token_mint = token_mint
        self._price_api_url = price_api_url
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=request_timeout_seconds)
        self._rate_limiter = RateLimiter.create(max_requests_per_second)
        self._request_id = 0

        # Track primary RPC health
        self._primary_healthy = True
        self._last_primary_check = 0.0

    async def __aenter__(self) -> "SolanaClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def _should_try_primary(self) -> bool:
        if self._primary_healthy or self._fallback_rpc_url is None:
            return True
        now = time.monotonic()
        if now - self._last_primary_check > PRIMARY_RECOVERY_INTERVAL_SECONDS:
            self._last_primary_check = now
            return True
        return False

    async def _post_rpc(self, url: str, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        try:
            response = await self._http.post(url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise SourceUnavailable(f"{method} HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise SourceUnavailable(f"{method} request failed: {e}") from e
        except ValueError as e:
            raise SourceUnavailable(f"{method} returned invalid JSON") from e

        if not isinstance(body, dict):
            raise SourceUnavailable(f"{method} returned a non-object body")
        if body.get("error") is not None:
            raise SourceUnavailable(f"{method} RPC error: {body['error']}")
        return body.get("result")

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        """Execute an RPC call with one-shot failover.

        Raises:
            SourceUnavailable: If the primary (and fallback, when set) fail.
        """
        await self._rate_limiter.acquire()

        last_error: SourceUnavailable | None = None
        if self._should_try_primary():
            try:
                result = await self._post_rpc(self._rpc_url, method, params)
                self._primary_healthy = True
                return result
            except SourceUnavailable as e:
                last_error = e
                logger.warning("Primary RPC %s failed: %s", method, e)
                self._primary_healthy = False
                self._last_primary_check = time.monotonic()

        if self._fallback_rpc_url:
            try:
                result = await self._post_rpc(self._fallback_rpc_url, method, params)
                logger.info("Fallback RPC succeeded for %s", method)
                return result
            except SourceUnavailable as e:
                last_error = e
                logger.warning("Fallback RPC %s failed: %s", method, e)

        raise last_error or SourceUnavailable(f"{method} failed")

    async def list_holder_accounts(self, token_mint: str, min_balance: Decimal) -> list[HolderAccount]:
        """List token account owners holding at least ``min_balance``.

        Args:
            token_mint: Mint to enumerate holders of.
            min_balance: Inclusive UI-unit threshold.

        Returns:
            Holders sorted by balance, largest first.
        """
        result = await self._rpc(
            "getProgramAccounts",
            [
                SPL_TOKEN_PROGRAM_ID,
                {
                    "encoding": "jsonParsed",
                    "filters": [
                        {"dataSize": TOKEN_ACCOUNT_DATA_SIZE},
                        {"memcmp": {"offset": 0, "bytes": token_mint}},
                    ],
                },
            ],
        )
        if not isinstance(result, list):
            raise SourceUnavailable("getProgramAccounts returned a non-list result")

        holders: list[HolderAccount] = []
        for entry in result:
            holder = HolderAccount.from_program_account(entry) if isinstance(entry, dict) else None
            if holder is None:
                continue
            if holder.balance >= min_balance:
                holders.append(holder)

        holders.sort(key=lambda h: h.balance, reverse=True)
        logger.debug("Found %d holders >= %s for %s", len(holders), min_balance, token_mint)
        return holders

    async def list_recent_signatures(self, address: str, limit: int) -> list[str]:
        """Most recent transaction signatures for ``address``, newest first."""
        result = await self._rpc("getSignaturesForAddress", [address, {"limit": limit}])
        if not isinstance(result, list):
            raise SourceUnavailable("getSignaturesForAddress returned a non-list result")
        return [str(item["signature"]) for item in result if isinstance(item, dict) and item.get("signature")]

    async def get_transaction(self, signature: str) -> ParsedTransaction | None:
        """Fetch and parse a confirmed transaction.

        Returns:
            The parsed transaction, or None if the node has no record of it
            or it has no block time yet.
        """
        result = await self._rpc(
            "getTransaction",
            [signature, {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0}],
        )
        if result is None:
            return None
        return ParsedTransaction.from_rpc(signature, result)

    async def get_current_price(self) -> Decimal:
        """Current USD price of the tracked token.

        Raises:
            SourceUnavailable: If the price endpoint fails or has no quote.
        """
        try:
            response = await self._http.get(self._price_api_url, params={"ids": self.token_mint})
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise SourceUnavailable(f"price API HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise SourceUnavailable(f"price API request failed: {e}") from e
        except ValueError as e:
            raise SourceUnavailable("price API returned invalid JSON") from e

        try:
            raw = body["data"][self.token_mint]["price"]
            price = Decimal(str(raw))
        except (KeyError, TypeError, InvalidOperation) as e:
            raise SourceUnavailable(f"no price quote for {self.token_mint}") from e
        if not price.is_finite() or price < 0:
            raise SourceUnavailable(f"invalid price quote for {self.token_mint}: {raw!r}")
        return price

    async def get_slot(self) -> int:
        """Current slot; used as a cheap health check."""
        result = await self._rpc("getSlot", [])
        if not isinstance(result, int):
            raise SourceUnavailable("getSlot returned a non-integer result")
        return result
