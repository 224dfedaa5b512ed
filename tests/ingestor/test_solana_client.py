"""Tests for the Solana RPC and price client."""

import json
from collections.abc import Callable
from decimal import Decimal
from typing import Any

import httpx
import pytest

from solana_whale_tracker.exceptions import SourceUnavailable
from solana_whale_tracker.ingestor.solana_client import (
    SPL_TOKEN_PROGRAM_ID,
    TOKEN_ACCOUNT_DATA_SIZE,
    RateLimiter,
    SolanaClient,
)

MINT = "DnUsQnwNot38V9JbisNC18VHZkae1eKK5N2Dgy55pump"
PRIMARY_URL = "https://primary.rpc.test"
FALLBACK_URL = "https://fallback.rpc.test"
PRICE_URL = "https://price.test/v6/price"


def _holder(owner: str, amount: str) -> dict[str, Any]:
    return {
        "pubkey": f"acct-{owner}",
        "account": {
            "data": {
                "parsed": {"info": {"owner": owner, "tokenAmount": {"uiAmountString": amount}}},
                "program": "spl-token",
            }
        },
    }


def _rpc_ok(result: Any) -> httpx.Response:
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})


def _make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    fallback_rpc_url: str | None = None,
) -> SolanaClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SolanaClient(
        PRIMARY_URL,
        token_mint=MINT,
        price_api_url=PRICE_URL,
        fallback_rpc_url=fallback_rpc_url,
        max_requests_per_second=1000,
        http_client=http,
    )


class TestRateLimiter:
    """Tests for RateLimiter."""

    @pytest.mark.asyncio
    async def test_acquire_consumes_tokens(self) -> None:
        limiter = RateLimiter.create(5)
        await limiter.acquire()
        assert limiter.tokens == pytest.approx(4, abs=0.1)


class TestListHolderAccounts:
    """Tests for holder enumeration."""

    @pytest.mark.asyncio
    async def test_filters_by_threshold_inclusive(self) -> None:
        requests: list[dict[str, Any]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(json.loads(request.content))
            return _rpc_ok(
                [
                    _holder("Small", "99999.99"),
                    _holder("Exact", "100000"),
                    _holder("Large", "250000"),
                ]
            )

        async with _make_client(handler) as client:
            holders = await client.list_holder_accounts(MINT, Decimal("100000"))

        assert [h.owner for h in holders] == ["Large", "Exact"]
        body = requests[0]
        assert body["method"] == "getProgramAccounts"
        program_id, options = body["params"]
        assert program_id == SPL_TOKEN_PROGRAM_ID
        assert {"dataSize": TOKEN_ACCOUNT_DATA_SIZE} in options["filters"]
        assert {"memcmp": {"offset": 0, "bytes": MINT}} in options["filters"]

    @pytest.mark.asyncio
    async def test_rpc_error_raises_source_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "busy"}},
            )

        async with _make_client(handler) as client:
            with pytest.raises(SourceUnavailable):
                await client.list_holder_accounts(MINT, Decimal("100000"))

    @pytest.mark.asyncio
    async def test_http_error_raises_source_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        async with _make_client(handler) as client:
            with pytest.raises(SourceUnavailable):
                await client.list_holder_accounts(MINT, Decimal("100000"))

    @pytest.mark.asyncio
    async def test_falls_back_to_secondary_rpc(self) -> None:
        hosts: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if request.url.host == "primary.rpc.test":
                return httpx.Response(500, text="boom")
            return _rpc_ok([_holder("Large", "250000")])

        async with _make_client(handler, fallback_rpc_url=FALLBACK_URL) as client:
            holders = await client.list_holder_accounts(MINT, Decimal("100000"))
            # Primary is marked unhealthy, so the next call goes straight to the fallback
            await client.list_holder_accounts(MINT, Decimal("100000"))

        assert [h.owner for h in holders] == ["Large"]
        assert hosts == ["primary.rpc.test", "fallback.rpc.test", "fallback.rpc.test"]


class TestTransactions:
    """Tests for signature and transaction lookups."""

    @pytest.mark.asyncio
    async def test_list_recent_signatures(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert body["method"] == "getSignaturesForAddress"
            assert body["params"] == ["WhaleA", {"limit": 5}]
            return _rpc_ok([{"signature": "sig-1"}, {"signature": "sig-2"}, {"err": None}])

        async with _make_client(handler) as client:
            signatures = await client.list_recent_signatures("WhaleA", 5)

        assert signatures == ["sig-1", "sig-2"]

    @pytest.mark.asyncio
    async def test_get_transaction(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert body["params"][1]["maxSupportedTransactionVersion"] == 0
            return _rpc_ok(
                {
                    "slot": 10,
                    "blockTime": 1_760_875_200,
                    "meta": {"err": None, "fee": 5000, "preTokenBalances": [], "postTokenBalances": []},
                }
            )

        async with _make_client(handler) as client:
            tx = await client.get_transaction("sig-1")

        assert tx is not None
        assert tx.signature == "sig-1"
        assert tx.fee == 5000

    @pytest.mark.asyncio
    async def test_get_transaction_not_found(self) -> None:
        async with _make_client(lambda request: _rpc_ok(None)) as client:
            assert await client.get_transaction("sig-missing") is None

    @pytest.mark.asyncio
    async def test_get_slot(self) -> None:
        async with _make_client(lambda request: _rpc_ok(250_000_000)) as client:
            assert await client.get_slot() == 250_000_000


class TestGetCurrentPrice:
    """Tests for the price endpoint."""

    @pytest.mark.asyncio
    async def test_returns_price(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["ids"] == MINT
            return httpx.Response(200, json={"data": {MINT: {"id": MINT, "price": 0.0123}}})

        async with _make_client(handler) as client:
            assert await client.get_current_price() == Decimal("0.0123")

    @pytest.mark.asyncio
    async def test_missing_quote_raises(self) -> None:
        async with _make_client(lambda request: httpx.Response(200, json={"data": {}})) as client:
            with pytest.raises(SourceUnavailable):
                await client.get_current_price()

    @pytest.mark.asyncio
    async def test_http_error_raises(self) -> None:
        async with _make_client(lambda request: httpx.Response(429, text="slow down")) as client:
            with pytest.raises(SourceUnavailable):
                await client.get_current_price()
