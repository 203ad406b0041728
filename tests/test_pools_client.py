"""Tests for src/data/pools_client.py and src/data/http.py."""

from __future__ import annotations

import asyncio
import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from src.data import http
from src.data.pools_client import PoolsApiError, PoolsClient, _query

HISTORY = {
    "data": [
        {"protocol": "bifrost", "assetSymbol": "vDOT", "dataTimestamp": "2025-01-01T00:00:00Z",
         "supplyApy": 15.0, "totalApy": 16.2, "poolType": "liquid_staking"},
        {"protocol": "bifrost", "assetSymbol": "vKSM", "dataTimestamp": "2025-01-01T00:00:00Z",
         "supplyApy": 18.0},
        {"protocol": "bifrost", "dataTimestamp": "2025-01-01T00:00:00Z"},
    ]
}


def _mock_session(payload: dict) -> MagicMock:
    """aiohttp.ClientSession stand-in whose GET answers with ``payload``."""
    response = MagicMock()
    response.json = AsyncMock(return_value=payload)
    session = MagicMock()
    session.get.return_value.__aenter__.return_value = response
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    return factory


class TestQuery:

    def test_drops_none_and_formats_dates(self):
        assert _query({"a": None, "from": date(2025, 1, 1), "limit": 200}) == {
            "from": "2025-01-01",
            "limit": "200",
        }


class TestGetJson:

    @pytest.mark.asyncio
    async def test_decodes_body(self):
        factory = _mock_session({"ok": True})
        with (
            patch("src.data.http.aiohttp.ClientSession", factory),
            patch("src.data.http.aiohttp.TCPConnector"),
        ):
            data = await http.get_json("https://example.test/x", {"q": "1"}, timeout=3)
        assert data == {"ok": True}
        session = factory.return_value.__aenter__.return_value
        session.get.assert_called_once_with("https://example.test/x", params={"q": "1"})


class TestPoolsClient:

    @pytest.mark.asyncio
    async def test_fetch_pool_history_skips_malformed(self):
        client = PoolsClient(base_url="http://pools.test/")
        with patch("src.data.http.get_json", AsyncMock(return_value=HISTORY)) as get:
            records = await client.fetch_pool_history(protocol="bifrost", start=date(2025, 1, 1))

        assert [r.asset_symbol for r in records] == ["vDOT", "vKSM"]
        assert records[0].effective_yield == 16.2
        assert records[1].effective_yield == 18.0
        url, params, timeout = get.call_args.args
        assert url == "http://pools.test/pools/history"
        assert params == {"protocol": "bifrost", "from": "2025-01-01"}
        assert timeout == client.history_timeout

    @pytest.mark.asyncio
    async def test_fetch_pools(self):
        payload = {"data": [{"protocol": "hydration", "assetSymbol": "DOT", "totalApy": 12.5}]}
        client = PoolsClient(base_url="http://pools.test")
        with patch("src.data.http.get_json", AsyncMock(return_value=payload)):
            pools = await client.fetch_pools(limit=200)
        assert pools[0].total_apy == 12.5

    @pytest.mark.asyncio
    async def test_empty_body(self):
        with patch("src.data.http.get_json", AsyncMock(return_value=None)):
            assert await PoolsClient().fetch_pools() == []

    @pytest.mark.asyncio
    async def test_http_error_wrapped(self):
        error = aiohttp.ClientResponseError(MagicMock(), (), status=503)
        with patch("src.data.http.get_json", AsyncMock(side_effect=error)):
            with pytest.raises(PoolsApiError, match="HTTP 503"):
                await PoolsClient().fetch_pool_history(protocol="bifrost")

    @pytest.mark.asyncio
    async def test_connection_error_wrapped(self):
        with patch("src.data.http.get_json", AsyncMock(side_effect=asyncio.TimeoutError())):
            with pytest.raises(PoolsApiError, match="Cannot reach"):
                await PoolsClient().fetch_pools()

    @pytest.mark.asyncio
    async def test_non_json_body_wrapped(self):
        error = json.JSONDecodeError("Expecting value", "<html>", 0)
        with patch("src.data.http.get_json", AsyncMock(side_effect=error)):
            with pytest.raises(PoolsApiError, match="not JSON"):
                await PoolsClient().fetch_pool_history(protocol="bifrost")

    @pytest.mark.asyncio
    async def test_array_body_rejected(self):
        with patch("src.data.http.get_json", AsyncMock(return_value=[{"error": "x"}])):
            with pytest.raises(PoolsApiError, match="expected an object"):
                await PoolsClient().fetch_pool_history(protocol="bifrost")

    @pytest.mark.asyncio
    async def test_non_list_data_rejected(self):
        with patch("src.data.http.get_json", AsyncMock(return_value={"data": {"a": 1}})):
            with pytest.raises(PoolsApiError, match="non-list"):
                await PoolsClient().fetch_pools()

    @pytest.mark.asyncio
    async def test_fetch_pools_skips_malformed(self):
        payload = {"data": [{"assetSymbol": "DOT"}, {"protocol": "hydration", "assetSymbol": "DOT"}]}
        with patch("src.data.http.get_json", AsyncMock(return_value=payload)):
            pools = await PoolsClient().fetch_pools()
        assert [p.protocol for p in pools] == ["hydration"]
