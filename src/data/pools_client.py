"""Client for the external pools data server (``/pools`` and ``/pools/history``)."""
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from typing import Any

import aiohttp

import config
from src.data import http
from src.data.models import PoolHistoryRecord, PoolSnapshot

logger = logging.getLogger(__name__)


class PoolsApiError(RuntimeError):
    """The pools data server could not be reached or answered with an error."""


def _query(params: dict[str, Any]) -> dict[str, str]:
    query: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        query[key] = str(value)
    return query


def _rows(data: dict, path: str) -> list:
    rows = data.get("data") or []
    if not isinstance(rows, list):
        raise PoolsApiError(f"{path} returned a non-list \"data\" field")
    return rows


class PoolsClient:
    """Async reader for pool snapshots and pool yield history."""

    def __init__(
        self,
        base_url: str = config.POOLS_API_URL,
        timeout: float = config.POOLS_TIMEOUT,
        history_timeout: float = config.POOLS_HISTORY_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.history_timeout = history_timeout

    async def _get(self, path: str, params: dict[str, Any], timeout: float) -> dict:
        url = f"{self.base_url}{path}"
        try:
            data = await http.get_json(url, _query(params), timeout)
        except aiohttp.ClientResponseError as e:
            raise PoolsApiError(f"{path} returned HTTP {e.status}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PoolsApiError(f"Cannot reach pools data server: {e}") from e
        except ValueError as e:
            raise PoolsApiError(f"{path} returned a body that is not JSON: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise PoolsApiError(f"{path} returned {type(data).__name__}, expected an object")
        return data

    async def fetch_pools(
        self,
        protocol: str | None = None,
        asset: str | None = None,
        pool_type: str | None = None,
        network: str | None = None,
        min_apy: float | None = None,
        limit: int | None = None,
        sort_by: str | None = None,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> list[PoolSnapshot]:
        """Latest snapshot of every pool matching the filters."""
        data = await self._get(
            "/pools",
            {
                "protocol": protocol,
                "asset": asset,
                "poolType": pool_type,
                "network": network,
                "minApy": min_apy,
                "limit": limit,
                "sortBy": sort_by,
                "from": start,
                "to": end,
            },
            self.timeout,
        )
        pools = []
        for item in _rows(data, "/pools"):
            try:
                pools.append(PoolSnapshot.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed pool snapshot: %s", e)
        return pools

    async def fetch_pool_history(
        self,
        protocol: str | None = None,
        asset: str | None = None,
        pool_type: str | None = None,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> list[PoolHistoryRecord]:
        """Historical yield records matching the filters."""
        data = await self._get(
            "/pools/history",
            {
                "protocol": protocol,
                "asset": asset,
                "poolType": pool_type,
                "from": start,
                "to": end,
            },
            self.history_timeout,
        )
        records = []
        for item in _rows(data, "/pools/history"):
            try:
                records.append(PoolHistoryRecord.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed history record: %s", e)
        return records
