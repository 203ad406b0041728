"""Shared async JSON GET with a certifi-backed SSL context."""
from __future__ import annotations

import logging
import ssl
from typing import Any

import aiohttp
import certifi

logger = logging.getLogger(__name__)


async def get_json(
    url: str,
    params: dict[str, str] | None = None,
    timeout: float = 10,
) -> Any:
    """
    GET ``url`` and decode the JSON body.

    Raises ``aiohttp.ClientResponseError`` on a non-2xx status and lets
    other ``aiohttp.ClientError`` / ``asyncio.TimeoutError`` propagate.
    """
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context)
    client_timeout = aiohttp.ClientTimeout(total=timeout)

    logger.debug("GET %s %s", url, params or "")
    async with aiohttp.ClientSession(connector=connector, timeout=client_timeout) as session:
        async with session.get(url, params=params) as response:
            response.raise_for_status()
            return await response.json()
