"""Manual-only task: checks that a URL answers with a success status.

Set ``URL_CHECK_TARGET`` to the address to probe.
"""

import logging
import os

import httpx

logger = logging.getLogger(__name__)

name = "URL Check"
description = "Fetch URL_CHECK_TARGET and fail on a non-success status"


async def execute() -> None:
    url = os.getenv("URL_CHECK_TARGET", "https://example.com")
    async with httpx.AsyncClient(timeout=15, follow_redirects=True) as client:
        resp = await client.get(url)
    if not resp.is_success:
        msg = f"{url} returned HTTP {resp.status_code}"
        raise RuntimeError(msg)
    logger.info("%s answered %d in %.0fms", url, resp.status_code, resp.elapsed.total_seconds() * 1000)
